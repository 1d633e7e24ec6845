"""
Runtime: match lifecycle and per-team views.
Start/complete/reset go through the match state machine; completing a match
advances its winner and loser and resolves any byes that became decidable.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from cornhole_bracket.database import get_session
from cornhole_bracket.exceptions import BracketError
from cornhole_bracket.services import bracket_service, match_state
from cornhole_bracket.services.match_state import Actor
from cornhole_bracket.utils.guards import http_error, require_actor

logger = logging.getLogger(__name__)

router = APIRouter()


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    bracket_type: str
    round_number: int
    match_number: int
    position_in_round: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    winner_id: Optional[int] = None
    loser_id: Optional[int] = None
    next_winner_match_id: Optional[int] = None
    next_loser_match_id: Optional[int] = None
    is_finals: bool
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    started_by: Optional[int] = None
    version: int

    class Config:
        from_attributes = True


class MatchCompleteRequest(BaseModel):
    score_a: int
    score_b: int


class MatchCompleteResponse(BaseModel):
    match: MatchResponse
    winner_id: int
    loser_id: int
    advanced_count: int = 0
    byes_resolved: List[int] = []


class TeamRecordResponse(BaseModel):
    wins: int
    losses: int

    class Config:
        from_attributes = True


class NextMatchResponse(BaseModel):
    match: Optional[MatchResponse] = None
    team_record: Optional[TeamRecordResponse] = None
    opponent_record: Optional[TeamRecordResponse] = None


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(tournament_id: int, session: Session = Depends(get_session)):
    """Whole bracket: winners side first, then by round and match number."""
    try:
        bracket_service.get_tournament(session, tournament_id)
    except BracketError as e:
        raise http_error(e)
    return bracket_service.list_bracket_matches(session, tournament_id)


@router.get("/tournaments/{tournament_id}/matches/{match_id}", response_model=MatchResponse)
def get_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    try:
        return bracket_service.get_match(session, tournament_id, match_id)
    except BracketError as e:
        raise http_error(e)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchResponse)
def start_match(
    tournament_id: int,
    match_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    try:
        return match_state.start_match(session, tournament_id, match_id, actor)
    except BracketError as e:
        raise http_error(e)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/complete", response_model=MatchCompleteResponse)
def complete_match(
    tournament_id: int,
    match_id: int,
    payload: MatchCompleteRequest,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    """Record the final score. Admins may call this again on a complete match to correct it."""
    try:
        result = match_state.complete_match(
            session, tournament_id, match_id, payload.score_a, payload.score_b, actor
        )
    except BracketError as e:
        raise http_error(e)
    return MatchCompleteResponse(
        match=MatchResponse.model_validate(result.match),
        winner_id=result.winner_id,
        loser_id=result.loser_id,
        advanced_count=result.advanced_count,
        byes_resolved=result.byes_resolved,
    )


@router.post("/tournaments/{tournament_id}/matches/{match_id}/reset", response_model=MatchResponse)
def reset_match(
    tournament_id: int,
    match_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    try:
        return match_state.reset_match(session, tournament_id, match_id, actor)
    except BracketError as e:
        raise http_error(e)


@router.get("/tournaments/{tournament_id}/teams/{team_id}/matches", response_model=List[MatchResponse])
def list_team_matches(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    try:
        bracket_service.get_team(session, tournament_id, team_id)
    except BracketError as e:
        raise http_error(e)
    return bracket_service.list_team_matches(session, tournament_id, team_id)


@router.get("/tournaments/{tournament_id}/teams/{team_id}/next-match", response_model=NextMatchResponse)
def get_next_match(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """The team's next pending or in-progress match, with both teams' records."""
    try:
        bracket_service.get_team(session, tournament_id, team_id)
    except BracketError as e:
        raise http_error(e)

    match = bracket_service.get_team_next_match(session, tournament_id, team_id)
    if match is None:
        return NextMatchResponse()

    own, opponent = bracket_service.get_match_records(session, tournament_id, match, team_id)
    return NextMatchResponse(
        match=MatchResponse.model_validate(match),
        team_record=TeamRecordResponse.model_validate(own) if own else None,
        opponent_record=TeamRecordResponse.model_validate(opponent) if opponent else None,
    )


@router.get("/tournaments/{tournament_id}/teams/{team_id}/record", response_model=TeamRecordResponse)
def get_team_record(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    try:
        bracket_service.get_team(session, tournament_id, team_id)
    except BracketError as e:
        raise http_error(e)
    return TeamRecordResponse.model_validate(bracket_service.get_team_record(session, tournament_id, team_id))
