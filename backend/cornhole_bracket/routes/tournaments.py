import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from cornhole_bracket.database import get_session
from cornhole_bracket.exceptions import BracketError
from cornhole_bracket.services import bracket_service
from cornhole_bracket.services.advancement_service import resolve_all_dependencies
from cornhole_bracket.services.match_state import Actor
from cornhole_bracket.utils.guards import http_error, require_actor

logger = logging.getLogger(__name__)

router = APIRouter()


class TournamentResponse(BaseModel):
    id: int
    name: str
    bracket_status: str
    registration_status: str
    event_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TournamentStatusResponse(BaseModel):
    status: str
    placement: Optional[int] = None
    is_eliminated: bool = False
    team_id: Optional[int] = None
    event_date: Optional[datetime] = None

    class Config:
        from_attributes = True


class GenerationResponse(BaseModel):
    outcome: str
    match_count: int = 0
    bracket_size: Optional[int] = None
    warning: Optional[str] = None

    class Config:
        from_attributes = True


class BracketResetResponse(BaseModel):
    deleted_count: int


class VisibilityResponse(BaseModel):
    bracket_status: str


class StartTournamentRequest(BaseModel):
    scheduled_at: Optional[datetime] = None


class StartTournamentResponse(BaseModel):
    event_date: Optional[datetime] = None


class ResolveDependenciesResponse(BaseModel):
    matches_processed: int
    teams_advanced: int
    slots_skipped: int
    unknown_before: int
    unknown_after: int


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    try:
        return bracket_service.get_tournament(session, tournament_id)
    except BracketError as e:
        raise http_error(e)


@router.get("/tournaments/{tournament_id}/status", response_model=TournamentStatusResponse)
def get_tournament_status(
    tournament_id: int,
    team_id: Optional[int] = None,
    session: Session = Depends(get_session),
):
    """User-facing status; pass team_id for that team's placement and elimination."""
    try:
        status = bracket_service.get_tournament_status(session, tournament_id, team_id)
    except BracketError as e:
        raise http_error(e)
    return TournamentStatusResponse.model_validate(status)


@router.post("/tournaments/{tournament_id}/bracket/ensure", response_model=GenerationResponse)
def ensure_bracket(
    tournament_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    """Generate the bracket, or rebuild it if the roster changed and nothing has been played."""
    try:
        bracket_service.require_admin(actor, "generate the bracket")
        result = bracket_service.ensure_bracket_generated(session, tournament_id)
    except BracketError as e:
        raise http_error(e)
    return GenerationResponse.model_validate(result)


@router.delete("/tournaments/{tournament_id}/bracket", response_model=BracketResetResponse)
def reset_bracket(
    tournament_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    try:
        deleted = bracket_service.reset_bracket(session, tournament_id, actor)
    except BracketError as e:
        raise http_error(e)
    return BracketResetResponse(deleted_count=deleted)


@router.post("/tournaments/{tournament_id}/bracket/visibility", response_model=VisibilityResponse)
def toggle_bracket_visibility(
    tournament_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    try:
        status = bracket_service.toggle_bracket_visibility(session, tournament_id, actor)
    except BracketError as e:
        raise http_error(e)
    return VisibilityResponse(bracket_status=status)


@router.post("/tournaments/{tournament_id}/bracket/resolve-dependencies", response_model=ResolveDependenciesResponse)
def resolve_dependencies(
    tournament_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    """Re-apply advancement for every completed match. Idempotent."""
    try:
        bracket_service.require_admin(actor, "repair the bracket")
        bracket_service.get_tournament(session, tournament_id)
        summary = resolve_all_dependencies(session, tournament_id)
    except BracketError as e:
        raise http_error(e)
    logger.info("Tournament %s dependencies resolved: %s", tournament_id, summary)
    return ResolveDependenciesResponse(**summary)


@router.post("/tournaments/{tournament_id}/start", response_model=StartTournamentResponse)
def start_tournament(
    tournament_id: int,
    payload: Optional[StartTournamentRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    scheduled_at = payload.scheduled_at if payload else None
    try:
        event_date = bracket_service.start_tournament(session, tournament_id, actor, scheduled_at)
    except BracketError as e:
        raise http_error(e)
    return StartTournamentResponse(event_date=event_date)


@router.post("/tournaments/{tournament_id}/stop", response_model=StartTournamentResponse)
def stop_tournament(
    tournament_id: int,
    session: Session = Depends(get_session),
    actor: Actor = Depends(require_actor),
):
    try:
        bracket_service.stop_tournament(session, tournament_id, actor)
    except BracketError as e:
        raise http_error(e)
    return StartTournamentResponse(event_date=None)
