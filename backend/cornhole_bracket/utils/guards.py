"""
Request Guards and Utilities

Shared by the route modules:
- Actor resolution from the X-Player-Id header
- Translation of engine exceptions into HTTP errors
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from cornhole_bracket.database import get_session
from cornhole_bracket.exceptions import BracketError
from cornhole_bracket.services import bracket_service
from cornhole_bracket.services.match_state import Actor


def http_error(exc: BracketError) -> HTTPException:
    """Map a BracketError onto its HTTP status with a {code, message} detail."""
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def require_actor(
    tournament_id: int,
    x_player_id: Optional[int] = Header(default=None),
    session: Session = Depends(get_session),
) -> Actor:
    """
    Resolve the calling player for a tournament-scoped request.

    Raises:
        HTTPException 401: Header missing or player unknown
    """
    if x_player_id is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHENTICATED", "message": "X-Player-Id header is required"},
        )
    try:
        return bracket_service.resolve_actor(session, tournament_id, x_player_id)
    except BracketError as e:
        raise HTTPException(status_code=401, detail={"code": "UNAUTHENTICATED", "message": e.message})
