"""Exceptions raised by the bracket engine.

Services raise these; the HTTP layer maps them onto status codes via
``status_code`` and a stable ``code`` string.
"""


# ========== Base Exception ==========


class BracketError(Exception):
    """Base exception for all bracket engine errors."""

    status_code = 400
    code = "BRACKET_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or (self.__class__.__doc__ or "").strip()

    def to_detail(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(BracketError):
    """Requested match, team or tournament does not exist."""

    status_code = 404
    code = "NOT_FOUND"


class UnauthorizedError(BracketError):
    """Actor lacks permission for the requested transition."""

    status_code = 403
    code = "UNAUTHORIZED"


# ========== State Machine Exceptions ==========


class InvalidStateError(BracketError):
    """Transition attempted from a state that does not permit it."""

    status_code = 409
    code = "INVALID_STATE"


class AlreadyStartedError(InvalidStateError):
    """Match has already been started."""

    code = "ALREADY_STARTED"


class AlreadyCompleteError(InvalidStateError):
    """Match has already been completed."""

    code = "ALREADY_COMPLETE"


class TeamsNotAssignedError(BracketError):
    """Both teams must be assigned to the match."""

    status_code = 409
    code = "TEAMS_NOT_ASSIGNED"


# ========== Score Exceptions ==========


class ScoreError(BracketError):
    """Scores are not acceptable."""

    status_code = 422
    code = "INVALID_SCORE"


class TieScoreError(ScoreError):
    """Scores cannot be tied."""

    code = "TIE"


class NegativeScoreError(ScoreError):
    """Scores cannot be negative."""

    code = "NEGATIVE_SCORE"


# ========== Topology / Consistency Exceptions ==========


class UnsupportedBracketSizeError(BracketError):
    """Bracket size must be 4, 8, 16 or 32 and hold every team."""

    status_code = 422
    code = "UNSUPPORTED_BRACKET_SIZE"


class ConsistencyError(BracketError):
    """A bracket slot already holds a different team."""

    status_code = 409
    code = "CONSISTENCY_ERROR"


class ConcurrentUpdateError(BracketError):
    """Match was modified by another request; reload and try again."""

    status_code = 409
    code = "CONCURRENT_UPDATE"
