import logging
import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine, make_url
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./cornhole.db")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")


def _build_engine(url: str) -> Engine:
    """SQLite gets cross-thread access and its directory created; others use defaults."""
    parsed = make_url(url)
    connect_args = {}
    if parsed.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=SQL_ECHO, connect_args=connect_args)


engine: Engine = _build_engine(DATABASE_URL)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from cornhole_bracket.models.match import Match  # noqa: F401
    from cornhole_bracket.models.player import Player  # noqa: F401
    from cornhole_bracket.models.team import Team  # noqa: F401
    from cornhole_bracket.models.tournament import Tournament  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database ready (%s)", make_url(DATABASE_URL).render_as_string(hide_password=True))
