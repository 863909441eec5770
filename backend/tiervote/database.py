import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tiervote.db")

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from tiervote.models.bracket import Bracket  # noqa: F401
    from tiervote.models.bracket_matchup import BracketMatchup  # noqa: F401
    from tiervote.models.bracket_vote import BracketVote  # noqa: F401
    from tiervote.models.participant import Participant  # noqa: F401
    from tiervote.models.session_item import SessionItem  # noqa: F401
    from tiervote.models.tier_vote import TierVote  # noqa: F401
    from tiervote.models.voting_session import VotingSession  # noqa: F401

    SQLModel.metadata.create_all(engine)
