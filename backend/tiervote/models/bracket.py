from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tiervote.models.bracket_matchup import BracketMatchup
    from tiervote.models.voting_session import VotingSession


class Bracket(SQLModel, table=True):
    """One single-elimination bracket per voting session; structure is fixed at creation."""

    id: Optional[int] = Field(default=None, primary_key=True)
    # Unique: a session gets at most one bracket
    session_id: int = Field(foreign_key="votingsession.id", unique=True, index=True)
    rounds: int  # log2(bracket size); round == rounds is the final
    created_at: datetime = Field(default_factory=datetime.utcnow)

    voting_session: "VotingSession" = Relationship(back_populates="bracket")
    matchups: List["BracketMatchup"] = Relationship(back_populates="bracket")
