from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tiervote.models.bracket import Bracket
    from tiervote.models.participant import Participant
    from tiervote.models.session_item import SessionItem

SESSION_OPEN = "OPEN"
SESSION_CLOSED = "CLOSED"
SESSION_ARCHIVED = "ARCHIVED"
SESSION_STATUSES = (SESSION_OPEN, SESSION_CLOSED, SESSION_ARCHIVED)


class VotingSession(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    join_code: str = Field(unique=True, index=True)
    status: str = Field(default=SESSION_OPEN)  # OPEN | CLOSED | ARCHIVED
    is_locked: bool = Field(default=False)  # locked: no new participants
    bracket_enabled: bool = Field(default=False)
    tier_config: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    items: List["SessionItem"] = Relationship(back_populates="voting_session")
    participants: List["Participant"] = Relationship(back_populates="voting_session")
    bracket: Optional["Bracket"] = Relationship(
        back_populates="voting_session", sa_relationship_kwargs={"uselist": False}
    )
