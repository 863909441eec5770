from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tiervote.models.voting_session import VotingSession


class Participant(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("session_id", "nickname", name="uq_session_nickname"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="votingsession.id", index=True)
    nickname: str
    created_at: datetime = Field(default_factory=datetime.utcnow)

    voting_session: "VotingSession" = Relationship(back_populates="participants")
