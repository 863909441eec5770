from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class TierVote(SQLModel, table=True):
    """A participant's placement of one session item: tier plus rank inside that tier."""

    __table_args__ = (SAUniqueConstraint("participant_id", "session_item_id", name="uq_participant_item"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    participant_id: int = Field(foreign_key="participant.id", index=True)
    session_item_id: int = Field(foreign_key="sessionitem.id", index=True)
    tier_key: str
    rank_in_tier: int  # 0 = best within the tier
    updated_at: datetime = Field(default_factory=datetime.utcnow)
