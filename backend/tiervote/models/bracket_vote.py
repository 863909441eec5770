from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tiervote.models.bracket_matchup import BracketMatchup


class BracketVote(SQLModel, table=True):
    # One vote per participant per matchup; revotes update in place
    __table_args__ = (SAUniqueConstraint("matchup_id", "participant_id", name="uq_matchup_participant"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    matchup_id: int = Field(foreign_key="bracketmatchup.id", index=True)
    participant_id: int = Field(foreign_key="participant.id")
    chosen_item_id: int = Field(foreign_key="sessionitem.id")
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    matchup: "BracketMatchup" = Relationship(back_populates="votes")
