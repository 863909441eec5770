from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tiervote.models.bracket import Bracket
    from tiervote.models.bracket_vote import BracketVote


class BracketMatchup(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("bracket_id", "round", "position", name="uq_bracket_round_position"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    bracket_id: int = Field(foreign_key="bracket.id", index=True)
    round: int  # 1 = first round
    position: int  # 0-based within round; feeds round + 1, position // 2

    # Null = awaiting an earlier winner, or a permanent bye
    item_a_id: Optional[int] = Field(default=None, foreign_key="sessionitem.id")
    item_b_id: Optional[int] = Field(default=None, foreign_key="sessionitem.id")
    winner_id: Optional[int] = Field(default=None, foreign_key="sessionitem.id")

    bracket: "Bracket" = Relationship(back_populates="matchups")
    votes: List["BracketVote"] = Relationship(back_populates="matchup")
