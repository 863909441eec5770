from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tiervote.models.voting_session import VotingSession


class SessionItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="votingsession.id", index=True)
    label: str
    image_url: str = Field(default="")
    sort_order: int = Field(default=0)

    voting_session: "VotingSession" = Relationship(back_populates="items")
