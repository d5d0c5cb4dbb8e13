from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from ladder.models.tournament import Tournament


DEFAULT_RATING = 1000


class Player(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    emoji: str = Field(default="")
    rating: int = Field(default=DEFAULT_RATING)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PlaySession(SQLModel, table=True):
    """One meetup of the recurring session; owns attendance, games and at most one tournament."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    played_on: date = Field(default_factory=date.today)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    attendances: List["Attendance"] = Relationship(back_populates="session")
    tournament: Optional["Tournament"] = Relationship(
        back_populates="session", sa_relationship_kwargs={"uselist": False}
    )


class Attendance(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("session_id", "player_id", name="uq_attendance_session_player"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", index=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    present: bool = Field(default=True)

    # Relationships
    session: "PlaySession" = Relationship(back_populates="attendances")
    player: "Player" = Relationship()
