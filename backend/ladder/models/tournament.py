from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Index, String, text
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from ladder.models.match import TournamentMatch
    from ladder.models.player import PlaySession
    from ladder.models.team import TournamentTeam


class TournamentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ENDED = "ENDED"


class TournamentStage(str, Enum):
    ROUND_ROBIN = "ROUND_ROBIN"
    BRACKET = "BRACKET"
    FINALS = "FINALS"
    COMPLETED = "COMPLETED"
    ENDED = "ENDED"


class TeamMode(str, Enum):
    FAIR = "FAIR"
    RANDOM = "RANDOM"


class SpecialMode(str, Enum):
    NONE = "NONE"
    MIXED_ROUND_ROBIN = "MIXED_ROUND_ROBIN"


class Tournament(SQLModel, table=True):
    __table_args__ = (
        # Only one ACTIVE tournament may exist across all sessions
        Index(
            "uq_tournament_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", unique=True)
    status: TournamentStatus = Field(
        default=TournamentStatus.ACTIVE, sa_column=Column(String, nullable=False)
    )
    team_mode: TeamMode = Field(sa_column=Column(String, nullable=False))
    stage: TournamentStage = Field(
        default=TournamentStage.ROUND_ROBIN, sa_column=Column(String, nullable=False)
    )
    special_mode: SpecialMode = Field(
        default=SpecialMode.NONE, sa_column=Column(String, nullable=False)
    )
    winner_team_id: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: Optional[datetime] = Field(default=None)

    # Relationships
    session: "PlaySession" = Relationship(back_populates="tournament")
    teams: List["TournamentTeam"] = Relationship(back_populates="tournament")
    matches: List["TournamentMatch"] = Relationship(back_populates="tournament")

    @property
    def is_active(self) -> bool:
        return self.status == TournamentStatus.ACTIVE
