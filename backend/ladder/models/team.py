from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from ladder.models.tournament import Tournament


class TournamentTeam(SQLModel, table=True):
    __table_args__ = (
        # Standings tie-break relies on seeds being unique within a tournament
        SAUniqueConstraint("tournament_id", "seed", name="uq_tournament_team_seed"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    name: str
    seed: int  # creation order (1-based); 98/99 for mixed-format finalists
    player_a_id: int = Field(foreign_key="player.id")
    player_b_id: Optional[int] = Field(default=None, foreign_key="player.id")

    # Round-robin counters (match wins/losses, not games)
    wins: int = Field(default=0)
    losses: int = Field(default=0)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="teams")

    @property
    def player_ids(self) -> List[int]:
        return [pid for pid in (self.player_a_id, self.player_b_id) if pid is not None]
