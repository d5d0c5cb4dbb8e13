from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, Index, String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from ladder.models.tournament import Tournament


DEFAULT_BEST_OF = 3


class MatchStage(str, Enum):
    ROUND_ROBIN = "ROUND_ROBIN"
    BRACKET = "BRACKET"
    WINNERS_FINAL = "WINNERS_FINAL"
    LOSERS_FINAL = "LOSERS_FINAL"


# Display order of match stages within a tournament
MATCH_STAGE_ORDER = {
    MatchStage.ROUND_ROBIN: 0,
    MatchStage.BRACKET: 1,
    MatchStage.WINNERS_FINAL: 2,
    MatchStage.LOSERS_FINAL: 3,
}


class TournamentMatch(SQLModel, table=True):
    """A best-of-N series between two sides.

    The roster arrays are the source of truth for who plays. team_a_id/team_b_id
    are only set when the side is a persisted TournamentTeam; mixed-format
    matches carry rosters only. team_b_id null with team_a_id set is a bye.
    """

    __table_args__ = (Index("idx_tournamentmatch_stage_round", "tournament_id", "stage", "round", "slot"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    stage: MatchStage = Field(sa_column=Column(String, nullable=False))
    round: int = Field(default=1)
    slot: int = Field(default=1)
    best_of: int = Field(default=DEFAULT_BEST_OF)

    team_a_id: Optional[int] = Field(default=None, foreign_key="tournamentteam.id")
    team_b_id: Optional[int] = Field(default=None, foreign_key="tournamentteam.id")
    team_a_player_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    team_b_player_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    wins_a: int = Field(default=0)
    wins_b: int = Field(default=0)
    is_complete: bool = Field(default=False)
    winner_team_id: Optional[int] = Field(default=None, foreign_key="tournamentteam.id")
    loser_team_id: Optional[int] = Field(default=None, foreign_key="tournamentteam.id")
    winner_side: Optional[str] = Field(default=None)  # "A" | "B"

    # Format notes, e.g. {"sit_out_player_id": 3} or {"mixed_round": true}
    meta_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="matches")
    games: List["TournamentMatchGame"] = Relationship(back_populates="match")

    @property
    def is_bye(self) -> bool:
        return self.team_a_id is not None and self.team_b_id is None and not self.team_b_player_ids


class TournamentMatchGame(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_match_id", "game_number", name="uq_match_game_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_match_id: int = Field(foreign_key="tournamentmatch.id", index=True)
    game_id: int = Field(foreign_key="game.id")
    game_number: int

    # Relationships
    match: "TournamentMatch" = Relationship(back_populates="games")
