from ladder.models.game import Game, RatingHistory
from ladder.models.match import MatchStage, TournamentMatch, TournamentMatchGame
from ladder.models.player import Attendance, Player, PlaySession
from ladder.models.team import TournamentTeam
from ladder.models.tournament import (
    SpecialMode,
    TeamMode,
    Tournament,
    TournamentStage,
    TournamentStatus,
)

__all__ = [
    "Player",
    "PlaySession",
    "Attendance",
    "Game",
    "RatingHistory",
    "Tournament",
    "TournamentStatus",
    "TournamentStage",
    "TeamMode",
    "SpecialMode",
    "TournamentTeam",
    "TournamentMatch",
    "TournamentMatchGame",
    "MatchStage",
]
