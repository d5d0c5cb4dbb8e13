"""
Match sides: a side is either a persisted TournamentTeam or a bare roster of
player ids (mixed-format round robin). Code that awards wins, counts standings
or links teams checks the side type instead of null-checking team ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from ladder.models.match import TournamentMatch

SIDE_A = "A"
SIDE_B = "B"


@dataclass(frozen=True)
class PersistedTeam:
    team_id: int
    player_ids: Tuple[int, ...]


@dataclass(frozen=True)
class AdHocRoster:
    player_ids: Tuple[int, ...]


MatchSide = Union[PersistedTeam, AdHocRoster]


def _side(team_id, player_ids) -> MatchSide:
    if team_id is not None:
        return PersistedTeam(team_id=team_id, player_ids=tuple(player_ids or ()))
    return AdHocRoster(player_ids=tuple(player_ids or ()))


def match_sides(match: TournamentMatch) -> Tuple[MatchSide, MatchSide]:
    """Return (side A, side B) for a match."""
    return (
        _side(match.team_a_id, match.team_a_player_ids),
        _side(match.team_b_id, match.team_b_player_ids),
    )


def pair_key(side: MatchSide) -> Tuple[int, ...]:
    """Order-independent identity of a roster."""
    return tuple(sorted(side.player_ids))


def other_side(side: str) -> str:
    return SIDE_B if side == SIDE_A else SIDE_A
