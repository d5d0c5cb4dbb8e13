"""
Elo rating updates for 2v2 (or any roster size) games.

- Team rating: average of player ratings (1000 for an empty roster)
- Expected score: E = 1 / (1 + 10^((R_opp - R_team) / 400))
- Every player on a side moves by K * (S - E), rounded
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from ladder.models.player import DEFAULT_RATING

K_FACTOR = int(os.getenv("ELO_K_FACTOR", "20"))


@dataclass(frozen=True)
class PlayerRating:
    id: int
    rating: int


@dataclass(frozen=True)
class RatingUpdate:
    player_id: int
    rating_before: int
    rating_after: int
    change: int


def expected_score(team_rating: float, opponent_rating: float) -> float:
    return 1 / (1 + 10 ** ((opponent_rating - team_rating) / 400))


def team_average_rating(players: Sequence[PlayerRating]) -> float:
    if not players:
        return DEFAULT_RATING
    return sum(p.rating for p in players) / len(players)


def get_winner(score_a: int, score_b: int) -> str:
    return "A" if score_a > score_b else "B"


def calculate_elo_updates(
    team_a: Sequence[PlayerRating],
    team_b: Sequence[PlayerRating],
    winner: str,
    k_factor: int = K_FACTOR,
) -> Tuple[List[RatingUpdate], List[RatingUpdate]]:
    """Return (team A updates, team B updates) for a finished game."""
    expected_a = expected_score(team_average_rating(team_a), team_average_rating(team_b))
    expected_b = 1 - expected_a

    actual_a = 1 if winner == "A" else 0
    actual_b = 1 - actual_a

    delta_a = k_factor * (actual_a - expected_a)
    delta_b = k_factor * (actual_b - expected_b)

    def _apply(players: Sequence[PlayerRating], delta: float) -> List[RatingUpdate]:
        return [
            RatingUpdate(
                player_id=p.id,
                rating_before=p.rating,
                rating_after=round(p.rating + delta),
                change=round(delta),
            )
            for p in players
        ]

    return _apply(team_a, delta_a), _apply(team_b, delta_b)
