"""
Team Formation — partition present attendees into two-player teams.

FAIR:   rating descending, pair highest with lowest walking inward.
        1300/1250/1000/900 -> (1300+900), (1250+1000)
RANDOM: uniform shuffle, then consecutive pairs.

An odd attendee is left out of every team (the median for FAIR, the last
shuffled player for RANDOM). Seeds are 1-based creation order.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

from ladder.models.tournament import TeamMode


@dataclass(frozen=True)
class Attendee:
    """Snapshot of a present player taken at setup time."""
    id: int
    name: str
    emoji: str
    rating: int


@dataclass
class TeamDraft:
    name: str
    seed: int
    player_a_id: int
    player_b_id: Optional[int] = None


def team_name(a: Attendee, b: Attendee) -> str:
    return f"{a.emoji}{a.name} + {b.emoji}{b.name}"


def create_random_teams(attendees: List[Attendee], rng: Optional[random.Random] = None) -> List[TeamDraft]:
    shuffled = list(attendees)
    (rng or random.Random()).shuffle(shuffled)

    teams: List[TeamDraft] = []
    for i in range(0, len(shuffled) - 1, 2):
        p1, p2 = shuffled[i], shuffled[i + 1]
        teams.append(TeamDraft(
            name=team_name(p1, p2),
            seed=len(teams) + 1,
            player_a_id=p1.id,
            player_b_id=p2.id,
        ))
    return teams


def create_fair_teams(attendees: List[Attendee]) -> List[TeamDraft]:
    # sorted() is stable: equal ratings keep attendance order
    ordered = sorted(attendees, key=lambda a: a.rating, reverse=True)

    teams: List[TeamDraft] = []
    left, right = 0, len(ordered) - 1
    while left < right:
        high, low = ordered[left], ordered[right]
        teams.append(TeamDraft(
            name=team_name(high, low),
            seed=len(teams) + 1,
            player_a_id=high.id,
            player_b_id=low.id,
        ))
        left += 1
        right -= 1
    return teams


def form_teams(
    attendees: List[Attendee],
    mode: TeamMode,
    rng: Optional[random.Random] = None,
) -> List[TeamDraft]:
    """Form teams under the selected policy. Callers decide whether the count is enough."""
    if mode == TeamMode.FAIR:
        return create_fair_teams(attendees)
    if mode == TeamMode.RANDOM:
        return create_random_teams(attendees, rng)
    raise ValueError(f"Unknown team mode: {mode}")
