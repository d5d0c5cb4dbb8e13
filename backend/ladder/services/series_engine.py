"""
Match/Series Engine — best-of-N scoring for a single match.

score_series_game() is pure and decides what one game does to the series.
apply_series_update() writes that decision onto the match (and round-robin
team counters) inside the caller's transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlmodel import Session

from ladder.models.match import MatchStage, TournamentMatch
from ladder.models.team import TournamentTeam
from ladder.services.errors import InvalidInputError, InvalidStateError
from ladder.services.match_sides import SIDE_A, SIDE_B, PersistedTeam, match_sides, other_side


@dataclass
class SeriesUpdate:
    game_number: int
    game_winner_side: str
    wins_a: int
    wins_b: int
    is_complete: bool
    winner_side: Optional[str] = None


def wins_needed(best_of: int) -> int:
    """ceil(best_of / 2): 2 for best-of-3."""
    return best_of // 2 + 1


def score_series_game(
    match: TournamentMatch, games_played: int, score_a: int, score_b: int
) -> SeriesUpdate:
    """Score one game of the series without mutating the match.

    Raises:
        InvalidInputError if the game is tied
        InvalidStateError if the match is already complete
    """
    if score_a == score_b:
        raise InvalidInputError("Games cannot end in a tie")
    if match.is_complete:
        raise InvalidStateError("Match is already complete")

    game_number = games_played + 1
    game_winner = SIDE_A if score_a > score_b else SIDE_B
    wins_a = match.wins_a + (1 if game_winner == SIDE_A else 0)
    wins_b = match.wins_b + (1 if game_winner == SIDE_B else 0)

    needed = wins_needed(match.best_of)
    is_complete = wins_a >= needed or wins_b >= needed or game_number >= match.best_of

    winner_side = None
    if is_complete:
        # best_of is odd, so the counts cannot be level here
        winner_side = SIDE_A if wins_a > wins_b else SIDE_B

    return SeriesUpdate(
        game_number=game_number,
        game_winner_side=game_winner,
        wins_a=wins_a,
        wins_b=wins_b,
        is_complete=is_complete,
        winner_side=winner_side,
    )


def apply_series_update(session: Session, match: TournamentMatch, update: SeriesUpdate) -> None:
    """Write series counters and, on completion, winner/loser links and round-robin counters."""
    match.wins_a = update.wins_a
    match.wins_b = update.wins_b
    match.is_complete = update.is_complete

    if update.is_complete:
        match.winner_side = update.winner_side
        side_a, side_b = match_sides(match)
        sides = {SIDE_A: side_a, SIDE_B: side_b}
        winner = sides[update.winner_side]
        loser = sides[other_side(update.winner_side)]

        if isinstance(winner, PersistedTeam):
            match.winner_team_id = winner.team_id
        if isinstance(loser, PersistedTeam):
            match.loser_team_id = loser.team_id

        if match.stage == MatchStage.ROUND_ROBIN and isinstance(winner, PersistedTeam) and isinstance(loser, PersistedTeam):
            winning_team = session.get(TournamentTeam, winner.team_id)
            losing_team = session.get(TournamentTeam, loser.team_id)
            winning_team.wins += 1
            losing_team.losses += 1
            session.add(winning_team)
            session.add(losing_team)

    session.add(match)
