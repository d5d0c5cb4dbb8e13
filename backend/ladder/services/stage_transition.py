"""
Stage Transition Engine — runs after every recorded game.

Overall stage machine:
  ROUND_ROBIN -> BRACKET -> COMPLETED
  ROUND_ROBIN -> FINALS  -> COMPLETED   (mixed round robin)
  any active stage -> ENDED             (manual, see TournamentService)

Checks run in order (round-robin finalize, bracket advance, finals finalize)
and each one only acts while the tournament sits in its own stage. Standings
are always recomputed from stored match data, so re-running a check on the
same data yields the same result.

Nothing here commits; the caller owns the transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session, select

from ladder.models.match import DEFAULT_BEST_OF, MatchStage, TournamentMatch
from ladder.models.team import TournamentTeam
from ladder.models.tournament import SpecialMode, Tournament, TournamentStage, TournamentStatus
from ladder.services.events import TournamentCompleted
from ladder.services.match_sides import match_sides, pair_key
from ladder.services.stage_planner import plan_bracket_round

logger = logging.getLogger(__name__)

FINALIST_SEEDS = (98, 99)
FINALIST_NAMES = ("Final Pair A", "Final Pair B")


# ============================================================================
# Standings
# ============================================================================


def rank_standings(teams: Sequence[TournamentTeam]) -> List[TournamentTeam]:
    """Wins desc, losses asc, seed asc. Seeds must be unique for this to be a total order."""
    seeds = [t.seed for t in teams]
    if len(set(seeds)) != len(seeds):
        raise RuntimeError(f"Duplicate team seeds in standings: {sorted(seeds)}")
    return sorted(teams, key=lambda t: (-t.wins, t.losses, t.seed))


def largest_power_of_two_at_most(value: int) -> int:
    result = 1
    while result * 2 <= value:
        result *= 2
    return result


@dataclass
class PairStanding:
    player_ids: Tuple[int, ...]
    game_wins: int
    first_seen: int


def rank_pairs(matches: Sequence[TournamentMatch]) -> List[PairStanding]:
    """Total game wins per roster pair across the given matches.

    Ties keep first-appearance order (matches in the order given, side A before B).
    """
    table: Dict[Tuple[int, ...], PairStanding] = {}
    for match in matches:
        side_a, side_b = match_sides(match)
        for side, wins in ((side_a, match.wins_a), (side_b, match.wins_b)):
            key = pair_key(side)
            if key not in table:
                table[key] = PairStanding(player_ids=key, game_wins=0, first_seen=len(table))
            table[key].game_wins += wins
    return sorted(table.values(), key=lambda p: (-p.game_wins, p.first_seen))


def pick_finalist_pairs(ranked: Sequence[PairStanding]) -> Optional[Tuple[PairStanding, PairStanding]]:
    """Top pair plus the best-ranked pair that shares no player with it."""
    if not ranked:
        return None
    top = ranked[0]
    for candidate in ranked[1:]:
        if not set(candidate.player_ids) & set(top.player_ids):
            return top, candidate
    return None


# ============================================================================
# Queries
# ============================================================================


def _stage_matches(session: Session, tournament_id: int, stage: MatchStage) -> List[TournamentMatch]:
    return list(session.exec(
        select(TournamentMatch)
        .where(
            TournamentMatch.tournament_id == tournament_id,
            TournamentMatch.stage == stage,
        )
        .order_by(TournamentMatch.round, TournamentMatch.slot, TournamentMatch.id)
    ).all())


def _teams_in_order(session: Session, team_ids: Sequence[int]) -> List[TournamentTeam]:
    return [session.get(TournamentTeam, tid) for tid in team_ids]


# ============================================================================
# Completion
# ============================================================================


def complete_tournament(session: Session, tournament: Tournament, winner_team_id: int) -> TournamentCompleted:
    tournament.status = TournamentStatus.COMPLETED
    tournament.stage = TournamentStage.COMPLETED
    tournament.winner_team_id = winner_team_id
    tournament.ended_at = datetime.now(timezone.utc)
    session.add(tournament)

    winner = session.get(TournamentTeam, winner_team_id)
    logger.info("Tournament %d completed; winner team %d (%s)", tournament.id, winner_team_id, winner.name)
    return TournamentCompleted(
        tournament_id=tournament.id,
        session_id=tournament.session_id,
        winner_team_id=winner_team_id,
        player_ids=tuple(winner.player_ids),
    )


# ============================================================================
# Round robin -> bracket / finals
# ============================================================================


def finalize_round_robin(session: Session, tournament: Tournament) -> bool:
    """Promote out of ROUND_ROBIN once every round-robin match is complete. Returns True if promoted."""
    if tournament.stage != TournamentStage.ROUND_ROBIN:
        return False

    matches = _stage_matches(session, tournament.id, MatchStage.ROUND_ROBIN)
    if not matches or not all(m.is_complete for m in matches):
        return False

    if tournament.special_mode == SpecialMode.MIXED_ROUND_ROBIN:
        return _promote_mixed_finalists(session, tournament, matches)
    return _promote_to_bracket(session, tournament)


def _promote_mixed_finalists(
    session: Session, tournament: Tournament, matches: List[TournamentMatch]
) -> bool:
    finalists = pick_finalist_pairs(rank_pairs(matches))
    if finalists is None:
        logger.warning("Tournament %d: no two disjoint pairs to send to the final", tournament.id)
        return False

    teams: List[TournamentTeam] = []
    for pair, seed, name in zip(finalists, FINALIST_SEEDS, FINALIST_NAMES):
        team = TournamentTeam(
            tournament_id=tournament.id,
            name=name,
            seed=seed,
            player_a_id=pair.player_ids[0],
            player_b_id=pair.player_ids[1] if len(pair.player_ids) > 1 else None,
        )
        session.add(team)
        teams.append(team)
    session.flush()

    team_a, team_b = teams
    session.add(TournamentMatch(
        tournament_id=tournament.id,
        stage=MatchStage.WINNERS_FINAL,
        round=1,
        slot=1,
        best_of=DEFAULT_BEST_OF,
        team_a_id=team_a.id,
        team_b_id=team_b.id,
        team_a_player_ids=team_a.player_ids,
        team_b_player_ids=team_b.player_ids,
    ))
    tournament.stage = TournamentStage.FINALS
    session.add(tournament)
    logger.info(
        "Tournament %d: mixed round robin done, final %s vs %s",
        tournament.id,
        finalists[0].player_ids,
        finalists[1].player_ids,
    )
    return True


def _promote_to_bracket(session: Session, tournament: Tournament) -> bool:
    teams = session.exec(
        select(TournamentTeam).where(TournamentTeam.tournament_id == tournament.id)
    ).all()
    standings = rank_standings(teams)
    bracket_size = largest_power_of_two_at_most(len(standings))
    qualifiers = standings[:bracket_size]
    if len(qualifiers) < 2:
        logger.warning("Tournament %d: fewer than 2 qualifiers, staying in round robin", tournament.id)
        return False

    # Regenerate the bracket from final standings
    for stale in _stage_matches(session, tournament.id, MatchStage.BRACKET):
        session.delete(stale)
    session.flush()

    for draft in plan_bracket_round(qualifiers, 1):
        session.add(draft.to_model(tournament.id))
    tournament.stage = TournamentStage.BRACKET
    session.add(tournament)
    logger.info(
        "Tournament %d: round robin done, %d of %d teams qualify for the bracket",
        tournament.id,
        len(qualifiers),
        len(standings),
    )
    return True


# ============================================================================
# Bracket
# ============================================================================


def advance_bracket(session: Session, tournament: Tournament) -> Optional[TournamentCompleted]:
    """When the highest bracket round is complete, crown a winner or build the next round."""
    if tournament.stage != TournamentStage.BRACKET:
        return None

    matches = _stage_matches(session, tournament.id, MatchStage.BRACKET)
    if not matches:
        return None
    highest_round = max(m.round for m in matches)
    current = [m for m in matches if m.round == highest_round]
    if not all(m.is_complete for m in current):
        return None

    winners = [m.winner_team_id for m in current if m.winner_team_id is not None]
    if len(winners) == 1:
        return complete_tournament(session, tournament, winners[0])

    for draft in plan_bracket_round(_teams_in_order(session, winners), highest_round + 1):
        session.add(draft.to_model(tournament.id))
    logger.info(
        "Tournament %d: bracket round %d done, %d teams advance",
        tournament.id,
        highest_round,
        len(winners),
    )

    if len(current) == 2:
        _create_consolation_match(session, tournament, current)
    return None


def _create_consolation_match(
    session: Session, tournament: Tournament, semifinals: List[TournamentMatch]
) -> None:
    """Semifinal losers meet once for third place."""
    losers = [m.loser_team_id for m in semifinals if m.loser_team_id is not None]
    if len(losers) != 2:
        return
    if _stage_matches(session, tournament.id, MatchStage.LOSERS_FINAL):
        return

    team_a, team_b = _teams_in_order(session, losers)
    session.add(TournamentMatch(
        tournament_id=tournament.id,
        stage=MatchStage.LOSERS_FINAL,
        round=1,
        slot=1,
        best_of=DEFAULT_BEST_OF,
        team_a_id=team_a.id,
        team_b_id=team_b.id,
        team_a_player_ids=team_a.player_ids,
        team_b_player_ids=team_b.player_ids,
    ))
    logger.info("Tournament %d: consolation match %s vs %s", tournament.id, team_a.name, team_b.name)


# ============================================================================
# Finals (mixed round robin)
# ============================================================================


def finalize_finals(session: Session, tournament: Tournament) -> Optional[TournamentCompleted]:
    if tournament.stage != TournamentStage.FINALS:
        return None
    finals = _stage_matches(session, tournament.id, MatchStage.WINNERS_FINAL)
    if not finals or not finals[0].is_complete:
        return None
    return complete_tournament(session, tournament, finals[0].winner_team_id)


def run_stage_transitions(session: Session, tournament: Tournament) -> Optional[TournamentCompleted]:
    """Round-robin finalize, then bracket advance, then finals finalize."""
    finalize_round_robin(session, tournament)
    event = advance_bracket(session, tournament)
    if event is None:
        event = finalize_finals(session, tournament)
    return event
