"""
Stage Planner — decide the opening stage and its matches.

Strategies (selected by SpecialMode, then team count):
  MIXED_ROUND_ROBIN, 5 attendees -> plan_five_player_rotation (5 matches)
  MIXED_ROUND_ROBIN, 2 teams     -> plan_two_team_mixed (3 partitions)
  odd team count                 -> plan_round_robin (every pair once)
  even team count                -> plan_bracket_round (straight to BRACKET)

Planning is pure: it returns MatchDraft rows for the caller to persist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ladder.models.match import DEFAULT_BEST_OF, MatchStage, TournamentMatch
from ladder.models.team import TournamentTeam
from ladder.models.tournament import SpecialMode, TournamentStage
from ladder.services.match_sides import SIDE_A
from ladder.services.team_formation import Attendee

FIVE_PLAYER_ROTATION_SIZE = 5
MIXED_TEAM_COUNT = 2


@dataclass
class MatchDraft:
    stage: MatchStage
    round: int
    slot: int
    team_a_player_ids: List[int]
    team_b_player_ids: List[int]
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    best_of: int = DEFAULT_BEST_OF
    meta: Optional[Dict[str, Any]] = None
    is_complete: bool = False
    winner_team_id: Optional[int] = None
    winner_side: Optional[str] = None

    def to_model(self, tournament_id: int) -> TournamentMatch:
        return TournamentMatch(
            tournament_id=tournament_id,
            stage=self.stage,
            round=self.round,
            slot=self.slot,
            best_of=self.best_of,
            team_a_id=self.team_a_id,
            team_b_id=self.team_b_id,
            team_a_player_ids=list(self.team_a_player_ids),
            team_b_player_ids=list(self.team_b_player_ids),
            meta_json=self.meta,
            is_complete=self.is_complete,
            winner_team_id=self.winner_team_id,
            winner_side=self.winner_side,
        )


@dataclass
class StagePlan:
    stage: TournamentStage
    matches: List[MatchDraft] = field(default_factory=list)


def select_special_mode(attendee_count: int, team_count: int) -> SpecialMode:
    if attendee_count == FIVE_PLAYER_ROTATION_SIZE or team_count == MIXED_TEAM_COUNT:
        return SpecialMode.MIXED_ROUND_ROBIN
    return SpecialMode.NONE


def plan_five_player_rotation(attendees: Sequence[Attendee]) -> List[MatchDraft]:
    """Round r: attendee r sits out; the next four (rotating from r+1) play first two vs last two."""
    if len(attendees) != FIVE_PLAYER_ROTATION_SIZE:
        raise ValueError(f"Five-player rotation needs exactly 5 attendees, got {len(attendees)}")

    n = len(attendees)
    drafts: List[MatchDraft] = []
    for r in range(n):
        sit_out = attendees[r]
        active = [attendees[(r + offset) % n] for offset in range(1, n)]
        drafts.append(MatchDraft(
            stage=MatchStage.ROUND_ROBIN,
            round=1,
            slot=r + 1,
            team_a_player_ids=[active[0].id, active[1].id],
            team_b_player_ids=[active[2].id, active[3].id],
            meta={"sit_out_player_id": sit_out.id, "sit_out_player_name": sit_out.name},
        ))
    return drafts


def plan_two_team_mixed(teams: Sequence[TournamentTeam]) -> List[MatchDraft]:
    """Every 2-2 partition of the four players once: (A1A2 v B1B2), (A1B1 v A2B2), (A1B2 v A2B1)."""
    if len(teams) != MIXED_TEAM_COUNT:
        raise ValueError(f"Mixed round robin needs exactly 2 teams, got {len(teams)}")
    team1, team2 = sorted(teams, key=lambda t: t.seed)
    if team1.player_b_id is None or team2.player_b_id is None:
        raise ValueError("Mixed round robin needs two full teams")

    a1, a2 = team1.player_a_id, team1.player_b_id
    b1, b2 = team2.player_a_id, team2.player_b_id
    partitions = [
        ([a1, a2], [b1, b2]),
        ([a1, b1], [a2, b2]),
        ([a1, b2], [a2, b1]),
    ]
    return [
        MatchDraft(
            stage=MatchStage.ROUND_ROBIN,
            round=1,
            slot=i + 1,
            team_a_player_ids=side_a,
            team_b_player_ids=side_b,
            meta={"mixed_round": True},
        )
        for i, (side_a, side_b) in enumerate(partitions)
    ]


def plan_round_robin(teams: Sequence[TournamentTeam]) -> List[MatchDraft]:
    """Every team plays every other team once; slot i*100+j keeps pairs stably ordered."""
    drafts: List[MatchDraft] = []
    for i in range(len(teams)):
        for j in range(i + 1, len(teams)):
            team_a, team_b = teams[i], teams[j]
            drafts.append(MatchDraft(
                stage=MatchStage.ROUND_ROBIN,
                round=1,
                slot=i * 100 + j,
                team_a_id=team_a.id,
                team_b_id=team_b.id,
                team_a_player_ids=team_a.player_ids,
                team_b_player_ids=team_b.player_ids,
            ))
    return drafts


def plan_bracket_round(teams: Sequence[TournamentTeam], round_number: int) -> List[MatchDraft]:
    """Pair teams in order (1v2, 3v4, ...). A trailing unpaired team gets a completed bye."""
    drafts: List[MatchDraft] = []
    for i in range(0, len(teams), 2):
        team_a = teams[i]
        team_b = teams[i + 1] if i + 1 < len(teams) else None
        is_bye = team_b is None
        drafts.append(MatchDraft(
            stage=MatchStage.BRACKET,
            round=round_number,
            slot=i // 2 + 1,
            team_a_id=team_a.id,
            team_b_id=team_b.id if team_b else None,
            team_a_player_ids=team_a.player_ids,
            team_b_player_ids=team_b.player_ids if team_b else [],
            is_complete=is_bye,
            winner_team_id=team_a.id if is_bye else None,
            winner_side=SIDE_A if is_bye else None,
        ))
    return drafts


def plan_initial_stage(
    teams: Sequence[TournamentTeam],
    attendees: Sequence[Attendee],
    special_mode: SpecialMode,
) -> StagePlan:
    """Choose the opening stage. Teams must already be persisted (ids assigned) and in seed order."""
    if special_mode == SpecialMode.MIXED_ROUND_ROBIN:
        if len(attendees) == FIVE_PLAYER_ROTATION_SIZE:
            return StagePlan(TournamentStage.ROUND_ROBIN, plan_five_player_rotation(attendees))
        return StagePlan(TournamentStage.ROUND_ROBIN, plan_two_team_mixed(teams))

    if len(teams) % 2 == 1:
        return StagePlan(TournamentStage.ROUND_ROBIN, plan_round_robin(teams))

    return StagePlan(TournamentStage.BRACKET, plan_bracket_round(teams, 1))
