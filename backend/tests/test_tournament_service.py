"""
Integration tests for TournamentService: full tournament flows on a real
(in-memory) database, from setup to completion.
"""

import logging
import random

import pytest
from sqlmodel import Session, select

from ladder.models import (
    Game,
    MatchStage,
    Player,
    RatingHistory,
    SpecialMode,
    TeamMode,
    Tournament,
    TournamentMatchGame,
    TournamentStage,
    TournamentStatus,
)
from ladder.services.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from ladder.services.tournament_service import TournamentService

# ============================================================================
# Helpers
# ============================================================================


class RecordingBadges:
    def __init__(self, fail=False):
        self.awarded = []
        self.fail = fail

    def award_eligible_badges(self, player_id):
        self.awarded.append(player_id)
        if self.fail:
            raise RuntimeError("badge store unavailable")


class FailingGameRecorder:
    def create_scored_game(self, session_id, team_a_player_ids, team_b_player_ids, score_a, score_b):
        raise RuntimeError("scoreboard offline")


@pytest.fixture
def badges():
    return RecordingBadges()


@pytest.fixture
def service(session: Session, badges):
    return TournamentService(session, badges=badges, rng=random.Random(7))


def _record(service, play, detail, match_id, side):
    score = (11, 5) if side == "A" else (5, 11)
    return service.record_tournament_game(play.id, detail.id, match_id, *score)


def _sweep(service, play, detail, match_id, side="A"):
    """Win a best-of-3 for one side in two games."""
    detail = _record(service, play, detail, match_id, side)
    return _record(service, play, detail, match_id, side)


def _open_matches(detail, stage, round_number=None):
    return [
        m for m in detail.matches
        if m.stage == stage and not m.is_complete and (round_number is None or m.round == round_number)
    ]


def _play_round(service, play, detail, stage, round_number=None, side="A"):
    for match in _open_matches(detail, stage, round_number):
        detail = _sweep(service, play, detail, match.id, side)
    return detail


def _match(detail, match_id):
    return next(m for m in detail.matches if m.id == match_id)


def _ids(players):
    return sorted(p.id for p in players)


# ============================================================================
# Setup
# ============================================================================


class TestSetup:
    def test_four_players_fair_goes_mixed(self, service, make_play_session):
        play, (p1, p2, p3, p4) = make_play_session([1300, 1250, 1000, 900])

        detail = service.setup_tournament(play.id, TeamMode.FAIR)

        assert detail.status == TournamentStatus.ACTIVE
        assert detail.stage == TournamentStage.ROUND_ROBIN
        assert detail.special_mode == SpecialMode.MIXED_ROUND_ROBIN
        assert [(t.player_a.id, t.player_b.id) for t in detail.teams] == [(p1.id, p4.id), (p2.id, p3.id)]
        assert detail.teams[0].name == f"{p1.emoji}{p1.name} + {p4.emoji}{p4.name}"

        rr = [m for m in detail.matches if m.stage == MatchStage.ROUND_ROBIN]
        assert len(rr) == 3
        assert all(m.team_a_id is None and m.team_b_id is None for m in rr)
        assert all(m.metadata == {"mixed_round": True} for m in rr)
        rosters = [(_ids(m.team_a_players), _ids(m.team_b_players)) for m in rr]
        assert rosters == [
            (_ids([p1, p4]), _ids([p2, p3])),
            (_ids([p1, p2]), _ids([p3, p4])),
            (_ids([p1, p3]), _ids([p2, p4])),
        ]

    def test_five_players_rotation(self, service, make_play_session):
        play, players = make_play_session([1500, 1400, 1300, 1200, 1100])

        detail = service.setup_tournament(play.id, "FAIR")

        assert detail.special_mode == SpecialMode.MIXED_ROUND_ROBIN
        assert len(detail.teams) == 2
        assert len(detail.matches) == 5
        sit_outs = [m.metadata["sit_out_player_id"] for m in detail.matches]
        assert sit_outs == [p.id for p in players]
        for match, sitting in zip(detail.matches, players):
            on_court = {p.id for p in match.team_a_players + match.team_b_players}
            assert len(on_court) == 4
            assert sitting.id not in on_court

    def test_odd_team_count_round_robin(self, service, make_play_session):
        play, _ = make_play_session([1500, 1400, 1300, 1200, 1100, 1000])

        detail = service.setup_tournament(play.id, TeamMode.FAIR)

        assert detail.special_mode == SpecialMode.NONE
        assert detail.stage == TournamentStage.ROUND_ROBIN
        assert [m.slot for m in detail.matches] == [1, 2, 102]

    def test_even_team_count_goes_straight_to_bracket(self, service, make_play_session):
        play, _ = make_play_session([1000 + 10 * i for i in range(8)])

        detail = service.setup_tournament(play.id, TeamMode.FAIR)

        assert detail.stage == TournamentStage.BRACKET
        assert [(m.stage, m.round, m.slot) for m in detail.matches] == [
            (MatchStage.BRACKET, 1, 1),
            (MatchStage.BRACKET, 1, 2),
        ]
        seeds = {t.id: t.seed for t in detail.teams}
        assert [(seeds[m.team_a_id], seeds[m.team_b_id]) for m in detail.matches] == [(1, 2), (3, 4)]

    def test_random_mode_leaves_one_player_out(self, service, make_play_session):
        play, players = make_play_session([1000] * 9)

        detail = service.setup_tournament(play.id, TeamMode.RANDOM)

        assert len(detail.teams) == 4
        on_teams = [pid for t in detail.teams for pid in (t.player_a.id, t.player_b.id)]
        assert len(set(on_teams)) == 8
        assert set(on_teams) < {p.id for p in players}

    def test_absent_players_do_not_count(self, service, make_play_session):
        play, _ = make_play_session([1000, 1000, 1000, 1000, 1000], absent=(1, 3))

        with pytest.raises(InvalidInputError):
            service.setup_tournament(play.id, TeamMode.FAIR)

    def test_unknown_mode(self, service, make_play_session):
        play, _ = make_play_session([1000] * 4)

        with pytest.raises(InvalidInputError):
            service.setup_tournament(play.id, "SWISS")

    def test_unknown_session(self, service):
        with pytest.raises(NotFoundError):
            service.setup_tournament(999, TeamMode.FAIR)

    def test_failed_setup_writes_nothing(self, service, session, make_play_session):
        play, _ = make_play_session([1000] * 3)

        with pytest.raises(InvalidInputError):
            service.setup_tournament(play.id, TeamMode.FAIR)

        assert session.exec(select(Tournament)).all() == []


class TestSingleActiveTournament:
    def test_second_active_tournament_rejected(self, service, make_play_session):
        monday, _ = make_play_session([1000] * 4, name="Monday Spike")
        tuesday, _ = make_play_session([1000] * 4, name="Tuesday Spike")
        service.setup_tournament(monday.id, TeamMode.FAIR)

        with pytest.raises(ConflictError):
            service.setup_tournament(tuesday.id, TeamMode.FAIR)

    def test_same_session_rejected_even_after_end(self, service, make_play_session):
        play, _ = make_play_session([1000] * 4)
        service.setup_tournament(play.id, TeamMode.FAIR)
        service.end_tournament_early(play.id)

        with pytest.raises(ConflictError):
            service.setup_tournament(play.id, TeamMode.FAIR)

    def test_ending_frees_the_slot(self, service, make_play_session):
        monday, _ = make_play_session([1000] * 4, name="Monday Spike")
        tuesday, _ = make_play_session([1000] * 4, name="Tuesday Spike")
        service.setup_tournament(monday.id, TeamMode.FAIR)
        service.end_tournament_early(monday.id)

        detail = service.setup_tournament(tuesday.id, TeamMode.FAIR)
        assert detail.status == TournamentStatus.ACTIVE


# ============================================================================
# Mixed formats
# ============================================================================


class TestMixedRoundRobin:
    def test_four_player_flow_to_champion(self, service, badges, make_play_session):
        play, (p1, p2, p3, p4) = make_play_session([1300, 1250, 1000, 900])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        m1, m2, m3 = [m.id for m in detail.matches]

        detail = _sweep(service, play, detail, m1, "A")
        detail = _record(service, play, detail, m2, "A")
        detail = _record(service, play, detail, m2, "B")
        detail = _record(service, play, detail, m2, "A")
        assert detail.stage == TournamentStage.ROUND_ROBIN
        detail = _sweep(service, play, detail, m3, "B")

        # Pair game wins: {p1,p4}=2 {p1,p2}=2 {p2,p4}=2 {p3,p4}=1 {p2,p3}=0 {p1,p3}=0.
        # {p1,p4} leads; the first pair sharing nobody with it is {p2,p3}.
        assert detail.stage == TournamentStage.FINALS
        finalists = [t for t in detail.teams if t.seed in (98, 99)]
        assert [t.name for t in finalists] == ["Final Pair A", "Final Pair B"]
        assert [_ids([t.player_a, t.player_b]) for t in finalists] == [_ids([p1, p4]), _ids([p2, p3])]

        final = _open_matches(detail, MatchStage.WINNERS_FINAL)[0]
        detail = _sweep(service, play, detail, final.id, "A")

        assert detail.status == TournamentStatus.COMPLETED
        assert detail.stage == TournamentStage.COMPLETED
        assert detail.winner_team.seed == 98
        assert detail.ended_at is not None
        assert sorted(badges.awarded) == _ids([p1, p4])

    def test_five_player_rotation_flow(self, service, make_play_session):
        play, (p1, p2, p3, p4, p5) = make_play_session([1500, 1400, 1300, 1200, 1100])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)

        detail = _play_round(service, play, detail, MatchStage.ROUND_ROBIN, side="A")

        # Every pair ends on 2 game wins; first appearance decides
        assert detail.stage == TournamentStage.FINALS
        final = _open_matches(detail, MatchStage.WINNERS_FINAL)[0]
        assert _ids(final.team_a_players) == _ids([p2, p3])
        assert _ids(final.team_b_players) == _ids([p4, p5])

        detail = _record(service, play, detail, final.id, "B")
        detail = _record(service, play, detail, final.id, "A")
        detail = _record(service, play, detail, final.id, "B")

        assert detail.status == TournamentStatus.COMPLETED
        assert detail.winner_team.seed == 99
        assert _match(detail, final.id).winner_side == "B"

    def test_ad_hoc_matches_record_winner_side_only(self, service, make_play_session):
        play, _ = make_play_session([1300, 1250, 1000, 900])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        match_id = detail.matches[0].id

        detail = _sweep(service, play, detail, match_id, "B")

        match = _match(detail, match_id)
        assert match.is_complete
        assert match.winner_side == "B"
        assert match.winner_team_id is None
        assert match.loser_team_id is None
        assert all(t.wins == 0 and t.losses == 0 for t in detail.teams)


# ============================================================================
# Round robin -> bracket
# ============================================================================


class TestRoundRobinToBracket:
    def test_three_teams_top_two_meet(self, service, badges, make_play_session):
        play, players = make_play_session([1500, 1400, 1300, 1200, 1100, 1000])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        t1, t2, t3 = detail.teams
        by_slot = {m.slot: m.id for m in detail.matches}

        detail = _sweep(service, play, detail, by_slot[1], "A")    # T1 beats T2
        detail = _sweep(service, play, detail, by_slot[2], "B")    # T3 beats T1
        assert detail.stage == TournamentStage.ROUND_ROBIN
        detail = _sweep(service, play, detail, by_slot[102], "B")  # T3 beats T2

        records = {t.seed: (t.wins, t.losses) for t in detail.teams}
        assert records == {1: (1, 1), 2: (0, 2), 3: (2, 0)}
        assert detail.stage == TournamentStage.BRACKET

        bracket = [m for m in detail.matches if m.stage == MatchStage.BRACKET]
        assert len(bracket) == 1
        assert (bracket[0].team_a_id, bracket[0].team_b_id) == (t3.id, t1.id)

        detail = _sweep(service, play, detail, bracket[0].id, "A")

        assert detail.status == TournamentStatus.COMPLETED
        assert detail.winner_team_id == t3.id
        assert not [m for m in detail.matches if m.stage == MatchStage.LOSERS_FINAL]
        assert sorted(badges.awarded) == sorted([t3.player_a.id, t3.player_b.id])

    def test_later_games_do_not_regenerate_bracket(self, service, make_play_session):
        play, _ = make_play_session([1000 + 10 * i for i in range(10)])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        detail = _play_round(service, play, detail, MatchStage.ROUND_ROBIN, side="A")
        assert detail.stage == TournamentStage.BRACKET

        first_round = [m.id for m in detail.matches if m.stage == MatchStage.BRACKET]
        assert len(first_round) == 2
        detail = _record(service, play, detail, first_round[0], "A")

        assert [m.id for m in detail.matches if m.stage == MatchStage.BRACKET] == first_round
        assert _match(detail, first_round[0]).wins_a == 1


# ============================================================================
# Bracket
# ============================================================================


class TestBracket:
    def test_four_teams_with_consolation(self, service, make_play_session):
        play, _ = make_play_session([1000 + 10 * i for i in range(8)])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        seeds = {t.id: t.seed for t in detail.teams}

        detail = _play_round(service, play, detail, MatchStage.BRACKET, 1)

        final = _open_matches(detail, MatchStage.BRACKET, 2)
        consolation = _open_matches(detail, MatchStage.LOSERS_FINAL)
        assert len(final) == 1 and len(consolation) == 1
        assert (seeds[final[0].team_a_id], seeds[final[0].team_b_id]) == (1, 3)
        assert (seeds[consolation[0].team_a_id], seeds[consolation[0].team_b_id]) == (2, 4)

        detail = _sweep(service, play, detail, final[0].id, "B")
        assert detail.status == TournamentStatus.COMPLETED
        assert seeds[detail.winner_team_id] == 3

        # The tournament is terminal once the final is decided
        with pytest.raises(InvalidStateError):
            _record(service, play, detail, consolation[0].id, "A")

    def test_consolation_can_be_played_before_final(self, service, make_play_session):
        play, _ = make_play_session([1000 + 10 * i for i in range(8)])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        detail = _play_round(service, play, detail, MatchStage.BRACKET, 1)

        consolation = _open_matches(detail, MatchStage.LOSERS_FINAL)[0]
        detail = _sweep(service, play, detail, consolation.id, "A")

        assert detail.status == TournamentStatus.ACTIVE
        assert len([m for m in detail.matches if m.stage == MatchStage.LOSERS_FINAL]) == 1
        assert len(_open_matches(detail, MatchStage.BRACKET, 2)) == 1

    def test_eight_teams_converge_in_three_rounds(self, service, make_play_session):
        play, _ = make_play_session([1600 - 25 * i for i in range(16)])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        seeds = {t.id: t.seed for t in detail.teams}
        assert len(_open_matches(detail, MatchStage.BRACKET, 1)) == 4

        detail = _play_round(service, play, detail, MatchStage.BRACKET, 1)
        assert len(_open_matches(detail, MatchStage.BRACKET, 2)) == 2
        assert not [m for m in detail.matches if m.stage == MatchStage.LOSERS_FINAL]

        detail = _play_round(service, play, detail, MatchStage.BRACKET, 2)
        final = _open_matches(detail, MatchStage.BRACKET, 3)
        assert len(final) == 1
        assert (seeds[final[0].team_a_id], seeds[final[0].team_b_id]) == (1, 5)
        consolation = [m for m in detail.matches if m.stage == MatchStage.LOSERS_FINAL]
        assert len(consolation) == 1
        assert (seeds[consolation[0].team_a_id], seeds[consolation[0].team_b_id]) == (3, 7)

        detail = _sweep(service, play, detail, final[0].id, "A")
        assert detail.status == TournamentStatus.COMPLETED
        assert seeds[detail.winner_team_id] == 1

    def test_six_teams_bye_in_second_round(self, service, make_play_session):
        play, _ = make_play_session([1600 - 25 * i for i in range(12)])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        seeds = {t.id: t.seed for t in detail.teams}
        assert len(_open_matches(detail, MatchStage.BRACKET, 1)) == 3

        detail = _play_round(service, play, detail, MatchStage.BRACKET, 1)

        second = [m for m in detail.matches if m.stage == MatchStage.BRACKET and m.round == 2]
        assert len(second) == 2
        bye = second[1]
        assert bye.is_bye and bye.is_complete
        assert bye.games == []
        assert seeds[bye.winner_team_id] == 5
        assert bye.winner_side == "A"

        with pytest.raises(InvalidStateError):
            _record(service, play, detail, bye.id, "A")

        detail = _sweep(service, play, detail, second[0].id, "A")

        # Only one real loser in round 2, so no consolation match
        assert not [m for m in detail.matches if m.stage == MatchStage.LOSERS_FINAL]
        final = _open_matches(detail, MatchStage.BRACKET, 3)
        assert (seeds[final[0].team_a_id], seeds[final[0].team_b_id]) == (1, 5)

        detail = _sweep(service, play, detail, final[0].id, "B")
        assert seeds[detail.winner_team_id] == 5


# ============================================================================
# Recording games
# ============================================================================


class TestRecordGame:
    @pytest.fixture
    def started(self, service, make_play_session):
        play, players = make_play_session([1000, 1000, 1000, 1000])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        return play, players, detail

    def test_series_goes_the_distance(self, service, started):
        play, _, detail = started
        match_id = detail.matches[0].id

        for side in ("A", "B", "A"):
            detail = _record(service, play, detail, match_id, side)

        match = _match(detail, match_id)
        assert (match.wins_a, match.wins_b, match.is_complete) == (2, 1, True)
        assert [g.game_number for g in match.games] == [1, 2, 3]
        assert [(g.score_a, g.score_b) for g in match.games] == [(11, 5), (5, 11), (11, 5)]

    def test_ratings_and_history_written(self, service, session, started):
        play, players, detail = started
        match = detail.matches[0]

        service.record_tournament_game(play.id, detail.id, match.id, 11, 5)

        winners = {p.id for p in match.team_a_players}
        for player in players:
            session.refresh(player)
            assert player.rating == (1010 if player.id in winners else 990)
        history = session.exec(select(RatingHistory)).all()
        assert len(history) == 4
        game = session.exec(select(Game)).one()
        assert (game.session_id, game.score_a, game.score_b) == (play.id, 11, 5)
        assert all(h.game_id == game.id for h in history)

    def test_tie_rejected(self, service, started):
        play, _, detail = started
        with pytest.raises(InvalidInputError):
            service.record_tournament_game(play.id, detail.id, detail.matches[0].id, 9, 9)

    def test_unknown_match(self, service, started):
        play, _, detail = started
        with pytest.raises(NotFoundError):
            service.record_tournament_game(play.id, detail.id, 9999, 11, 5)

    def test_unknown_tournament(self, service, started):
        play, _, detail = started
        with pytest.raises(NotFoundError):
            service.record_tournament_game(play.id, 9999, detail.matches[0].id, 11, 5)

    def test_wrong_play_session(self, service, started, make_play_session):
        _, _, detail = started
        other, _ = make_play_session([1000] * 4, name="Other Night")
        with pytest.raises(NotFoundError):
            service.record_tournament_game(other.id, detail.id, detail.matches[0].id, 11, 5)

    def test_match_from_another_tournament(self, service, started, make_play_session):
        play, _, detail = started
        service.end_tournament_early(play.id)
        other_play, _ = make_play_session([1000] * 4, name="Other Night")
        other = service.setup_tournament(other_play.id, TeamMode.FAIR)

        with pytest.raises(NotFoundError):
            service.record_tournament_game(other_play.id, other.id, detail.matches[0].id, 11, 5)

    def test_completed_match(self, service, started):
        play, _, detail = started
        match_id = detail.matches[0].id
        detail = _sweep(service, play, detail, match_id, "A")

        with pytest.raises(InvalidStateError):
            _record(service, play, detail, match_id, "A")

    def test_ended_tournament(self, service, started):
        play, _, detail = started
        service.end_tournament_early(play.id)

        with pytest.raises(InvalidStateError):
            _record(service, play, detail, detail.matches[0].id, "A")

    def test_collaborator_failure_rolls_back(self, session, started):
        play, players, detail = started
        service = TournamentService(session, games=FailingGameRecorder())

        with pytest.raises(RuntimeError, match="scoreboard offline"):
            _record(service, play, detail, detail.matches[0].id, "A")

        assert session.exec(select(TournamentMatchGame)).all() == []
        match = _match(service.get_session_tournament(play.id), detail.matches[0].id)
        assert (match.wins_a, match.wins_b, match.is_complete) == (0, 0, False)
        assert all(session.get(Player, p.id).rating == 1000 for p in players)


# ============================================================================
# Completion hooks
# ============================================================================


class TestCompletionHooks:
    def test_badge_failure_never_undoes_completion(self, session, make_play_session, caplog):
        badges = RecordingBadges(fail=True)
        service = TournamentService(session, badges=badges)
        play, _ = make_play_session([1500, 1400, 1300, 1200, 1100, 1000])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)

        with caplog.at_level(logging.ERROR):
            detail = _play_round(service, play, detail, MatchStage.ROUND_ROBIN)
            detail = _play_round(service, play, detail, MatchStage.BRACKET)

        assert detail.status == TournamentStatus.COMPLETED
        # One call per winning player, each isolated
        assert len(badges.awarded) == 2
        assert caplog.text.count("Badge award failed") == 2
        stored = session.get(Tournament, detail.id)
        assert stored.status == TournamentStatus.COMPLETED

    def test_extra_hooks_fire_after_commit(self, service, session, make_play_session):
        events = []

        def check_committed(event):
            # A fresh session only sees committed rows
            with Session(session.get_bind()) as fresh:
                events.append((event, fresh.get(Tournament, event.tournament_id).status))

        service.hooks.register(check_committed)
        play, _ = make_play_session([1000 + 10 * i for i in range(4)])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        for match in list(detail.matches):
            detail = _sweep(service, play, detail, match.id, "A")
        final = _open_matches(detail, MatchStage.WINNERS_FINAL)[0]
        detail = _sweep(service, play, detail, final.id, "A")

        assert len(events) == 1
        event, status = events[0]
        assert status == TournamentStatus.COMPLETED
        assert event.winner_team_id == detail.winner_team_id
        assert event.session_id == play.id


# ============================================================================
# End early and reads
# ============================================================================


class TestEndAndRead:
    def test_end_early(self, service, make_play_session):
        play, _ = make_play_session([1000] * 4)
        service.setup_tournament(play.id, TeamMode.FAIR)

        detail = service.end_tournament_early(play.id)

        assert detail.status == TournamentStatus.ENDED
        assert detail.stage == TournamentStage.ENDED
        assert detail.winner_team_id is None
        assert detail.ended_at is not None

    def test_end_early_is_a_no_op_on_terminal_tournament(self, service, make_play_session):
        play, _ = make_play_session([1000] * 4)
        service.setup_tournament(play.id, TeamMode.FAIR)
        first = service.end_tournament_early(play.id)

        second = service.end_tournament_early(play.id)

        assert second.model_dump() == first.model_dump()

    def test_end_early_without_tournament(self, service, make_play_session):
        play, _ = make_play_session([1000] * 4)
        with pytest.raises(NotFoundError):
            service.end_tournament_early(play.id)

    def test_no_tournament_reads_none(self, service, make_play_session):
        play, _ = make_play_session([1000] * 4)
        assert service.get_session_tournament(play.id) is None

    def test_reads_are_idempotent(self, service, make_play_session):
        play, _ = make_play_session([1500, 1400, 1300, 1200, 1100, 1000])
        detail = service.setup_tournament(play.id, TeamMode.FAIR)
        _record(service, play, detail, detail.matches[0].id, "A")

        first = service.get_session_tournament(play.id)
        second = service.get_session_tournament(play.id)

        assert first.model_dump() == second.model_dump()
        assert first.matches[0].games[0].game_number == 1
