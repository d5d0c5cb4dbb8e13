"""
Tournament Orchestrator — the four operations callers use.

  setup_tournament        form teams, plan the opening stage, persist it all
  record_tournament_game  score one game, update the series, run transitions
  end_tournament_early    stop an ACTIVE tournament without a winner
  get_session_tournament  hydrated read

Each mutating call is one unit of work on the SQLModel session: every write
is flushed inside a single transaction that commits once or rolls back.
Badge awarding runs after the commit through PostCommitHooks and can never
undo a recorded result.
"""

from __future__ import annotations

import logging
import random
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from ladder.models.match import TournamentMatch, TournamentMatchGame
from ladder.models.player import PlaySession
from ladder.models.team import TournamentTeam
from ladder.models.tournament import TeamMode, Tournament, TournamentStage, TournamentStatus
from ladder.services.collaborators import (
    AttendanceProvider,
    BadgeAwarder,
    EloGameRecorder,
    GameRecorder,
    LoggingBadgeAwarder,
    SqlAttendanceProvider,
)
from ladder.services.errors import ConflictError, InvalidInputError, InvalidStateError, NotFoundError
from ladder.services.events import PostCommitHooks, TournamentCompleted
from ladder.services.series_engine import apply_series_update, score_series_game
from ladder.services.stage_planner import plan_initial_stage, select_special_mode
from ladder.services.stage_transition import run_stage_transitions
from ladder.services.team_formation import form_teams
from ladder.services.tournament_view import TournamentDetail, build_tournament_detail

logger = logging.getLogger(__name__)

MIN_ATTENDEES = 4
MIN_TEAMS = 2


class TournamentService:
    def __init__(
        self,
        session: Session,
        attendance: Optional[AttendanceProvider] = None,
        games: Optional[GameRecorder] = None,
        badges: Optional[BadgeAwarder] = None,
        rng: Optional[random.Random] = None,
    ):
        self.session = session
        self.attendance = attendance or SqlAttendanceProvider(session)
        self.games = games or EloGameRecorder(session)
        self.badges = badges or LoggingBadgeAwarder()
        self.rng = rng
        self.hooks = PostCommitHooks()
        self.hooks.register(self._award_champion_badges)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _unit_of_work(self) -> Iterator[None]:
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    def _award_champion_badges(self, event: TournamentCompleted) -> None:
        for player_id in event.player_ids:
            try:
                self.badges.award_eligible_badges(player_id)
            except Exception:
                logger.exception(
                    "Badge award failed for player %d (tournament %d)", player_id, event.tournament_id
                )

    def _tournament_for_session(self, session_id: int) -> Optional[Tournament]:
        return self.session.exec(
            select(Tournament).where(Tournament.session_id == session_id)
        ).first()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def setup_tournament(self, session_id: int, mode: Union[TeamMode, str]) -> TournamentDetail:
        """Create tournament, teams and opening matches atomically.

        Raises:
            NotFoundError if the play session does not exist
            ConflictError if any tournament is ACTIVE, or this session already has one
            InvalidInputError for an unknown mode, < 4 attendees, or < 2 teams
        """
        try:
            team_mode = TeamMode(mode)
        except ValueError:
            raise InvalidInputError(f"Unknown team mode: {mode}")

        with self._unit_of_work():
            if self.session.get(PlaySession, session_id) is None:
                raise NotFoundError(f"Session {session_id} not found")

            active = self.session.exec(
                select(Tournament).where(Tournament.status == TournamentStatus.ACTIVE)
            ).first()
            if active is not None:
                raise ConflictError("A tournament is already active")
            if self._tournament_for_session(session_id) is not None:
                raise ConflictError(f"Session {session_id} already has a tournament")

            attendees = self.attendance.present_attendees(session_id)
            if len(attendees) < MIN_ATTENDEES:
                raise InvalidInputError("Need at least 4 attendees to start a tournament")

            drafts = form_teams(attendees, team_mode, self.rng)
            if len(drafts) < MIN_TEAMS:
                raise InvalidInputError("Need at least 2 teams to start a tournament")

            special_mode = select_special_mode(len(attendees), len(drafts))
            tournament = Tournament(
                session_id=session_id,
                status=TournamentStatus.ACTIVE,
                team_mode=team_mode,
                stage=TournamentStage.ROUND_ROBIN,
                special_mode=special_mode,
            )
            self.session.add(tournament)
            try:
                self.session.flush()
            except IntegrityError as e:
                # Lost a race against another setup; the partial unique index caught it
                raise ConflictError("A tournament is already active") from e

            teams = [
                TournamentTeam(
                    tournament_id=tournament.id,
                    name=d.name,
                    seed=d.seed,
                    player_a_id=d.player_a_id,
                    player_b_id=d.player_b_id,
                )
                for d in drafts
            ]
            self.session.add_all(teams)
            self.session.flush()

            plan = plan_initial_stage(teams, attendees, special_mode)
            for draft in plan.matches:
                self.session.add(draft.to_model(tournament.id))
            tournament.stage = plan.stage
            self.session.add(tournament)

        logger.info(
            "Tournament %d set up for session %d: %d attendees, %d teams, mode=%s, special=%s, stage=%s",
            tournament.id,
            session_id,
            len(attendees),
            len(teams),
            team_mode.value,
            special_mode.value,
            plan.stage.value,
        )
        return build_tournament_detail(self.session, tournament)

    def record_tournament_game(
        self,
        session_id: int,
        tournament_id: int,
        match_id: int,
        score_a: int,
        score_b: int,
    ) -> TournamentDetail:
        """Record one game of a match series and advance the tournament.

        Raises:
            InvalidInputError if the score is tied
            NotFoundError if the tournament (for this session) or match is missing
            InvalidStateError if the tournament is not ACTIVE or the match is complete
        """
        if score_a == score_b:
            raise InvalidInputError("Games cannot end in a tie")

        with self._unit_of_work():
            tournament = self.session.get(Tournament, tournament_id)
            if tournament is None or tournament.session_id != session_id:
                raise NotFoundError("Tournament not found")
            if not tournament.is_active:
                raise InvalidStateError("Tournament is not active")

            match = self.session.get(TournamentMatch, match_id)
            if match is None or match.tournament_id != tournament_id:
                raise NotFoundError("Match not found")
            if match.is_complete:
                raise InvalidStateError("Match is already complete")

            games_played = len(self.session.exec(
                select(TournamentMatchGame).where(TournamentMatchGame.tournament_match_id == match.id)
            ).all())
            update = score_series_game(match, games_played, score_a, score_b)

            game = self.games.create_scored_game(
                session_id,
                list(match.team_a_player_ids),
                list(match.team_b_player_ids),
                score_a,
                score_b,
            )
            self.session.add(TournamentMatchGame(
                tournament_match_id=match.id,
                game_id=game.id,
                game_number=update.game_number,
            ))
            apply_series_update(self.session, match, update)
            self.session.flush()

            completed = run_stage_transitions(self.session, tournament)

        if completed is not None:
            self.hooks.fire(completed)
        return build_tournament_detail(self.session, tournament)

    def end_tournament_early(self, session_id: int) -> TournamentDetail:
        """Stop an ACTIVE tournament with no winner; terminal tournaments are returned unchanged."""
        with self._unit_of_work():
            tournament = self._tournament_for_session(session_id)
            if tournament is None:
                raise NotFoundError("Tournament not found")
            if tournament.is_active:
                tournament.status = TournamentStatus.ENDED
                tournament.stage = TournamentStage.ENDED
                tournament.ended_at = datetime.now(timezone.utc)
                self.session.add(tournament)
                logger.info("Tournament %d ended early", tournament.id)

        return build_tournament_detail(self.session, tournament)

    def get_session_tournament(self, session_id: int) -> Optional[TournamentDetail]:
        tournament = self._tournament_for_session(session_id)
        if tournament is None:
            return None
        return build_tournament_detail(self.session, tournament)
