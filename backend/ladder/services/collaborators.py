"""
Collaborator contracts consumed by TournamentService, with SQL-backed defaults.

The engine only depends on the Protocols. The defaults write through the same
SQLModel session as the tournament so a recorded game, its rating changes and
the series update commit (or roll back) together.
"""

from __future__ import annotations

import logging
from typing import List, Protocol, Sequence

from sqlmodel import Session, select

from ladder.models.game import Game, RatingHistory
from ladder.models.player import Attendance, Player, PlaySession
from ladder.services.elo import PlayerRating, calculate_elo_updates, get_winner
from ladder.services.errors import InvalidInputError, NotFoundError
from ladder.services.team_formation import Attendee

logger = logging.getLogger(__name__)


class AttendanceProvider(Protocol):
    def present_attendees(self, session_id: int) -> List[Attendee]:
        ...


class GameRecorder(Protocol):
    def create_scored_game(
        self,
        session_id: int,
        team_a_player_ids: Sequence[int],
        team_b_player_ids: Sequence[int],
        score_a: int,
        score_b: int,
    ) -> Game:
        ...


class BadgeAwarder(Protocol):
    def award_eligible_badges(self, player_id: int) -> None:
        ...


class SqlAttendanceProvider:
    """Present attendees for a play session, in attendance order."""

    def __init__(self, session: Session):
        self.session = session

    def present_attendees(self, session_id: int) -> List[Attendee]:
        rows = self.session.exec(
            select(Attendance, Player)
            .join(Player, Player.id == Attendance.player_id)
            .where(Attendance.session_id == session_id, Attendance.present == True)  # noqa: E712
            .order_by(Attendance.id)
        ).all()
        return [
            Attendee(id=player.id, name=player.name, emoji=player.emoji, rating=player.rating)
            for _, player in rows
        ]


class EloGameRecorder:
    """Persist a scored game and apply Elo deltas to every listed player.

    Does not commit: the caller's unit of work decides.
    """

    def __init__(self, session: Session):
        self.session = session

    def _load_players(self, player_ids: Sequence[int]) -> List[Player]:
        players = []
        for pid in player_ids:
            player = self.session.get(Player, pid)
            if player is None:
                raise NotFoundError(f"Player {pid} not found")
            players.append(player)
        return players

    def create_scored_game(
        self,
        session_id: int,
        team_a_player_ids: Sequence[int],
        team_b_player_ids: Sequence[int],
        score_a: int,
        score_b: int,
    ) -> Game:
        if score_a == score_b:
            raise InvalidInputError("Games cannot end in a tie")
        if self.session.get(PlaySession, session_id) is None:
            raise NotFoundError(f"Session {session_id} not found")

        team_a = self._load_players(team_a_player_ids)
        team_b = self._load_players(team_b_player_ids)

        updates_a, updates_b = calculate_elo_updates(
            [PlayerRating(id=p.id, rating=p.rating) for p in team_a],
            [PlayerRating(id=p.id, rating=p.rating) for p in team_b],
            get_winner(score_a, score_b),
        )

        game = Game(
            session_id=session_id,
            score_a=score_a,
            score_b=score_b,
            team_a_player_ids=list(team_a_player_ids),
            team_b_player_ids=list(team_b_player_ids),
        )
        self.session.add(game)
        self.session.flush()

        players_by_id = {p.id: p for p in team_a + team_b}
        for update in updates_a + updates_b:
            player = players_by_id[update.player_id]
            player.rating = update.rating_after
            self.session.add(player)
            self.session.add(RatingHistory(
                player_id=update.player_id,
                session_id=session_id,
                game_id=game.id,
                rating_before=update.rating_before,
                rating_after=update.rating_after,
            ))

        logger.debug(
            "Game %d recorded (%d-%d), rating changes %s",
            game.id,
            score_a,
            score_b,
            {u.player_id: u.change for u in updates_a + updates_b},
        )
        return game


class LoggingBadgeAwarder:
    """Default badge collaborator: badge rules live outside this service, so only log the request."""

    def award_eligible_badges(self, player_id: int) -> None:
        logger.info("Badge check requested for player %d", player_id)
