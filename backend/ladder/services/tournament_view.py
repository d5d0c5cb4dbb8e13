"""
Hydrated tournament read model.

Everything a client needs to render a tournament in one object: teams in
seed order, matches in (stage, round, slot) order, rosters resolved to
players, and each match's games in game-number order.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel
from sqlmodel import Session, select

from ladder.models.game import Game
from ladder.models.match import MATCH_STAGE_ORDER, MatchStage, TournamentMatch, TournamentMatchGame
from ladder.models.player import Player
from ladder.models.team import TournamentTeam
from ladder.models.tournament import SpecialMode, TeamMode, Tournament, TournamentStage, TournamentStatus


class PlayerSummary(BaseModel):
    id: int
    name: str
    emoji: str
    rating: int


class TeamDetail(BaseModel):
    id: int
    name: str
    seed: int
    wins: int
    losses: int
    player_a: Optional[PlayerSummary] = None
    player_b: Optional[PlayerSummary] = None


class MatchGameDetail(BaseModel):
    game_number: int
    game_id: int
    score_a: int
    score_b: int
    created_at: datetime


class MatchDetail(BaseModel):
    id: int
    stage: MatchStage
    round: int
    slot: int
    best_of: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    team_a_players: List[PlayerSummary]
    team_b_players: List[PlayerSummary]
    wins_a: int
    wins_b: int
    is_complete: bool
    is_bye: bool
    winner_team_id: Optional[int] = None
    loser_team_id: Optional[int] = None
    winner_side: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    games: List[MatchGameDetail]


class TournamentDetail(BaseModel):
    id: int
    session_id: int
    status: TournamentStatus
    team_mode: TeamMode
    stage: TournamentStage
    special_mode: SpecialMode
    winner_team_id: Optional[int] = None
    winner_team: Optional[TeamDetail] = None
    created_at: datetime
    ended_at: Optional[datetime] = None
    teams: List[TeamDetail]
    matches: List[MatchDetail]


class _PlayerCache:
    def __init__(self, session: Session):
        self.session = session
        self._cache: Dict[int, Optional[PlayerSummary]] = {}

    def get(self, player_id: Optional[int]) -> Optional[PlayerSummary]:
        if player_id is None:
            return None
        if player_id not in self._cache:
            player = self.session.get(Player, player_id)
            self._cache[player_id] = (
                PlayerSummary(id=player.id, name=player.name, emoji=player.emoji, rating=player.rating)
                if player
                else None
            )
        return self._cache[player_id]

    def roster(self, player_ids: List[int]) -> List[PlayerSummary]:
        return [p for p in (self.get(pid) for pid in player_ids or []) if p is not None]


def _team_detail(team: TournamentTeam, players: _PlayerCache) -> TeamDetail:
    return TeamDetail(
        id=team.id,
        name=team.name,
        seed=team.seed,
        wins=team.wins,
        losses=team.losses,
        player_a=players.get(team.player_a_id),
        player_b=players.get(team.player_b_id),
    )


def _match_games(session: Session, match_id: int) -> List[MatchGameDetail]:
    rows = session.exec(
        select(TournamentMatchGame, Game)
        .join(Game, Game.id == TournamentMatchGame.game_id)
        .where(TournamentMatchGame.tournament_match_id == match_id)
        .order_by(TournamentMatchGame.game_number)
    ).all()
    return [
        MatchGameDetail(
            game_number=link.game_number,
            game_id=game.id,
            score_a=game.score_a,
            score_b=game.score_b,
            created_at=game.created_at,
        )
        for link, game in rows
    ]


def _match_sort_key(match: TournamentMatch):
    return (MATCH_STAGE_ORDER[MatchStage(match.stage)], match.round, match.slot, match.id)


def build_tournament_detail(session: Session, tournament: Tournament) -> TournamentDetail:
    players = _PlayerCache(session)

    teams = session.exec(
        select(TournamentTeam)
        .where(TournamentTeam.tournament_id == tournament.id)
        .order_by(TournamentTeam.seed)
    ).all()
    team_details = [_team_detail(t, players) for t in teams]
    teams_by_id = {t.id: t for t in team_details}

    matches = session.exec(
        select(TournamentMatch).where(TournamentMatch.tournament_id == tournament.id)
    ).all()
    match_details = [
        MatchDetail(
            id=m.id,
            stage=m.stage,
            round=m.round,
            slot=m.slot,
            best_of=m.best_of,
            team_a_id=m.team_a_id,
            team_b_id=m.team_b_id,
            team_a_players=players.roster(m.team_a_player_ids),
            team_b_players=players.roster(m.team_b_player_ids),
            wins_a=m.wins_a,
            wins_b=m.wins_b,
            is_complete=m.is_complete,
            is_bye=m.is_bye,
            winner_team_id=m.winner_team_id,
            loser_team_id=m.loser_team_id,
            winner_side=m.winner_side,
            metadata=m.meta_json,
            games=_match_games(session, m.id),
        )
        for m in sorted(matches, key=_match_sort_key)
    ]

    return TournamentDetail(
        id=tournament.id,
        session_id=tournament.session_id,
        status=tournament.status,
        team_mode=tournament.team_mode,
        stage=tournament.stage,
        special_mode=tournament.special_mode,
        winner_team_id=tournament.winner_team_id,
        winner_team=teams_by_id.get(tournament.winner_team_id),
        created_at=tournament.created_at,
        ended_at=tournament.ended_at,
        teams=team_details,
        matches=match_details,
    )
