from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class Game(SQLModel, table=True):
    """A single scored game played during a session (tournament or casual)."""

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: int = Field(foreign_key="playsession.id", index=True)
    score_a: int
    score_b: int
    team_a_player_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    team_b_player_ids: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RatingHistory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    player_id: int = Field(foreign_key="player.id", index=True)
    session_id: int = Field(foreign_key="playsession.id")
    game_id: int = Field(foreign_key="game.id")
    rating_before: int
    rating_after: int
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
