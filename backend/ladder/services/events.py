"""
Post-commit hooks for tournament lifecycle events.

Hooks fire only after the transaction that produced the event has committed.
A failing handler is logged and skipped; it never undoes the committed state
and never stops the remaining handlers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TournamentCompleted:
    tournament_id: int
    session_id: int
    winner_team_id: int
    player_ids: Tuple[int, ...]


Handler = Callable[[TournamentCompleted], None]


@dataclass
class PostCommitHooks:
    handlers: List[Handler] = field(default_factory=list)

    def register(self, handler: Handler) -> None:
        self.handlers.append(handler)

    def fire(self, event: TournamentCompleted) -> None:
        for handler in self.handlers:
            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Post-commit handler %r failed for tournament %d",
                    handler,
                    event.tournament_id,
                )
