from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, Optional

from .config import Settings, get_settings
from .game import GameSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Game sessions keyed by game id, created on first use."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        factory: Optional[Callable[[str], GameSession]] = None,
    ):
        self.settings = settings or get_settings()
        self._factory = factory or (lambda game_id: GameSession(game_id, settings=self.settings))
        self._sessions: Dict[str, GameSession] = {}

    def __contains__(self, game_id: str) -> bool:
        return game_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, game_id: str) -> Optional[GameSession]:
        return self._sessions.get(game_id)

    def get_or_create(self, game_id: str) -> GameSession:
        session = self._sessions.get(game_id)
        if session is None:
            logger.info("Creating game session %s", game_id)
            session = self._factory(game_id)
            self._sessions[game_id] = session
        return session

    async def close(self) -> None:
        await asyncio.gather(*(s.close() for s in self._sessions.values()))
        self._sessions.clear()


registry = SessionRegistry()
