"""Python client for a game, the counterpart of the browser front end.

Mirrors the server's snapshot, keeps the role assigned by ``welcome`` and
exposes one helper per intent. Nothing here is authoritative: every
``state_update``, pushed or polled, replaces the mirror wholesale.
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from .channel import ConnectionChannel
from .errors import InvalidInputError
from .game import parse_age
from .identity import SessionIdentityStore
from .models import Role
from .schemas import TIMEOUT_ANSWER, ErrorOut, StateUpdate, WelcomeOut, load_outgoing
from .view import View, derive_view

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 2.0


def game_socket_url(base_url: str, game_id: str) -> str:
    base = re.sub(r"/api/?$", "", base_url.rstrip("/")).rstrip("/")
    if base.startswith("https://"):
        base = "wss://" + base[len("https://"):]
    elif base.startswith("http://"):
        base = "ws://" + base[len("http://"):]
    return f"{base}/api/games/{game_id}/ws"


class GameClient:
    def __init__(
        self,
        base_url: str,
        game_id: str,
        identity: Optional[SessionIdentityStore] = None,
        channel_factory: Callable[..., ConnectionChannel] = ConnectionChannel,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ):
        self.game_id = game_id
        self.url = game_socket_url(base_url, game_id)
        self.identity = identity or SessionIdentityStore(game_id)
        self.session_id: Optional[str] = self.identity.get_or_create()
        self.poll_interval = poll_interval
        self.role: Optional[Role] = None
        self.snapshot = StateUpdate(game_id=game_id)
        self.last_error = ""
        self.connected = False
        self._poller: Optional[asyncio.Task] = None
        self.channel = channel_factory(
            self.url,
            on_message=self._on_message,
            on_open=self._on_open,
            on_close=self._on_close,
        )

    @property
    def view(self) -> View:
        return derive_view(self.snapshot, self.session_id)

    def connect(self) -> None:
        self.session_id = self.identity.get_or_create()
        self.channel.connect()

    async def disconnect(self) -> None:
        self._stop_polling()
        await self.channel.disconnect()
        self.connected = False

    # --- channel callbacks ---

    async def _on_open(self) -> None:
        self.connected = True
        if self.session_id:
            await self.channel.send({"type": "identify", "session_id": self.session_id})
        self._start_polling()

    async def _on_close(self) -> None:
        self.connected = False
        self._stop_polling()

    def _on_message(self, message: Dict[str, Any]) -> None:
        try:
            event = load_outgoing(message)
        except ValidationError as e:
            logger.warning("Failed to parse game message: %s", e)
            return

        if isinstance(event, WelcomeOut):
            self.role = event.role
            self.last_error = ""
        elif isinstance(event, StateUpdate):
            self.snapshot = event
        elif isinstance(event, ErrorOut):
            self.last_error = event.message

    # --- polling ---

    def _start_polling(self) -> None:
        if self._poller is not None and not self._poller.done():
            return
        self._poller = asyncio.create_task(self._poll())

    def _stop_polling(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None

    async def _poll(self) -> None:
        while True:
            await asyncio.sleep(self.poll_interval)
            await self.channel.send({"type": "get_state"})

    # --- intents ---

    async def _send(self, message: Dict[str, Any]) -> bool:
        sent = await self.channel.send(message)
        if not sent:
            logger.debug("Dropped %s, channel is not open", message["type"])
        return sent

    async def join_presenter(self) -> bool:
        return await self._send({"type": "join_presenter"})

    async def join_contestant(self, name: str, age: str) -> bool:
        name = name.strip()
        if not name:
            raise InvalidInputError("Name is required")
        parse_age(age)
        return await self._send({"type": "join_contestant", "name": name, "age": str(age).strip()})

    async def toggle_ready(self) -> bool:
        return await self._send({"type": "toggle_ready"})

    async def start_game(self) -> bool:
        return await self._send({"type": "start_game"})

    async def reset_game(self) -> bool:
        return await self._send({"type": "reset_game"})

    async def point_to_player(self, target_id: str) -> bool:
        return await self._send({"type": "point_to_player", "target_id": target_id})

    async def buzz_in(self) -> bool:
        return await self._send({"type": "buzz_in"})

    async def make_decision(self, choice: str, target_id: Optional[str] = None) -> bool:
        message: Dict[str, Any] = {"type": "make_decision", "choice": choice}
        if target_id is not None:
            message["target_id"] = target_id
        return await self._send(message)

    async def submit_answer(self, answer: str) -> bool:
        return await self._send({"type": "submit_answer", "answer": answer})

    async def submit_timeout(self) -> bool:
        return await self.submit_answer(TIMEOUT_ANSWER)

    async def request_state(self) -> bool:
        return await self._send({"type": "get_state"})

    async def logout(self) -> None:
        await self._send({"type": "leave"})
        self.identity.clear()
        await self.disconnect()
        self.session_id = None
        self.role = None
        self.snapshot = StateUpdate(game_id=self.game_id)
