from __future__ import annotations

import asyncio
import contextlib
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Sender = Callable[[str], Awaitable[None]]

# oldest frames are dropped once a connection lags this far behind
MAX_PENDING = 32


class Connection:
    """One client channel: an outbound queue drained by a single writer task."""

    def __init__(self, send: Sender):
        self.id = uuid.uuid4().hex
        self.session_id: Optional[str] = None
        self.closed = False
        self.dropped = 0
        self._send = send
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=MAX_PENDING)
        self._writer: Optional[asyncio.Task] = None

    def start(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain())

    def push(self, message: BaseModel) -> None:
        self.push_raw(message.model_dump_json())

    def push_raw(self, payload: str) -> None:
        if self.closed:
            return
        if self._queue.full():
            self._queue.get_nowait()
            self.dropped += 1
            logger.debug("Connection %s is lagging, dropped its oldest frame", self.id)
        self._queue.put_nowait(payload)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _drain(self) -> None:
        while True:
            payload = await self._queue.get()
            try:
                await self._send(payload)
            except Exception:
                # the reader side notices the disconnect and cleans up
                logger.debug("Send failed on connection %s", self.id, exc_info=True)
                self.closed = True
                return

    async def close(self) -> None:
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer
            self._writer = None


class ConnectionHub:
    """Every live connection of one game; fans snapshots out to all of them."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}

    def __len__(self) -> int:
        return len(self._connections)

    def add(self, conn: Connection) -> None:
        self._connections[conn.id] = conn

    def remove(self, conn: Connection) -> None:
        self._connections.pop(conn.id, None)

    def connections(self) -> List[Connection]:
        return list(self._connections.values())

    def count_for(self, session_id: Optional[str]) -> int:
        if session_id is None:
            return 0
        return sum(1 for c in self._connections.values() if c.session_id == session_id and not c.closed)

    def broadcast(self, message: BaseModel) -> int:
        payload = message.model_dump_json()
        sent = 0
        for conn in self._connections.values():
            if not conn.closed:
                conn.push_raw(payload)
                sent += 1
        return sent
