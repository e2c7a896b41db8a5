"""Client side of the game socket, with fixed-interval automatic reconnect.

One runner task owns the socket for the whole lifetime of the channel and
walks ``disconnected -> connecting -> connected``; the only timer is the
backoff sleep inside that task, so two reconnect attempts can never
overlap. ``disconnect()`` stops the runner for good.
"""
from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

import websockets

logger = logging.getLogger(__name__)

RECONNECT_INTERVAL_SECONDS = 2.0


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


async def _call(callback: Optional[Callable], *args) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class ConnectionChannel:
    def __init__(
        self,
        url: str,
        on_message: Optional[Callable[[Dict[str, Any]], Any]] = None,
        on_open: Optional[Callable[[], Any]] = None,
        on_close: Optional[Callable[[], Any]] = None,
        reconnect_interval: float = RECONNECT_INTERVAL_SECONDS,
        connector: Callable = websockets.connect,
    ):
        self.url = url
        self.on_message = on_message
        self.on_open = on_open
        self.on_close = on_close
        self.reconnect_interval = reconnect_interval
        self.state = ChannelState.DISCONNECTED
        self.attempts = 0
        self._connector = connector
        self._ws = None
        self._runner: Optional[asyncio.Task] = None
        self._stopped = True

    @property
    def is_connected(self) -> bool:
        return self.state == ChannelState.CONNECTED and self._ws is not None

    def connect(self) -> None:
        if self._runner is not None and not self._runner.done():
            return
        self._stopped = False
        self._runner = asyncio.create_task(self._run())

    async def disconnect(self) -> None:
        self._stopped = True
        runner, self._runner = self._runner, None
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(websockets.exceptions.WebSocketException, OSError):
                await ws.close()
        if runner is not None:
            runner.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await runner
        self._ws = None
        self.state = ChannelState.DISCONNECTED

    async def send(self, message: Dict[str, Any]) -> bool:
        """Send now or report failure; nothing is queued for later."""
        ws = self._ws
        if ws is None or self.state != ChannelState.CONNECTED:
            return False
        try:
            await ws.send(json.dumps(message))
        except websockets.exceptions.ConnectionClosed:
            return False
        return True

    async def _run(self) -> None:
        while not self._stopped:
            self.state = ChannelState.CONNECTING
            self.attempts += 1
            try:
                async with self._connector(self.url) as ws:
                    self._ws = ws
                    self.state = ChannelState.CONNECTED
                    logger.info("Connected to %s", self.url)
                    await _call(self.on_open)
                    async for raw in ws:
                        await self._deliver(raw)
            except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
                logger.warning("Connection to %s failed: %s", self.url, e)
            finally:
                was_connected = self.state == ChannelState.CONNECTED
                self._ws = None
                self.state = ChannelState.DISCONNECTED
                if was_connected:
                    await _call(self.on_close)

            if self._stopped:
                break
            logger.debug("Reconnecting to %s in %.1fs", self.url, self.reconnect_interval)
            await asyncio.sleep(self.reconnect_interval)

    async def _deliver(self, raw) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring non-JSON frame from %s", self.url)
            return
        await _call(self.on_message, message)
