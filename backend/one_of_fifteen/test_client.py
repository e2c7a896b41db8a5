from __future__ import annotations

import asyncio
from unittest import IsolatedAsyncioTestCase, TestCase

from .client import GameClient, game_socket_url
from .errors import InvalidInputError
from .identity import SessionIdentityStore
from .models import Role, Round
from .schemas import TIMEOUT_ANSWER


class _FakeChannel:
    def __init__(self, url, on_message=None, on_open=None, on_close=None):
        self.url = url
        self.on_message = on_message
        self.on_open = on_open
        self.on_close = on_close
        self.open = False
        self.connect_calls = 0
        self.disconnected = False
        self.sent: list[dict] = []

    def connect(self) -> None:
        self.connect_calls += 1

    async def disconnect(self) -> None:
        self.disconnected = True
        self.open = False

    async def send(self, message: dict) -> bool:
        if not self.open:
            return False
        self.sent.append(message)
        return True


class GameSocketUrlTests(TestCase):
    def test_builds_socket_url(self):
        self.assertEqual(
            game_socket_url("https://quiz.example.com/api/", "1-of-15"),
            "wss://quiz.example.com/api/games/1-of-15/ws",
        )
        self.assertEqual(game_socket_url("http://localhost:8000", "g"), "ws://localhost:8000/api/games/g/ws")


class GameClientTests(IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.storage: dict = {}
        self.client = GameClient(
            "http://localhost:8000",
            "1-of-15",
            identity=SessionIdentityStore("1-of-15", self.storage),
            channel_factory=_FakeChannel,
            poll_interval=0.01,
        )
        self.channel = self.client.channel

    async def asyncTearDown(self) -> None:
        await self.client.disconnect()

    async def _open(self) -> None:
        self.client.connect()
        self.channel.open = True
        await self.channel.on_open()

    async def test_identifies_on_open(self):
        await self._open()
        self.assertEqual(self.channel.connect_calls, 1)
        self.assertEqual(self.channel.url, "ws://localhost:8000/api/games/1-of-15/ws")
        self.assertEqual(self.channel.sent[0], {"type": "identify", "session_id": self.storage["game_session_1-of-15"]})
        self.assertTrue(self.client.connected)

    async def test_polls_while_open(self):
        await self._open()
        await asyncio.sleep(0.05)
        polls = [m for m in self.channel.sent if m["type"] == "get_state"]
        self.assertGreaterEqual(len(polls), 2)

        await self.channel.on_close()
        self.channel.open = True
        count = len(self.channel.sent)
        await asyncio.sleep(0.03)
        self.assertEqual(len(self.channel.sent), count)
        self.assertFalse(self.client.connected)

    async def test_applies_server_messages(self):
        self.channel.on_message({"type": "error", "message": "It is not your turn"})
        self.assertEqual(self.client.last_error, "It is not your turn")

        self.channel.on_message({"type": "welcome", "role": "contestant"})
        self.assertEqual(self.client.role, Role.CONTESTANT)
        self.assertEqual(self.client.last_error, "")

        self.channel.on_message({"type": "state_update", "game_id": "1-of-15", "status": "round2", "round": "round2"})
        self.assertEqual(self.client.snapshot.status, Round.ROUND2)

        self.channel.on_message({"type": "state_update", "status": "nonsense"})
        self.assertEqual(self.client.snapshot.status, Round.ROUND2)

    async def test_join_contestant_validates_locally(self):
        await self._open()
        with self.assertRaisesRegex(InvalidInputError, "Name"):
            await self.client.join_contestant("  ", "20")
        with self.assertRaisesRegex(InvalidInputError, "realistic"):
            await self.client.join_contestant("Ann", "200")
        self.assertTrue(await self.client.join_contestant(" Ann ", "20"))
        self.assertEqual(self.channel.sent[-1], {"type": "join_contestant", "name": "Ann", "age": "20"})

    async def test_intents_are_not_queued(self):
        self.assertFalse(await self.client.buzz_in())
        self.assertEqual(self.channel.sent, [])

    async def test_intent_payloads(self):
        await self._open()
        await self.client.make_decision("self")
        await self.client.make_decision("point", "p2")
        await self.client.submit_timeout()
        self.assertEqual(
            self.channel.sent[-3:],
            [
                {"type": "make_decision", "choice": "self"},
                {"type": "make_decision", "choice": "point", "target_id": "p2"},
                {"type": "submit_answer", "answer": TIMEOUT_ANSWER},
            ],
        )

    async def test_logout_forgets_identity(self):
        await self._open()
        old_id = self.client.session_id
        self.channel.on_message({"type": "welcome", "role": "presenter"})

        await self.client.logout()

        self.assertEqual(self.channel.sent[-1], {"type": "leave"})
        self.assertTrue(self.channel.disconnected)
        self.assertEqual(self.storage, {})
        self.assertIsNone(self.client.role)
        self.assertIsNone(self.client.session_id)

        self.client.connect()
        self.assertNotEqual(self.client.session_id, old_id)

    async def test_view_follows_snapshot(self):
        await self._open()
        me = self.client.session_id
        self.channel.on_message(
            {
                "type": "state_update",
                "status": "round3",
                "contestants": [{"id": me, "session_id": me, "name": "Ann", "age": "20"}],
            }
        )
        self.assertTrue(self.client.view.can_buzz)
