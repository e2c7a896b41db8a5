import asyncio
import json
from unittest import IsolatedAsyncioTestCase, mock

from .hub import MAX_PENDING, Connection, ConnectionHub
from .schemas import ErrorOut, StateUpdate


class _Recorder:
    def __init__(self, fail: bool = False):
        self.sent: list[str] = []
        self.fail = fail

    async def __call__(self, payload: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


async def _drain(*conns: Connection) -> None:
    for _ in range(50):
        if all(c.pending == 0 for c in conns):
            break
        await asyncio.sleep(0)
    await asyncio.sleep(0)


class ConnectionHubTests(IsolatedAsyncioTestCase):
    async def test_broadcast_reaches_every_connection(self):
        hub = ConnectionHub()
        first, second = _Recorder(), _Recorder()
        conns = [Connection(first), Connection(second)]
        for conn in conns:
            hub.add(conn)
            conn.start()

        sent = hub.broadcast(StateUpdate(game_id="g"))
        await _drain(*conns)

        self.assertEqual(sent, 2)
        for recorder in (first, second):
            self.assertEqual(len(recorder.sent), 1)
            self.assertEqual(json.loads(recorder.sent[0])["type"], "state_update")
        for conn in conns:
            await conn.close()

    async def test_messages_keep_their_order(self):
        recorder = _Recorder()
        conn = Connection(recorder)
        conn.start()

        for n in range(5):
            conn.push(ErrorOut(message=str(n)))
        await _drain(conn)

        self.assertEqual([json.loads(p)["message"] for p in recorder.sent], ["0", "1", "2", "3", "4"])
        await conn.close()

    async def test_failed_send_closes_connection(self):
        hub = ConnectionHub()
        conn = Connection(_Recorder(fail=True))
        conn.session_id = "s1"
        hub.add(conn)
        conn.start()

        hub.broadcast(StateUpdate())
        await _drain(conn)

        self.assertTrue(conn.closed)
        self.assertEqual(hub.count_for("s1"), 0)
        self.assertEqual(hub.broadcast(StateUpdate()), 0)
        await conn.close()

    async def test_count_for_session(self):
        hub = ConnectionHub()
        a, b, c = Connection(mock.AsyncMock()), Connection(mock.AsyncMock()), Connection(mock.AsyncMock())
        a.session_id = b.session_id = "s1"
        c.session_id = "s2"
        for conn in (a, b, c):
            hub.add(conn)

        self.assertEqual(hub.count_for("s1"), 2)
        self.assertEqual(hub.count_for(None), 0)
        hub.remove(a)
        self.assertEqual(hub.count_for("s1"), 1)
        self.assertEqual(len(hub), 2)

    async def test_closed_connection_ignores_pushes(self):
        conn = Connection(mock.AsyncMock())
        await conn.close()
        conn.push(ErrorOut(message="late"))
        self.assertEqual(conn.pending, 0)

    async def test_lagging_connection_drops_oldest_frames(self):
        recorder = _Recorder()
        conn = Connection(recorder)

        for n in range(MAX_PENDING + 5):
            conn.push(ErrorOut(message=str(n)))
        self.assertEqual(conn.pending, MAX_PENDING)
        self.assertEqual(conn.dropped, 5)

        conn.start()
        await _drain(conn)

        messages = [json.loads(p)["message"] for p in recorder.sent]
        self.assertEqual(len(messages), MAX_PENDING)
        self.assertEqual(messages[0], "5")
        self.assertEqual(messages[-1], str(MAX_PENDING + 4))
        await conn.close()
