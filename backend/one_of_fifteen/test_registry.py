from unittest import IsolatedAsyncioTestCase, mock

from .config import Settings
from .game import GameSession
from .questions import QuestionBank
from .registry import SessionRegistry


class SessionRegistryTests(IsolatedAsyncioTestCase):
    async def test_creates_one_session_per_game(self):
        registry = SessionRegistry(settings=Settings(QUESTION_SOURCE="bank"))

        first = registry.get_or_create("a")
        self.assertIs(registry.get_or_create("a"), first)
        self.assertIsNot(registry.get_or_create("b"), first)
        self.assertIn("a", registry)
        self.assertEqual(len(registry), 2)
        self.assertIsNone(registry.get("c"))
        self.assertIsInstance(first.questions, QuestionBank)

        await registry.close()
        self.assertEqual(len(registry), 0)

    async def test_close_closes_sessions(self):
        session = mock.Mock(spec=GameSession)
        session.close = mock.AsyncMock()
        registry = SessionRegistry(settings=Settings(), factory=lambda game_id: session)

        registry.get_or_create("a")
        await registry.close()

        session.close.assert_awaited_once()
