import json
from unittest import TestCase

from pydantic import ValidationError

from .models import Contestant, GameState, Question, Round
from .schemas import (
    JoinContestantIn,
    MakeDecisionIn,
    StateUpdate,
    WelcomeOut,
    load_outgoing,
    parse_incoming,
    parse_outgoing,
)


class IncomingMessageTests(TestCase):
    def test_discriminates_on_type(self):
        msg = parse_incoming('{"type": "make_decision", "choice": "point", "target_id": "p2"}')
        self.assertIsInstance(msg, MakeDecisionIn)
        self.assertEqual(msg.target_id, "p2")

    def test_numeric_age_is_accepted(self):
        msg = parse_incoming('{"type": "join_contestant", "name": "Ann", "age": 12}')
        self.assertIsInstance(msg, JoinContestantIn)
        self.assertEqual(msg.age, "12")

    def test_rejects_malformed_frames(self):
        for raw in ("not json", '{"type": "dance"}', '{"type": "point_to_player"}', '{"type": "identify", "session_id": ""}'):
            with self.subTest(raw=raw):
                with self.assertRaises(ValidationError):
                    parse_incoming(raw)


class StateUpdateTests(TestCase):
    def _state(self) -> GameState:
        state = GameState(game_id="g", presenter_id="host", presenter_online=True)
        state.contestants["p1"] = Contestant(id="p1", session_id="p1", name="Ann", age="30")
        state.status = Round.ROUND1
        state.active_player_id = "p1"
        state.current_question = Question(text="What is 2 + 2?", correct_answer="4")
        state.timer_start = 100
        return state

    def test_snapshot_hides_the_answer(self):
        snapshot = StateUpdate.from_state(self._state(), 60)
        payload = json.loads(snapshot.model_dump_json())

        self.assertEqual(payload["current_question"], {"text": "What is 2 + 2?", "options": None})
        self.assertNotIn("4", json.dumps(payload["current_question"]))
        self.assertEqual(payload["round"], "round1")
        self.assertEqual(payload["status"], "round1")
        self.assertTrue(payload["has_presenter"])
        self.assertEqual(payload["time_limit"], 60)

    def test_snapshot_is_detached_from_state(self):
        state = self._state()
        snapshot = StateUpdate.from_state(state, 60)
        state.contestants["p1"].score = 50
        self.assertEqual(snapshot.contestant("p1").score, 0)
        self.assertIsNone(snapshot.contestant("nobody"))

    def test_outgoing_round_trip(self):
        snapshot = StateUpdate.from_state(self._state(), 60)
        self.assertEqual(parse_outgoing(snapshot.model_dump_json()), snapshot)
        welcome = load_outgoing({"type": "welcome", "role": None})
        self.assertIsInstance(welcome, WelcomeOut)
        self.assertIsNone(welcome.role)
