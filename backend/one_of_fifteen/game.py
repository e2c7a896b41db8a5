from __future__ import annotations

import asyncio
import logging
import random
from typing import Callable, Optional, Set

from . import rounds
from .config import Settings, get_settings
from .errors import IdentityError, IllegalTransitionError, InvalidInputError
from .hub import ConnectionHub
from .models import Contestant, GameState, Question, Role, Round
from .questions import QuestionBank, QuestionSource, build_question_source
from .schemas import TIMEOUT_ANSWER, StateUpdate
from .utils import now_ts

logger = logging.getLogger(__name__)

MAX_AGE = 120


def parse_age(age: str) -> int:
    try:
        value = int(str(age).strip())
    except ValueError as exc:
        raise InvalidInputError("Age must be a number") from exc
    if value <= 0:
        raise InvalidInputError("Age must be valid")
    if value > MAX_AGE:
        raise InvalidInputError("Age must be realistic")
    return value


class GameSession:
    """Authoritative state of one game.

    Every mutating intent runs under a single ``asyncio.Lock`` so that
    concurrent intents (two contestants buzzing at once) are applied one
    after the other. Each accepted mutation publishes a new immutable
    snapshot through the hub; ``get_state`` reads that snapshot without
    taking the lock.
    """

    def __init__(
        self,
        game_id: str,
        settings: Optional[Settings] = None,
        questions: Optional[QuestionSource] = None,
        hub: Optional[ConnectionHub] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = now_ts,
    ):
        self.settings = settings or get_settings()
        self.state = GameState(game_id=game_id)
        self.hub = hub or ConnectionHub()
        self.questions = questions or build_question_source(self.settings)
        self.rng = rng or random.Random()
        self._clock = clock
        self._lock = asyncio.Lock()
        self._fallback = QuestionBank()
        # bumped whenever the turn moves on; stale producers and watchdogs compare against it
        self._turn = 0
        self._producers: Set[asyncio.Task] = set()
        self._watchdogs: Set[asyncio.Task] = set()
        self.snapshot = StateUpdate.from_state(self.state, self.time_limit)

    @property
    def game_id(self) -> str:
        return self.state.game_id

    @property
    def time_limit(self) -> int:
        return self.settings.ANSWER_TIME_LIMIT_SECONDS

    def get_state(self) -> StateUpdate:
        return self.snapshot

    def role_of(self, session_id: Optional[str]) -> Optional[Role]:
        binding = self.state.binding_for(session_id)
        return binding.role if binding else None

    # --- identity and roles ---

    async def identify(self, session_id: str) -> Optional[Role]:
        async with self._lock:
            binding = self.state.binding_for(session_id)
            if binding is None:
                return None

            if binding.role == Role.PRESENTER:
                changed = not self.state.presenter_online
                self.state.presenter_online = True
            else:
                changed = not self.state.contestants[session_id].online
                self.state.contestants[session_id].online = True
                changed = self._hand_idle_turn(session_id) or changed

            if changed:
                logger.info("Game %s: %s %s is back online", self.game_id, binding.role.value, session_id)
                self._publish()
            return binding.role

    async def join_presenter(self, session_id: Optional[str]) -> Role:
        async with self._lock:
            self._require_identity(session_id)
            if session_id in self.state.contestants:
                raise IdentityError("You already joined as a contestant")

            if self.state.presenter_id == session_id:
                if not self.state.presenter_online:
                    self.state.presenter_online = True
                    self._publish()
                return Role.PRESENTER

            if self.state.presenter_id is not None:
                if self.state.presenter_online:
                    raise IdentityError("Presenter already exists and is online")
                raise IdentityError("Presenter role is reserved")

            self.state.presenter_id = session_id
            self.state.presenter_online = True
            logger.info("Game %s: presenter %s joined", self.game_id, session_id)
            self._publish()
            return Role.PRESENTER

    async def join_contestant(self, session_id: Optional[str], name: str, age: str) -> Role:
        async with self._lock:
            self._require_identity(session_id)
            if self.state.presenter_id == session_id:
                raise IdentityError("The presenter cannot join as a contestant")
            if self.state.status != Round.LOBBY:
                raise IllegalTransitionError("The game has already started")

            name = name.strip()
            if not name:
                raise InvalidInputError("Name is required")
            age_value = str(parse_age(age))

            contestant = self.state.contestants.get(session_id)
            if contestant is not None:
                contestant.name = name
                contestant.age = age_value
                contestant.online = True
            else:
                self.state.contestants[session_id] = Contestant(
                    id=session_id, session_id=session_id, name=name, age=age_value
                )
            logger.info("Game %s: contestant %s (%s) joined", self.game_id, name, session_id)
            self._publish()
            return Role.CONTESTANT

    async def leave(self, session_id: Optional[str]) -> None:
        async with self._lock:
            binding = self.state.binding_for(session_id)
            if binding is None:
                return
            if binding.role == Role.PRESENTER:
                self.state.presenter_id = None
                self.state.presenter_online = False
            else:
                self.state.contestants[session_id].online = False
            logger.info("Game %s: %s %s left", self.game_id, binding.role.value, session_id)
            self._publish()

    async def disconnect(self, session_id: Optional[str]) -> None:
        """Transport closed. The binding only goes offline once its last connection is gone."""
        if session_id is None or self.hub.count_for(session_id) > 0:
            return
        async with self._lock:
            binding = self.state.binding_for(session_id)
            if binding is None:
                return
            if binding.role == Role.PRESENTER:
                changed = self.state.presenter_online
                self.state.presenter_online = False
            else:
                changed = self.state.contestants[session_id].online
                self.state.contestants[session_id].online = False
            if changed:
                logger.info("Game %s: %s %s went offline", self.game_id, binding.role.value, session_id)
                self._publish()

    # --- lobby ---

    async def toggle_ready(self, session_id: Optional[str]) -> bool:
        async with self._lock:
            contestant = self._require_contestant(session_id)
            if self.state.status != Round.LOBBY:
                raise IllegalTransitionError("Ready state can only change in the lobby")
            contestant.ready = not contestant.ready
            self._publish()
            return contestant.ready

    async def start_game(self, session_id: Optional[str]) -> None:
        async with self._lock:
            self._require_presenter(session_id)
            if self.state.status != Round.LOBBY:
                raise IllegalTransitionError("The game can only be started from the lobby")
            if not self.state.contestants:
                raise IllegalTransitionError("Need at least one contestant to start")
            if self.settings.REQUIRE_READY and not any(c.ready for c in self.state.contestants.values()):
                raise IllegalTransitionError("Need at least one ready contestant to start")

            self._turn += 1
            self.state.status = Round.ROUND1
            self.state.decision_pending = False
            self.state.last_pointer_id = None
            self.state.winner_id = None
            self.state.clear_question()
            self.state.active_player_id = rounds.first_player(self.state)
            if self.state.active_player_id is not None:
                self._request_question()
            logger.info(
                "Game %s: round 1 started with %d contestants", self.game_id, len(self.state.contestants)
            )
            self._publish()

    async def reset_game(self, session_id: Optional[str]) -> None:
        async with self._lock:
            self._require_presenter(session_id)
            self._turn += 1
            self.state.status = Round.LOBBY
            self.state.active_player_id = None
            self.state.decision_pending = False
            self.state.last_pointer_id = None
            self.state.winner_id = None
            self.state.clear_question()
            for c in self.state.contestants.values():
                c.reset()
            logger.info("Game %s: reset to lobby", self.game_id)
            self._publish()

    # --- gameplay ---

    async def point_to_player(self, session_id: Optional[str], target_id: Optional[str]) -> None:
        async with self._lock:
            if self.state.status != Round.ROUND2:
                raise IllegalTransitionError("Pointing is only possible in round 2")
            self._require_active(session_id)
            if self.state.current_question is not None or self.state.question_pending:
                raise IllegalTransitionError("Answer the current question first")
            rounds.check_target(self.state, session_id, target_id)

            self.state.last_pointer_id = session_id
            self.state.active_player_id = target_id
            self._request_question()
            logger.info("Game %s: %s pointed to %s", self.game_id, session_id, target_id)
            self._publish()

    async def buzz_in(self, session_id: Optional[str]) -> None:
        async with self._lock:
            contestant = self._require_contestant(session_id)
            if self.state.status != Round.ROUND3:
                raise IllegalTransitionError("The buzzer is only open in round 3")
            if contestant.eliminated:
                raise IllegalTransitionError("Eliminated players cannot buzz in")
            if self.state.active_player_id is not None or self.state.decision_pending:
                raise IllegalTransitionError("Someone else already buzzed in")

            self.state.active_player_id = session_id
            self._request_question()
            logger.info("Game %s: %s buzzed in", self.game_id, session_id)
            self._publish()

    async def make_decision(
        self, session_id: Optional[str], choice: str, target_id: Optional[str] = None
    ) -> None:
        async with self._lock:
            self._require_active(session_id)
            if self.state.status != Round.ROUND3 or not self.state.decision_pending:
                raise IllegalTransitionError("There is no decision to make")
            next_id = rounds.decide(
                self.state,
                session_id,
                choice,
                target_id,
                winning_score=self.settings.WINNING_SCORE,
                double_down_bonus=self.settings.DOUBLE_DOWN_BONUS,
            )
            self._turn += 1
            if next_id is None:
                logger.info("Game %s: %s won by doubling down", self.game_id, session_id)
            else:
                self._request_question()
                logger.info("Game %s: %s chose %s, %s answers next", self.game_id, session_id, choice, next_id)
            self._publish()

    async def submit_answer(self, session_id: Optional[str], answer: str) -> bool:
        async with self._lock:
            player = self._require_active(session_id)
            question = self.state.current_question
            if question is None:
                raise IllegalTransitionError("There is no question to answer yet")

            if self._expired():
                answer = TIMEOUT_ANSWER
            if answer == TIMEOUT_ANSWER:
                correct = False
            else:
                correct = await self._judge(question, answer)

            self._resolve_answer(player, correct)
            return correct

    # --- internals, all called with the lock held ---

    def _publish(self) -> StateUpdate:
        self.snapshot = StateUpdate.from_state(self.state, self.time_limit)
        self.hub.broadcast(self.snapshot)
        return self.snapshot

    def _require_identity(self, session_id: Optional[str]) -> None:
        if not session_id:
            raise IdentityError("Identify before joining")

    def _require_presenter(self, session_id: Optional[str]) -> None:
        self._require_identity(session_id)
        if self.state.presenter_id != session_id:
            raise IllegalTransitionError("Only the presenter can do that")

    def _require_contestant(self, session_id: Optional[str]) -> Contestant:
        self._require_identity(session_id)
        contestant = self.state.contestants.get(session_id)
        if contestant is None:
            raise IdentityError("You have not joined as a contestant")
        return contestant

    def _require_active(self, session_id: Optional[str]) -> Contestant:
        contestant = self._require_contestant(session_id)
        if self.state.active_player_id != session_id:
            raise IllegalTransitionError("It is not your turn")
        return contestant

    def _hand_idle_turn(self, session_id: str) -> bool:
        """Give a round 2 turn nobody holds to a contestant who just came back."""
        state = self.state
        if state.status != Round.ROUND2 or state.active_player_id is not None:
            return False
        if not state.is_eligible(session_id):
            return False
        state.active_player_id = session_id
        state.last_pointer_id = session_id
        logger.info("Game %s: %s picks up the idle pointing turn", self.game_id, session_id)
        return True

    def _expired(self) -> bool:
        start = self.state.timer_start
        if start is None:
            return False
        return self._clock() > start + self.time_limit + self.settings.ANSWER_GRACE_SECONDS

    async def _judge(self, question: Question, answer: str) -> bool:
        try:
            return await asyncio.wait_for(
                self.questions.judge(question, answer), timeout=self.settings.JUDGE_TIMEOUT_SECONDS
            )
        except asyncio.TimeoutError:
            logger.warning("Game %s: answer judge timed out, comparing text", self.game_id)
        except Exception:
            logger.exception("Game %s: answer judge failed, comparing text", self.game_id)
        return await self._fallback.judge(question, answer)

    def _resolve_answer(self, player: Contestant, correct: bool) -> None:
        self._turn += 1
        round_before = self.state.status
        needs_question = rounds.apply_answer(
            self.state, player, correct, self.rng, self.settings.WINNING_SCORE
        )
        logger.info(
            "Game %s: %s answered %s in %s (score %d)",
            self.game_id,
            player.name,
            "correctly" if correct else "wrong",
            round_before.value,
            player.score,
        )
        if self.state.status != round_before:
            logger.info("Game %s: moved on to %s", self.game_id, self.state.status.value)
        if needs_question and self.state.active_player_id is not None:
            self._request_question()
        self._publish()

    def _request_question(self) -> None:
        self._turn += 1
        turn = self._turn
        self.state.clear_question()
        self.state.question_pending = True
        player = self.state.contestants[self.state.active_player_id]
        task = asyncio.create_task(self._produce_question(turn, player.age, list(self.state.past_questions)))
        self._producers.add(task)
        task.add_done_callback(self._producers.discard)

    async def _produce_question(self, turn: int, age: str, past_questions: list) -> None:
        try:
            question = await self.questions.generate(age, past_questions)
        except Exception:
            logger.exception("Game %s: question source failed, using built-in bank", self.game_id)
            question = await self._fallback.generate(age, past_questions)

        async with self._lock:
            if turn != self._turn or self.state.active_player_id is None:
                logger.debug("Game %s: dropping question for a turn that moved on", self.game_id)
                return
            self.state.current_question = question
            self.state.question_pending = False
            self.state.past_questions.append(question.text)
            self.state.timer_start = int(self._clock())
            self._arm_watchdog(turn)
            self._publish()

    def _arm_watchdog(self, turn: int) -> None:
        task = asyncio.create_task(self._watch_answer(turn))
        self._watchdogs.add(task)
        task.add_done_callback(self._watchdogs.discard)

    async def _watch_answer(self, turn: int) -> None:
        await asyncio.sleep(self.time_limit + self.settings.ANSWER_GRACE_SECONDS)
        async with self._lock:
            if turn != self._turn or self.state.current_question is None:
                return
            player = self.state.contestants.get(self.state.active_player_id)
            if player is None:
                return
            logger.info("Game %s: %s ran out of time", self.game_id, player.name)
            self._resolve_answer(player, False)

    async def settle(self) -> None:
        """Wait for outstanding question producers."""
        while self._producers:
            await asyncio.gather(*list(self._producers))

    async def close(self) -> None:
        tasks = list(self._producers) + list(self._watchdogs)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
