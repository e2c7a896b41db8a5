"""Per-round rules applied to a :class:`GameState`.

These helpers run while the session lock is held and never await. Answer
handlers return ``True`` when the player left holding the turn needs a new
question, ``False`` when the game now waits for a pointer, a buzz or a
decision.
"""
from __future__ import annotations

import random
from typing import Optional

from .errors import IllegalTransitionError, InvalidInputError
from .models import STARTING_LIVES, Contestant, GameState, Round

POINTS_PER_CORRECT = 10
# extra points for answering again after a correct round 3 answer
DOUBLE_DOWN_BONUS = 10
ROUND1_QUESTIONS_PER_PLAYER = 2
ROUND1_MAX_MISSES = 2
# round 3 starts once this many (or fewer) contestants survive
FINALISTS = 3


def award_points(contestant: Contestant, amount: int = POINTS_PER_CORRECT) -> None:
    contestant.score += amount


def eliminate(contestant: Contestant) -> None:
    contestant.eliminated = True
    contestant.lives = 0


def first_player(state: GameState) -> Optional[str]:
    eligible = state.eligible()
    if eligible:
        return eligible[0].id
    survivors = state.survivors()
    return survivors[0].id if survivors else None


def next_round1_player(state: GameState, current_id: Optional[str]) -> Optional[str]:
    """Next contestant in join order still owed a round 1 question."""
    order = list(state.contestants)
    owed = {c.id for c in state.eligible() if c.round1_questions < ROUND1_QUESTIONS_PER_PLAYER}
    if not owed:
        return None

    start = order.index(current_id) + 1 if current_id in state.contestants else 0
    for offset in range(len(order)):
        candidate = order[(start + offset) % len(order)]
        if candidate in owed:
            return candidate
    return None


def random_eligible(state: GameState, rng: random.Random, exclude: Optional[str] = None) -> Optional[str]:
    ids = [c.id for c in state.eligible() if c.id != exclude]
    return rng.choice(ids) if ids else None


def check_target(state: GameState, pointer_id: str, target_id: Optional[str]) -> str:
    if not target_id:
        raise InvalidInputError("Target player ID required for pointing")
    if target_id == pointer_id:
        raise InvalidInputError("You cannot point to yourself")
    target = state.contestants.get(target_id)
    if target is None:
        raise InvalidInputError("Unknown target player")
    if target.eliminated:
        raise InvalidInputError("Target player is eliminated")
    if not target.online:
        raise InvalidInputError("Target player is offline")
    return target_id


def finish(state: GameState, winner_id: Optional[str]) -> None:
    state.status = Round.FINISHED
    state.active_player_id = None
    state.decision_pending = False
    state.last_pointer_id = None
    state.winner_id = winner_id
    state.clear_question()


def enter_round2(state: GameState, rng: random.Random) -> None:
    state.status = Round.ROUND2
    state.decision_pending = False
    state.clear_question()
    state.active_player_id = random_eligible(state, rng)
    state.last_pointer_id = state.active_player_id


def enter_round3(state: GameState) -> None:
    state.status = Round.ROUND3
    state.active_player_id = None
    state.decision_pending = False
    state.last_pointer_id = None
    state.clear_question()
    for c in state.survivors():
        c.lives = STARTING_LIVES


def _advance_on_survivors(state: GameState) -> bool:
    """Move to the next round if too few survive; ``True`` if the round changed."""
    survivors = state.survivors()
    if len(survivors) < 2:
        finish(state, survivors[0].id if survivors else None)
        return True
    if state.status == Round.ROUND2 and len(survivors) <= FINALISTS:
        enter_round3(state)
        return True
    return False


def _end_round1(state: GameState, rng: random.Random) -> None:
    survivors = state.survivors()
    if len(survivors) < 2:
        finish(state, survivors[0].id if survivors else None)
    else:
        enter_round2(state, rng)


def round1_answer(state: GameState, player: Contestant, correct: bool, rng: random.Random) -> bool:
    player.round1_questions += 1
    if correct:
        award_points(player)
    else:
        player.round1_misses += 1
        player.lives = max(player.lives - 1, 0)
        if player.round1_misses >= ROUND1_MAX_MISSES or player.lives <= 0:
            eliminate(player)

    state.clear_question()
    next_id = next_round1_player(state, player.id)
    if next_id is None:
        _end_round1(state, rng)
        return False

    state.active_player_id = next_id
    return True


def round2_answer(state: GameState, player: Contestant, correct: bool, rng: random.Random) -> bool:
    state.clear_question()
    if correct:
        award_points(player)
        # the answerer keeps the turn and points next
        state.active_player_id = player.id
        state.last_pointer_id = player.id
        _advance_on_survivors(state)
        return False

    eliminate(player)
    if _advance_on_survivors(state):
        return False

    if state.last_pointer_id != player.id and state.is_eligible(state.last_pointer_id):
        state.active_player_id = state.last_pointer_id
    else:
        state.active_player_id = random_eligible(state, rng)
        state.last_pointer_id = state.active_player_id
    return False


def round3_answer(
    state: GameState, player: Contestant, correct: bool, rng: random.Random, winning_score: int
) -> bool:
    state.clear_question()
    if correct:
        award_points(player)
        if player.score >= winning_score:
            finish(state, player.id)
        else:
            state.decision_pending = True
        return False

    eliminate(player)
    state.active_player_id = None
    state.decision_pending = False
    _advance_on_survivors(state)
    return False


def apply_answer(
    state: GameState, player: Contestant, correct: bool, rng: random.Random, winning_score: int
) -> bool:
    if state.status == Round.ROUND1:
        return round1_answer(state, player, correct, rng)
    if state.status == Round.ROUND2:
        return round2_answer(state, player, correct, rng)
    if state.status == Round.ROUND3:
        return round3_answer(state, player, correct, rng, winning_score)
    raise IllegalTransitionError("No round is in progress")


def decide(
    state: GameState,
    player_id: str,
    choice: str,
    target_id: Optional[str],
    winning_score: int,
    double_down_bonus: int = DOUBLE_DOWN_BONUS,
) -> Optional[str]:
    """Resolve a round 3 decision.

    Returns the id of the player who answers next, or ``None`` when the
    double-down bonus carried the player to ``winning_score``.
    """
    if choice == "self":
        next_id = player_id
    elif choice == "point":
        next_id = check_target(state, player_id, target_id)
    else:
        raise InvalidInputError("Invalid decision")

    state.decision_pending = False
    if choice == "self":
        player = state.contestants[player_id]
        award_points(player, double_down_bonus)
        if player.score >= winning_score:
            finish(state, player_id)
            return None
    state.active_player_id = next_id
    return next_id
