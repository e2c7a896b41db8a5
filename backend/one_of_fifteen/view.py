from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Contestant, Round
from .schemas import StateUpdate
from .utils import sort_leaderboard

PHASE_LABELS = {
    Round.LOBBY: "Lobby",
    Round.ROUND1: "Round 1",
    Round.ROUND2: "Round 2",
    Round.ROUND3: "Final Round",
    Round.FINISHED: "Game Over",
}


class View(BaseModel):
    """What one client should render for a snapshot. Never fed back to the server."""

    model_config = ConfigDict(frozen=True)

    phase_label: str
    is_my_turn: bool = False
    is_eliminated: bool = False
    is_pointing_phase: bool = False
    is_buzzer_phase: bool = False
    is_decision_phase: bool = False
    can_buzz: bool = False
    can_point: bool = False
    active_player_name: Optional[str] = None
    status_message: str = ""
    question_number: Optional[int] = None
    me: Optional[Contestant] = None
    standings: List[Contestant] = Field(default_factory=list)


def derive_view(snapshot: StateUpdate, self_id: Optional[str]) -> View:
    me = snapshot.contestant(self_id)
    active = snapshot.contestant(snapshot.active_player_id)
    active_name = active.name if active else None

    is_my_turn = self_id is not None and snapshot.active_player_id == self_id
    is_eliminated = bool(me and me.eliminated)
    is_pointing = (
        snapshot.status == Round.ROUND2
        and snapshot.current_question is None
        and not snapshot.question_pending
    )
    is_buzzer = snapshot.status == Round.ROUND3 and snapshot.active_player_id is None
    is_decision = snapshot.status == Round.ROUND3 and is_my_turn and snapshot.decision_pending

    question_number = None
    if snapshot.status == Round.ROUND1 and active is not None:
        question_number = active.round1_questions + 1

    return View(
        phase_label=PHASE_LABELS.get(snapshot.status, snapshot.status.value),
        is_my_turn=is_my_turn,
        is_eliminated=is_eliminated,
        is_pointing_phase=is_pointing,
        is_buzzer_phase=is_buzzer,
        is_decision_phase=is_decision,
        can_buzz=is_buzzer and me is not None and not is_eliminated,
        can_point=is_pointing and is_my_turn and not is_eliminated,
        active_player_name=active_name,
        status_message=_status_message(snapshot, me, active_name, is_my_turn, is_pointing, is_buzzer),
        question_number=question_number,
        me=me,
        standings=sort_leaderboard(snapshot.contestants),
    )


def _status_message(
    snapshot: StateUpdate,
    me: Optional[Contestant],
    active_name: Optional[str],
    is_my_turn: bool,
    is_pointing: bool,
    is_buzzer: bool,
) -> str:
    # order matters: earlier predicates shadow later ones
    if snapshot.status == Round.LOBBY:
        if me is None:
            return "Waiting for contestants to join"
        return "You are ready" if me.ready else "Waiting for the presenter to start the game"

    if snapshot.status == Round.FINISHED:
        winner = snapshot.contestant(snapshot.winner_id)
        if winner is None:
            return "Game over"
        if me is not None and winner.id == me.id:
            return "You won!"
        return f"{winner.name} wins!"

    if me is not None and me.eliminated:
        return "You have been eliminated"

    if is_pointing:
        if is_my_turn:
            return "Choose a player to answer the next question"
        if active_name:
            return f"{active_name} is choosing who answers next"
        return "Waiting for the next pointer"

    if snapshot.status == Round.ROUND3:
        if is_buzzer:
            return "Buzz in to answer!" if me is not None else "The buzzer is open"
        if snapshot.decision_pending:
            if is_my_turn:
                return "Correct! Answer again or point to another player"
            return f"{active_name} is deciding what to do next"

    if is_my_turn:
        if snapshot.current_question is None:
            return "Get ready, your question is on its way"
        return "Your turn to answer"
    if active_name:
        return f"{active_name} is answering"
    return "Waiting for the next question"
