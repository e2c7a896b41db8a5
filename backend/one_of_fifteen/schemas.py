from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .models import Contestant, GameState, Role, Round

TIMEOUT_ANSWER = "!!!TIMEOUT!!!"


# --- client -> server ---

class IdentifyIn(BaseModel):
    type: Literal["identify"]
    session_id: str = Field(min_length=1)


class JoinPresenterIn(BaseModel):
    type: Literal["join_presenter"]


class JoinContestantIn(BaseModel):
    type: Literal["join_contestant"]
    name: str
    age: str

    @field_validator("age", mode="before")
    @classmethod
    def _age_as_text(cls, value):
        # browsers send the raw input value, older clients a number
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ToggleReadyIn(BaseModel):
    type: Literal["toggle_ready"]


class StartGameIn(BaseModel):
    type: Literal["start_game"]


class ResetGameIn(BaseModel):
    type: Literal["reset_game"]


class PointToPlayerIn(BaseModel):
    type: Literal["point_to_player"]
    target_id: str


class BuzzInIn(BaseModel):
    type: Literal["buzz_in"]


class MakeDecisionIn(BaseModel):
    type: Literal["make_decision"]
    choice: str
    target_id: Optional[str] = None


class SubmitAnswerIn(BaseModel):
    type: Literal["submit_answer"]
    answer: str


class GetStateIn(BaseModel):
    type: Literal["get_state"]


class LeaveIn(BaseModel):
    type: Literal["leave"]


IncomingMessage = Annotated[
    Union[
        IdentifyIn,
        JoinPresenterIn,
        JoinContestantIn,
        ToggleReadyIn,
        StartGameIn,
        ResetGameIn,
        PointToPlayerIn,
        BuzzInIn,
        MakeDecisionIn,
        SubmitAnswerIn,
        GetStateIn,
        LeaveIn,
    ],
    Field(discriminator="type"),
]

_incoming = TypeAdapter(IncomingMessage)


def parse_incoming(raw: Union[str, bytes]) -> IncomingMessage:
    """Decode one client frame; raises ``pydantic.ValidationError`` when malformed."""
    return _incoming.validate_json(raw)


# --- server -> client ---

class WelcomeOut(BaseModel):
    type: Literal["welcome"] = "welcome"
    role: Optional[Role] = None


class ErrorOut(BaseModel):
    type: Literal["error"] = "error"
    message: str


class QuestionOut(BaseModel):
    text: str
    options: Optional[List[str]] = None


class StateUpdate(BaseModel):
    """Full authoritative snapshot; published after every accepted mutation."""

    model_config = ConfigDict(frozen=True)

    type: Literal["state_update"] = "state_update"
    game_id: str = ""
    has_presenter: bool = False
    presenter_online: bool = False
    contestants: List[Contestant] = Field(default_factory=list)
    status: Round = Round.LOBBY
    round: Round = Round.LOBBY
    active_player_id: Optional[str] = None
    current_question: Optional[QuestionOut] = None
    question_pending: bool = False
    timer_start: Optional[int] = None
    time_limit: int = 60
    decision_pending: bool = False
    winner_id: Optional[str] = None

    @classmethod
    def from_state(cls, state: GameState, time_limit: int) -> "StateUpdate":
        question = None
        if state.current_question is not None:
            question = QuestionOut(
                text=state.current_question.text,
                options=state.current_question.options,
            )
        return cls(
            game_id=state.game_id,
            has_presenter=state.presenter_id is not None,
            presenter_online=state.presenter_online,
            contestants=[c.model_copy() for c in state.contestants.values()],
            status=state.status,
            round=state.status,
            active_player_id=state.active_player_id,
            current_question=question,
            question_pending=state.question_pending,
            timer_start=state.timer_start,
            time_limit=time_limit,
            decision_pending=state.decision_pending,
            winner_id=state.winner_id,
        )

    def contestant(self, session_id: Optional[str]) -> Optional[Contestant]:
        for c in self.contestants:
            if c.id == session_id:
                return c
        return None


_outgoing = TypeAdapter(
    Annotated[Union[WelcomeOut, ErrorOut, StateUpdate], Field(discriminator="type")]
)


OutgoingMessage = Union[WelcomeOut, ErrorOut, StateUpdate]


def parse_outgoing(raw: Union[str, bytes]) -> OutgoingMessage:
    return _outgoing.validate_json(raw)


def load_outgoing(data: dict) -> OutgoingMessage:
    """Same as :func:`parse_outgoing` for a frame that was already JSON-decoded."""
    return _outgoing.validate_python(data)
