from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

STARTING_LIVES = 3


class Round(str, Enum):
    LOBBY = "lobby"
    ROUND1 = "round1"
    ROUND2 = "round2"
    ROUND3 = "round3"
    FINISHED = "finished"


class Role(str, Enum):
    PRESENTER = "presenter"
    CONTESTANT = "contestant"


class Contestant(BaseModel):
    id: str
    session_id: str
    name: str
    age: str
    score: int = 0
    lives: int = STARTING_LIVES
    ready: bool = False
    online: bool = True
    eliminated: bool = False
    round1_misses: int = 0
    round1_questions: int = 0

    def reset(self) -> None:
        self.score = 0
        self.lives = STARTING_LIVES
        self.ready = False
        self.eliminated = False
        self.round1_misses = 0
        self.round1_questions = 0


class Question(BaseModel):
    text: str
    correct_answer: str
    options: Optional[List[str]] = None


class PresenterBinding(BaseModel):
    kind: Literal["presenter"] = "presenter"
    session_id: str

    @property
    def role(self) -> Role:
        return Role.PRESENTER


class ContestantBinding(BaseModel):
    kind: Literal["contestant"] = "contestant"
    contestant: Contestant

    @property
    def role(self) -> Role:
        return Role.CONTESTANT


Binding = Union[PresenterBinding, ContestantBinding]


# States: lobby -> round1 -> round2 -> round3 -> finished (reset_game returns to lobby)
class GameState(BaseModel):
    game_id: str
    status: Round = Round.LOBBY
    presenter_id: Optional[str] = None
    presenter_online: bool = False
    # insertion order is join order
    contestants: Dict[str, Contestant] = Field(default_factory=dict)
    active_player_id: Optional[str] = None
    current_question: Optional[Question] = None
    question_pending: bool = False
    timer_start: Optional[int] = None  # epoch seconds
    decision_pending: bool = False
    last_pointer_id: Optional[str] = None
    past_questions: List[str] = Field(default_factory=list)
    winner_id: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def binding_for(self, session_id: Optional[str]) -> Optional[Binding]:
        if session_id is None:
            return None
        if self.presenter_id == session_id:
            return PresenterBinding(session_id=session_id)
        contestant = self.contestants.get(session_id)
        if contestant is not None:
            return ContestantBinding(contestant=contestant)
        return None

    def survivors(self) -> List[Contestant]:
        return [c for c in self.contestants.values() if not c.eliminated]

    def eligible(self) -> List[Contestant]:
        """Contestants who may be handed a turn: online and still in the game."""
        return [c for c in self.contestants.values() if not c.eliminated and c.online]

    def is_eligible(self, session_id: Optional[str]) -> bool:
        c = self.contestants.get(session_id) if session_id else None
        return c is not None and c.online and not c.eliminated

    def clear_question(self) -> None:
        self.current_question = None
        self.question_pending = False
        self.timer_start = None
