import re
import time
from typing import Iterable, List

from .models import Contestant


def now_ts() -> float:
    return time.time()


def sort_leaderboard(contestants: Iterable[Contestant]) -> List[Contestant]:
    return sorted(contestants, key=lambda c: (c.eliminated, -c.score, c.name.lower()))


def normalize_answer(text: str) -> str:
    text = re.sub(r"[^\w\s]", "", text.lower())
    return " ".join(text.split())
