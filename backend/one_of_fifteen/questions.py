"""Question producers and answer adjudicators.

The game session only knows the :class:`QuestionSource` interface. The
built-in :class:`QuestionBank` works offline; :class:`LlamaQuestionSource`
talks to an OpenAI-compatible chat completions endpoint (llama.cpp server)
and falls back to the bank whenever the endpoint misbehaves.
"""
from __future__ import annotations

import json
import logging
from typing import List, Optional, Protocol, Sequence

import httpx

from .config import Settings
from .models import Question
from .utils import normalize_answer

logger = logging.getLogger(__name__)


class QuestionSource(Protocol):
    async def generate(self, age: str, past_questions: Sequence[str]) -> Question: ...

    async def judge(self, question: Question, answer: str) -> bool: ...


DEFAULT_QUESTIONS: List[Question] = [
    Question(text="What color is the sky on a clear day?", correct_answer="Blue"),
    Question(text="How many legs does a spider have?", correct_answer="Eight"),
    Question(text="What is the capital of France?", correct_answer="Paris"),
    Question(text="Which planet is known as the Red Planet?", correct_answer="Mars"),
    Question(text="What do bees make?", correct_answer="Honey"),
    Question(text="How many days are in a leap year?", correct_answer="366"),
    Question(text="What is the largest ocean on Earth?", correct_answer="Pacific"),
    Question(text="Which animal is known as the king of the jungle?", correct_answer="Lion"),
    Question(text="What is frozen water called?", correct_answer="Ice"),
    Question(text="How many continents are there?", correct_answer="Seven"),
    Question(text="What gas do plants take in from the air?", correct_answer="Carbon dioxide"),
    Question(text="Who wrote Romeo and Juliet?", correct_answer="Shakespeare"),
    Question(text="What is the tallest animal in the world?", correct_answer="Giraffe"),
    Question(text="How many minutes are in an hour?", correct_answer="Sixty"),
    Question(text="Which instrument has 88 keys?", correct_answer="Piano"),
    Question(text="What is the chemical symbol for gold?", correct_answer="Au"),
    Question(text="What is the largest planet in our solar system?", correct_answer="Jupiter"),
    Question(text="In which country are the pyramids of Giza?", correct_answer="Egypt"),
    Question(text="What is the boiling point of water in Celsius?", correct_answer="100"),
    Question(text="How many sides does a hexagon have?", correct_answer="Six"),
]


class QuestionBank:
    def __init__(self, questions: Optional[Sequence[Question]] = None):
        self.questions = list(questions) if questions is not None else list(DEFAULT_QUESTIONS)
        if not self.questions:
            raise ValueError("QuestionBank needs at least one question")
        self._cursor = 0

    async def generate(self, age: str, past_questions: Sequence[str]) -> Question:
        asked = set(past_questions)
        total = len(self.questions)
        for offset in range(total):
            idx = (self._cursor + offset) % total
            if self.questions[idx].text not in asked:
                self._cursor = (idx + 1) % total
                return self.questions[idx].model_copy()

        # every question has been asked already; start over
        question = self.questions[self._cursor]
        self._cursor = (self._cursor + 1) % total
        return question.model_copy()

    async def judge(self, question: Question, answer: str) -> bool:
        given = normalize_answer(answer)
        return bool(given) and given == normalize_answer(question.correct_answer)


def parse_question(content: str) -> Question:
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.removeprefix("```json").removeprefix("```")
        cleaned = cleaned.removesuffix("```")
    return Question.model_validate_json(cleaned.strip())


class LlamaQuestionSource:
    def __init__(
        self,
        api_url: str,
        timeout: float = 30.0,
        fallback: Optional[QuestionBank] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.fallback = fallback or QuestionBank()
        self._client = client

    async def _complete(self, system: str, prompt: str, temperature: float) -> str:
        body = {
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "stream": False,
            "temperature": temperature,
        }
        if self._client is not None:
            res = await self._client.post(self.api_url, json=body, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                res = await client.post(self.api_url, json=body)
        res.raise_for_status()
        return res.json()["choices"][0]["message"]["content"]

    async def generate(self, age: str, past_questions: Sequence[str]) -> Question:
        avoid = ""
        if past_questions:
            avoid = f"Do not repeat any of these previous questions: {json.dumps(list(past_questions))}."
        prompt = (
            f"Generate a single short trivia question suitable for a {age} year old. {avoid} "
            "Format the output as JSON with fields 'text' and 'correct_answer'. "
            'Example: {"text": "What color is the sky?", "correct_answer": "Blue"}'
        )
        try:
            content = await self._complete(
                "You are a game show host's assistant. Output valid JSON only.", prompt, 0.8
            )
            return parse_question(content)
        except (httpx.HTTPError, AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Question generation failed, using built-in bank: %s", exc)
            return await self.fallback.generate(age, past_questions)

    async def judge(self, question: Question, answer: str) -> bool:
        prompt = (
            f"Question: {question.text}\nCorrect Answer: {question.correct_answer}\n"
            f"User's Answer: {answer}\n"
            "Is the user's answer correct? Answer 'yes' or 'no' only. "
            "Be lenient with minor typos or paraphrasing."
        )
        try:
            content = await self._complete(
                "You are a game show judge. Determine if answers are correct. "
                "Reply with 'yes' or 'no' only.",
                prompt,
                0.3,
            )
        except (httpx.HTTPError, AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("Answer validation failed, comparing text instead: %s", exc)
            return await self.fallback.judge(question, answer)
        return "yes" in str(content).strip().lower()


def build_question_source(settings: Settings) -> QuestionSource:
    if settings.QUESTION_SOURCE == "llama":
        return LlamaQuestionSource(settings.LLAMA_API_URL, timeout=settings.LLAMA_TIMEOUT_SECONDS)
    return QuestionBank()
