"""Shared test fixtures and configuration for pytest."""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import pytest

from study_construct.config.settings import Settings
from study_construct.memory.store import WeaknessMemoryStore
from study_construct.models.pipeline import InlineBlob
from study_construct.models.quiz import (
    FactSet,
    FillBlankQuestion,
    MatchingPair,
    MatchingQuestion,
    MultipleChoiceQuestion,
    OrderingQuestion,
    Quiz,
    QuizMetadata,
    TrueFalseQuestion,
)
from study_construct.progress import ProgressReporter

RESEARCH_PROMPT_MARKER = "You are Researcher"

SAMPLE_FACTS = [
    "The sky is blue.",
    "Water boils at 100C.",
    "Blue light scatters more than red light.",
    "Boiling point drops at altitude.",
    "Rayleigh scattering colours the sky.",
]


def examiner_marker(kind: str) -> str:
    """Text that only appears in the examiner prompt for ``kind``."""
    return f"{kind} question(s):"


class ScriptedClient:
    """
    Stand-in for ModelClient that answers from a script.

    ``routes`` is a list of (needle, reply) pairs; the first needle found in
    the prompt wins. A reply is a string, an exception to raise, a callable
    taking the prompt, or a list of such replies consumed one per call.
    Safe to call from several generation branches at once.
    """

    def __init__(
        self,
        routes: list[tuple[str, Any]] | None = None,
        model_id: str = "fake-model",
    ) -> None:
        self.routes = [(needle, list(r) if isinstance(r, list) else r) for needle, r in routes or []]
        self.model_id = model_id
        self.calls: list[tuple[str, InlineBlob | None]] = []
        self._lock = threading.Lock()

    def generate(self, prompt_text: str, inline_blob: InlineBlob | None = None) -> str:
        with self._lock:
            self.calls.append((prompt_text, inline_blob))
            reply = self._pick(prompt_text)

        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(prompt_text)
        return reply

    def _pick(self, prompt_text: str) -> Any:
        for needle, reply in self.routes:
            if needle in prompt_text:
                if isinstance(reply, list):
                    return reply.pop(0) if len(reply) > 1 else reply[0]
                return reply
        raise AssertionError(f"No scripted reply for prompt: {prompt_text[:80]!r}")

    def prompts_containing(self, needle: str) -> list[str]:
        """Every prompt sent so far that contains ``needle``."""
        return [prompt for prompt, _ in self.calls if needle in prompt]


class Payloads:
    """Canned model replies."""

    markers = {"research": RESEARCH_PROMPT_MARKER}

    @staticmethod
    def numbered(facts: list[str]) -> str:
        return "\n".join(f"{i}. {fact}" for i, fact in enumerate(facts, 1))

    @staticmethod
    def examiner_marker(kind: str) -> str:
        return examiner_marker(kind)

    @staticmethod
    def mc_json(count: int, prefix: str = "MC") -> str:
        return mc_json(count, prefix)

    @staticmethod
    def tf_json(count: int = 1) -> str:
        return tf_json(count)

    @staticmethod
    def fb_json(count: int = 1) -> str:
        return fb_json(count)


def mc_json(count: int, prefix: str = "MC") -> str:
    return json.dumps(
        [
            {
                "type": "multiple-choice",
                "question": f"{prefix} question {i}?",
                "options": ["A", "B", "C", "D"],
                "correctIndex": i % 4,
                "explanation": "Because.",
            }
            for i in range(count)
        ]
    )


def tf_json(count: int = 1) -> str:
    return json.dumps(
        [
            {"type": "true-false", "question": f"Statement {i}.", "correctAnswer": True}
            for i in range(count)
        ]
    )


def fb_json(count: int = 1) -> str:
    return json.dumps(
        [
            {
                "type": "fill-blank",
                "question": f"Water boils at _____ degrees ({i}).",
                "correctAnswer": "100",
                "acceptableAnswers": ["100", "one hundred"],
                "caseSensitive": False,
            }
            for i in range(count)
        ]
    )


def happy_routes(facts: list[str] | None = None) -> list[tuple[str, Any]]:
    """Routes for a run where research and every generation task succeed."""
    return [
        (RESEARCH_PROMPT_MARKER, Payloads.numbered(facts or SAMPLE_FACTS)),
        (examiner_marker("multiple-choice"), mc_json(3)),
        (examiner_marker("true-false"), tf_json(1)),
        (examiner_marker("fill-blank"), fb_json(1)),
    ]


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and the user's home directory."""
    return Settings(
        _env_file=None,
        ANTHROPIC_API_KEY="test-key",
        MODEL_NAME="fake-model",
        MEMORY_DIR=tmp_path / "memory",
        QUESTION_COUNTS={"multiple-choice": 3, "true-false": 1, "fill-blank": 1},
        MAX_TOOL_CALLS=3,
        FACT_COUNT=5,
    )


@pytest.fixture
def memory_store(tmp_path: Path) -> WeaknessMemoryStore:
    """A memory store writing under the test's temp directory."""
    return WeaknessMemoryStore(tmp_path / "memory")


@pytest.fixture
def reporter() -> ProgressReporter:
    """Reporter that just collects events in ``reporter.events``."""
    return ProgressReporter()


@pytest.fixture
def make_client() -> Callable[..., ScriptedClient]:
    """Build a ScriptedClient from routes."""
    return ScriptedClient


@pytest.fixture
def payloads() -> type[Payloads]:
    """Canned model replies and the prompt markers they answer."""
    return Payloads


@pytest.fixture
def routes() -> list[tuple[str, Any]]:
    """Routes for a fully successful run."""
    return happy_routes()


@pytest.fixture
def sample_facts() -> FactSet:
    """Create a sample FactSet for testing."""
    return FactSet(facts=SAMPLE_FACTS)


@pytest.fixture
def sample_mc_question() -> MultipleChoiceQuestion:
    """Create a sample multiple-choice question for testing."""
    return MultipleChoiceQuestion(
        question="What is the capital of France?",
        options=["London", "Paris", "Berlin", "Madrid"],
        correct_index=1,
        explanation="Paris is the capital and largest city of France.",
    )


@pytest.fixture
def sample_questions(sample_mc_question: MultipleChoiceQuestion) -> list[Any]:
    """One question of every kind."""
    return [
        sample_mc_question,
        TrueFalseQuestion(question="The sky is blue.", correct_answer=True),
        FillBlankQuestion(
            question="Water boils at _____ C.",
            correct_answer="100",
            acceptable_answers=["100", "one hundred"],
            case_sensitive=False,
        ),
        MatchingQuestion(
            question="Match the element with its symbol.",
            pairs=[
                MatchingPair(left="Iron", right="Fe"),
                MatchingPair(left="Gold", right="Au"),
                MatchingPair(left="Lead", right="Pb"),
            ],
        ),
        OrderingQuestion(
            question="Order these from smallest to largest.",
            items=["Planet", "Atom", "Cell"],
            correct_order=[1, 2, 0],
            explanation="Atoms make cells; planets are far larger.",
        ),
    ]


@pytest.fixture
def sample_quiz(sample_questions: list[Any]) -> Quiz:
    """Create a sample Quiz for testing."""
    return Quiz(
        title="Quiz: Test Topic",
        questions=sample_questions,
        facts=SAMPLE_FACTS,
        metadata=QuizMetadata(
            created_at=datetime(2024, 1, 1, 12, 0, 0),
            model_used="fake-model",
            session_id="session-test",
            generation_time_seconds=1.5,
        ),
    )
