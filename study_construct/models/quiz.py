"""Pydantic models for quiz data structures."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    TypeAdapter,
    field_validator,
    model_validator,
)


class QuestionKind(str, Enum):
    """Structural category of a question."""

    MULTIPLE_CHOICE = "multiple-choice"
    TRUE_FALSE = "true-false"
    FILL_BLANK = "fill-blank"
    MATCHING = "matching"
    ORDERING = "ordering"


class BaseQuestion(BaseModel):
    """Fields shared by every question kind.

    Field names are snake_case in Python and camelCase on the wire
    (``correctIndex``, ``acceptableAnswers``...), so a question dumped with
    ``by_alias=True`` parses back into an identical question.
    """

    question: str = Field(..., min_length=1, description="The question text")
    explanation: str | None = Field(
        None,
        description="Why the correct answer is correct",
    )

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("question")
    @classmethod
    def validate_question_text(cls, v: str) -> str:
        """Reject whitespace-only question text."""
        if not v.strip():
            raise ValueError("Question text cannot be empty")
        return v


class MultipleChoiceQuestion(BaseQuestion):
    """Pick one option out of several."""

    kind: Literal["multiple-choice"] = Field("multiple-choice", alias="type")
    options: list[str] = Field(..., min_length=2, description="Answer options")
    correct_index: StrictInt = Field(..., alias="correctIndex", ge=0)

    @model_validator(mode="after")
    def validate_correct_index(self) -> "MultipleChoiceQuestion":
        """Ensure the correct index points at an existing option."""
        if self.correct_index >= len(self.options):
            raise ValueError(
                f"correctIndex {self.correct_index} out of range for "
                f"{len(self.options)} options"
            )
        return self


class TrueFalseQuestion(BaseQuestion):
    """A statement the learner marks true or false."""

    kind: Literal["true-false"] = Field("true-false", alias="type")
    correct_answer: StrictBool = Field(..., alias="correctAnswer")


class FillBlankQuestion(BaseQuestion):
    """Text with a blank the learner types into."""

    kind: Literal["fill-blank"] = Field("fill-blank", alias="type")
    correct_answer: str = Field(..., alias="correctAnswer", min_length=1)
    acceptable_answers: list[str] = Field(
        ..., alias="acceptableAnswers", min_length=1
    )
    case_sensitive: bool = Field(True, alias="caseSensitive")


class MatchingPair(BaseModel):
    """One left/right pair of a matching question."""

    left: str = Field(..., min_length=1)
    right: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class MatchingQuestion(BaseQuestion):
    """Match each left item with its right counterpart."""

    kind: Literal["matching"] = Field("matching", alias="type")
    pairs: list[MatchingPair] = Field(..., min_length=2)


class OrderingQuestion(BaseQuestion):
    """Put items into their correct order."""

    kind: Literal["ordering"] = Field("ordering", alias="type")
    items: list[str] = Field(..., min_length=2)
    correct_order: list[StrictInt] = Field(..., alias="correctOrder")

    @model_validator(mode="after")
    def validate_order_length(self) -> "OrderingQuestion":
        """Ensure one position per item."""
        if len(self.correct_order) != len(self.items):
            raise ValueError("correctOrder must have one entry per item")
        return self


# Every member pins its own ``kind`` literal, so at most one member accepts
# a given dict; already-built instances are kept as they are.
Question = Union[
    MultipleChoiceQuestion,
    TrueFalseQuestion,
    FillBlankQuestion,
    MatchingQuestion,
    OrderingQuestion,
]

QUESTION_MODELS: dict[QuestionKind, type[BaseQuestion]] = {
    QuestionKind.MULTIPLE_CHOICE: MultipleChoiceQuestion,
    QuestionKind.TRUE_FALSE: TrueFalseQuestion,
    QuestionKind.FILL_BLANK: FillBlankQuestion,
    QuestionKind.MATCHING: MatchingQuestion,
    QuestionKind.ORDERING: OrderingQuestion,
}

question_list_adapter: TypeAdapter[list[Question]] = TypeAdapter(list[Question])


def detect_question_kind(data: dict[str, Any]) -> QuestionKind | None:
    """
    Work out a question's kind from its wire representation.

    An explicit ``type`` wins; entries without one are classified by shape.

    Args:
        data: Raw question dictionary

    Returns:
        The detected kind, or None if the entry matches no kind
    """
    explicit = data.get("type")
    if explicit is not None:
        try:
            return QuestionKind(explicit)
        except ValueError:
            return None

    if isinstance(data.get("correctAnswer"), bool):
        return QuestionKind.TRUE_FALSE
    if isinstance(data.get("acceptableAnswers"), list):
        return QuestionKind.FILL_BLANK
    if isinstance(data.get("pairs"), list):
        return QuestionKind.MATCHING
    if isinstance(data.get("correctOrder"), list):
        return QuestionKind.ORDERING
    if "options" in data and "correctIndex" in data:
        return QuestionKind.MULTIPLE_CHOICE
    return None


def questions_to_wire(questions: list[Any]) -> list[dict[str, Any]]:
    """Serialize questions into the JSON-ready wire format."""
    return question_list_adapter.dump_python(
        questions, mode="json", by_alias=True, exclude_none=True
    )


class FactSet(BaseModel):
    """Ordered facts extracted by the researcher; the unit a human approves."""

    facts: list[str] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    def __len__(self) -> int:
        return len(self.facts)

    def as_numbered_text(self) -> str:
        """Render as a numbered list, one fact per line."""
        return "\n".join(f"{i}. {fact}" for i, fact in enumerate(self.facts, 1))


class GenerationTask(BaseModel):
    """One independent branch of the parallel generation stage."""

    index: int = Field(..., ge=0, description="Dispatch position")
    question_kinds: list[QuestionKind] = Field(..., min_length=1)
    count_per_kind: dict[QuestionKind, int]
    prompt: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)

    @property
    def total_questions(self) -> int:
        """Questions this task asks for."""
        return sum(self.count_per_kind.values())

    @property
    def label(self) -> str:
        """Short human-readable name for progress messages."""
        return "+".join(kind.value for kind in self.question_kinds)


class QuizMetadata(BaseModel):
    """Metadata about the quiz generation process."""

    created_at: datetime = Field(default_factory=datetime.now)
    model_used: str | None = None
    session_id: str | None = None
    failed_tasks: list[str] = Field(default_factory=list)
    degraded: bool = Field(
        default=False,
        description="True when every generation task failed",
    )
    generation_time_seconds: float | None = Field(None, ge=0.0)

    model_config = ConfigDict(protected_namespaces=())


class Quiz(BaseModel):
    """A finished quiz: questions in generation-task dispatch order."""

    title: str = Field(default="Study Quiz", min_length=1)
    questions: list[Question] = Field(default_factory=list)
    facts: list[str] = Field(default_factory=list)
    metadata: QuizMetadata = Field(default_factory=QuizMetadata)

    @property
    def total_questions(self) -> int:
        """Number of questions in the quiz."""
        return len(self.questions)

    def get_questions_by_kind(self, kind: QuestionKind) -> list[Any]:
        """Get all questions of one kind, keeping quiz order."""
        return [q for q in self.questions if q.kind == kind]

    def kind_counts(self) -> dict[QuestionKind, int]:
        """Count questions per kind."""
        counts: dict[QuestionKind, int] = {}
        for question in self.questions:
            kind = QuestionKind(question.kind)
            counts[kind] = counts.get(kind, 0) + 1
        return counts

    def to_wire(self) -> list[dict[str, Any]]:
        """The outbound contract: an ordered list of question dicts."""
        return questions_to_wire(self.questions)
