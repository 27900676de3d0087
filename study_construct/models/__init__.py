"""Data models for quiz generation."""

from .events import EventKind, ProgressEvent
from .memory import QuizResult, WeaknessProfile
from .pipeline import (
    BlobDocument,
    DocumentFormat,
    InlineBlob,
    PipelineRequest,
    PipelineSession,
    PipelineStage,
    TextDocument,
)
from .quiz import (
    FactSet,
    FillBlankQuestion,
    GenerationTask,
    MatchingPair,
    MatchingQuestion,
    MultipleChoiceQuestion,
    OrderingQuestion,
    Question,
    QuestionKind,
    Quiz,
    QuizMetadata,
    TrueFalseQuestion,
)

__all__ = [
    "EventKind",
    "ProgressEvent",
    "QuizResult",
    "WeaknessProfile",
    "BlobDocument",
    "DocumentFormat",
    "InlineBlob",
    "PipelineRequest",
    "PipelineSession",
    "PipelineStage",
    "TextDocument",
    "FactSet",
    "GenerationTask",
    "Question",
    "QuestionKind",
    "MultipleChoiceQuestion",
    "TrueFalseQuestion",
    "FillBlankQuestion",
    "MatchingPair",
    "MatchingQuestion",
    "OrderingQuestion",
    "Quiz",
    "QuizMetadata",
]
