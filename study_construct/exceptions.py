"""Error taxonomy for the quiz pipeline."""

from typing import Any


class QuizPipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class CredentialError(QuizPipelineError):
    """No access credential is configured for the model backend."""


class BackendError(QuizPipelineError):
    """The model backend answered with a non-success response.

    The message is the backend's own message, unmodified.
    """


class EmptyResponseError(QuizPipelineError):
    """The backend answered successfully but without usable text."""


class ExtractionError(QuizPipelineError):
    """A multimodal document could not be converted to text."""

    def __init__(self, message: str, document_format: str = "") -> None:
        super().__init__(message)
        self.document_format = document_format


class ResearchIncompleteError(QuizPipelineError):
    """The research stage produced no usable facts."""


class RecoveryError(QuizPipelineError):
    """Structured questions could not be recovered from model output."""

    def __init__(self, message: str, excerpt: str = "") -> None:
        super().__init__(message)
        self.excerpt = excerpt


class PipelineAllTasksFailedError(QuizPipelineError):
    """Every generation task failed; converted into a degraded quiz."""

    def __init__(self, failures: list[dict[str, Any]]) -> None:
        super().__init__(f"All {len(failures)} generation task(s) failed")
        self.failures = failures


class InvalidTransitionError(QuizPipelineError):
    """A pipeline session was asked to move to a stage it cannot reach."""
