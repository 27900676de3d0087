"""Models for pipeline requests and session state."""

import uuid
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .quiz import FactSet, Quiz


class DocumentFormat(str, Enum):
    """Kinds of binary documents the extractor understands."""

    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"
    DOCUMENT = "document"


class TextDocument(BaseModel):
    """A document that is already plain text."""

    source: Literal["text"] = "text"
    text: str

    model_config = ConfigDict(frozen=True)


class InlineBlob(BaseModel):
    """Binary payload sent alongside a prompt."""

    base64: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class BlobDocument(BaseModel):
    """A base64-encoded binary document that must be converted to text first."""

    source: Literal["blob"] = "blob"
    base64: str = Field(..., min_length=1)
    mime_type: str = Field(..., min_length=1, alias="mimeType")
    format: DocumentFormat = DocumentFormat.DOCUMENT

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def as_inline_blob(self) -> InlineBlob:
        """The payload part, without the format hint."""
        return InlineBlob(base64=self.base64, mime_type=self.mime_type)


class PipelineRequest(BaseModel):
    """Inbound request: everything one pipeline run needs."""

    credential: str | None = Field(
        None,
        description="Bearer credential passed through to the model backend",
    )
    model_id: str | None = Field(None, description="Backend model identifier")
    document: Union[TextDocument, BlobDocument]
    weaknesses: list[str] = Field(default_factory=list)
    user_id: str | None = None
    topic: str | None = Field(
        None,
        description="Topic recorded as studied; derived from the document if absent",
    )

    model_config = ConfigDict(protected_namespaces=())

    @field_validator("weaknesses")
    @classmethod
    def validate_weaknesses(cls, v: list[str]) -> list[str]:
        """Clean weakness labels."""
        return [w.strip() for w in v if w.strip()]

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, v: str | None) -> str | None:
        """A blank user id means the default user."""
        if v is None or not v.strip():
            return None
        return v.strip()


class PipelineStage(str, Enum):
    """Lifecycle of one pipeline run."""

    INIT = "INIT"
    RESEARCHING = "RESEARCHING"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    GENERATING = "GENERATING"
    ASSEMBLED = "ASSEMBLED"
    ABORTED = "ABORTED"
    FAILED = "FAILED"


ALLOWED_TRANSITIONS: dict[PipelineStage, frozenset[PipelineStage]] = {
    PipelineStage.INIT: frozenset({PipelineStage.RESEARCHING}),
    PipelineStage.RESEARCHING: frozenset(
        {PipelineStage.AWAITING_APPROVAL, PipelineStage.FAILED}
    ),
    PipelineStage.AWAITING_APPROVAL: frozenset(
        {PipelineStage.GENERATING, PipelineStage.ABORTED}
    ),
    PipelineStage.GENERATING: frozenset(
        {PipelineStage.ASSEMBLED, PipelineStage.FAILED}
    ),
    PipelineStage.ASSEMBLED: frozenset(),
    PipelineStage.ABORTED: frozenset(),
    PipelineStage.FAILED: frozenset(),
}

TERMINAL_STAGES = frozenset(
    {PipelineStage.ASSEMBLED, PipelineStage.ABORTED, PipelineStage.FAILED}
)


class PipelineSession(BaseModel):
    """State of one run. Only the coordinator changes ``stage``."""

    session_id: str = Field(default_factory=lambda: f"session-{uuid.uuid4().hex}")
    user_id: str
    stage: PipelineStage = PipelineStage.INIT
    history: list[PipelineStage] = Field(
        default_factory=lambda: [PipelineStage.INIT]
    )
    facts: FactSet | None = None
    quiz: Quiz | None = None
    error: Exception | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def is_terminal(self) -> bool:
        """Whether the run is over."""
        return self.stage in TERMINAL_STAGES
