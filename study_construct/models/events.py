"""Progress events streamed from the pipeline to its caller."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """What a progress event reports."""

    INFO = "INFO"
    ACTION = "ACTION"
    OBSERVATION = "OBSERVATION"
    RESPONSE = "RESPONSE"
    ERROR = "ERROR"
    MEMORY = "MEMORY"
    START = "START"
    DONE = "DONE"


class ProgressEvent(BaseModel):
    """A fire-and-forget notification; the pipeline never waits on a reply."""

    source: str
    kind: EventKind
    message: str
    emitted_at: datetime = Field(default_factory=datetime.now)

    model_config = ConfigDict(frozen=True)

    def __str__(self) -> str:
        return f"[{self.source}] {self.kind.value}: {self.message}"
