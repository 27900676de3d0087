"""Pydantic models for the per-user weakness profile."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator


def _unique(values: list[str]) -> list[str]:
    """Strip, drop empties and duplicates, keep first-seen order."""
    seen: list[str] = []
    for value in values:
        value = value.strip()
        if value and value not in seen:
            seen.append(value)
    return seen


class QuizResult(BaseModel):
    """One completed quiz. Append-only once stored."""

    score: int = Field(..., ge=0)
    total: int = Field(..., ge=1)
    topic: str = Field(..., min_length=1)
    completed_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def validate_score(self) -> "QuizResult":
        """A score cannot exceed the number of questions."""
        if self.score > self.total:
            raise ValueError(f"Score {self.score} exceeds total {self.total}")
        return self

    @property
    def percentage(self) -> float:
        """Score as a fraction of the total."""
        return self.score / self.total


class WeaknessProfile(BaseModel):
    """Everything remembered about one user between pipeline runs.

    ``weaknesses`` and ``topics_studied`` have set semantics; they are kept as
    ordered lists so the persisted file stays stable and readable.
    """

    user_id: str
    weaknesses: list[str] = Field(default_factory=list)
    topics_studied: list[str] = Field(default_factory=list)
    quiz_history: list[QuizResult] = Field(default_factory=list)
    last_session_at: datetime | None = None

    @field_validator("weaknesses", "topics_studied")
    @classmethod
    def validate_unique(cls, v: list[str]) -> list[str]:
        """Enforce set semantics."""
        return _unique(v)
