"""Application settings and configuration."""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Load .env file if present
load_dotenv()

DEFAULT_QUESTION_COUNTS = {
    "multiple-choice": 3,
    "true-false": 1,
    "fill-blank": 1,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Model access
    anthropic_api_key: str | None = Field(
        default=None,
        description="Default access credential when a request carries none",
        validation_alias="ANTHROPIC_API_KEY",
    )

    model_name: str = Field(
        default="claude-sonnet-4-20250514",
        description="Model to use (Anthropic model ID)",
        validation_alias="MODEL_NAME",
    )

    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0.0,
        description="Timeout applied to every single model call",
        validation_alias="REQUEST_TIMEOUT",
    )

    # Temperatures
    research_temperature: float = Field(
        default=0.2,  # facts should stay close to the document
        ge=0.0,
        le=1.0,
        description="Temperature for the research loop",
        validation_alias="RESEARCH_TEMPERATURE",
    )

    generation_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Temperature for question generation",
        validation_alias="GENERATION_TEMPERATURE",
    )

    extraction_temperature: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Temperature for multimodal content extraction",
        validation_alias="EXTRACTION_TEMPERATURE",
    )

    # Research Settings
    max_tool_calls: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Max tool invocations per research run",
        validation_alias="MAX_TOOL_CALLS",
    )

    fact_count: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Number of facts the researcher extracts",
        validation_alias="FACT_COUNT",
    )

    # Generation Settings
    question_counts: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_QUESTION_COUNTS),
        description="Questions per kind; each kind is generated by its own task",
        validation_alias="QUESTION_COUNTS",
    )

    generation_max_concurrency: int = Field(
        default=8,
        ge=1,
        le=32,
        description="Max generation tasks in flight at once",
        validation_alias="GENERATION_MAX_CONCURRENCY",
    )

    # Memory Settings
    memory_dir: Path = Field(
        default=Path.home() / ".study_construct" / "memory",
        description="Directory holding one profile file per user",
        validation_alias="MEMORY_DIR",
    )

    default_user_id: str = Field(
        default="user-1",
        min_length=1,
        description="User identity when none is given",
        validation_alias="DEFAULT_USER_ID",
    )

    # Output Settings
    default_output_path: str = Field(
        default="quiz",
        description="Default output file path",
        validation_alias="DEFAULT_OUTPUT",
    )

    log_level: str = Field(
        default="WARNING",
        description="Minimum level for log messages on stderr",
        validation_alias="LOG_LEVEL",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "populate_by_name": True,
        "protected_namespaces": ("settings_",),
    }

    @field_validator("question_counts")
    @classmethod
    def validate_question_counts(cls, v: dict[str, int]) -> dict[str, int]:
        """Drop zero counts and reject negative ones."""
        for kind, count in v.items():
            if count < 0:
                raise ValueError(f"Question count for {kind} cannot be negative")
        cleaned = {kind: count for kind, count in v.items() if count > 0}
        if not cleaned:
            raise ValueError("At least one question kind needs a positive count")
        return cleaned


# This is loaded the first time and then cached for further use by other agents
@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings object with loaded configuration
    """
    return Settings()
