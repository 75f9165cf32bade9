"""Configuration settings loaded from .env file."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings

from models.enums import Language


class Settings(BaseSettings):
    """Application settings, loaded from .env file.

    The ``openai`` backend talks to any OpenAI-compatible chat completions
    endpoint and needs an API key. The ``claude_agent`` backend goes through
    the Claude Agent SDK, which handles authentication itself.
    """

    # Provider
    provider_backend: Literal["openai", "claude_agent"] = "openai"
    openai_api_key: Optional[str] = None
    openai_base_url: str = "https://api.openai.com/v1"
    request_timeout: float = 120.0

    # Models, one per pipeline stage
    model_analysis: str = "gpt-4o-mini"
    model_translation: str = "gpt-4o"
    model_editing: str = "gpt-4o"

    # Sampling
    analysis_temperature: float = 0.3
    translation_temperature: float = 0.7
    editing_temperature: float = 0.5
    max_output_tokens: int = 4096

    # Chunking
    max_tokens_per_chunk: int = 2000
    max_concurrent_chunks: int = 1
    edit_chunk_threshold_tokens: int = 3000

    # Failure policy
    retry_attempts: int = 0
    retry_backoff_seconds: float = 2.0
    skip_analysis_on_failure: bool = True
    fail_on_edit_error: bool = False
    check_quality: bool = True

    # Languages
    source_language: Language = Language.ENGLISH
    target_language: Language = Language.RUSSIAN

    # Logging
    log_dir: Path = Path("./data/logs")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("max_tokens_per_chunk", "max_output_tokens", "edit_chunk_threshold_tokens")
    @classmethod
    def validate_token_budget(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Token budgets must be >= 1")
        return v

    @field_validator("max_concurrent_chunks")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrent_chunks must be >= 1")
        return v

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 0:
            raise ValueError("retry_attempts must be non-negative")
        return v

    @field_validator("analysis_temperature", "translation_temperature", "editing_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    @field_validator("request_timeout", "retry_backoff_seconds")
    @classmethod
    def validate_seconds(cls, v: float) -> float:
        if v < 0:
            raise ValueError("Durations must be non-negative")
        return v

    @field_validator("log_dir")
    @classmethod
    def ensure_parent_dirs(cls, v: Path) -> Path:
        v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @model_validator(mode="after")
    def validate_language_pair(self) -> "Settings":
        if self.source_language == self.target_language:
            raise ValueError(
                f"source_language and target_language must differ (both {self.source_language.value!r})"
            )
        return self

    def model_for_stage(self, stage: str) -> str:
        """Return the configured model name for a pipeline stage."""
        return {
            "analyze": self.model_analysis,
            "translate": self.model_translation,
            "edit": self.model_editing,
        }[stage]


_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
