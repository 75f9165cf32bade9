"""Configuration package — settings, logging, and exceptions."""

from config.exceptions import (
    TranslationEngineError,
    ConfigurationError,
    LLMError,
    TransportError,
    LLMTimeoutError,
    LLMRateLimitError,
    ParseError,
    ValidationError,
    TranslationQualityError,
    PipelineError,
    StageError,
)
from config.logging_config import setup_logging
from config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "setup_logging",
    "TranslationEngineError",
    "ConfigurationError",
    "LLMError",
    "TransportError",
    "LLMTimeoutError",
    "LLMRateLimitError",
    "ParseError",
    "ValidationError",
    "TranslationQualityError",
    "PipelineError",
    "StageError",
]
