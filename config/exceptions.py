"""Custom exception hierarchy for the translation engine."""

from typing import Optional


class TranslationEngineError(Exception):
    """Base exception for all translation engine errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Configuration Errors ----

class ConfigurationError(TranslationEngineError):
    """Missing or invalid provider credentials/configuration. Never retried."""


# ---- LLM Errors ----

class LLMError(TranslationEngineError):
    """Base exception for language model provider errors."""


class TransportError(LLMError):
    """Network-level failure talking to a provider."""

    def __init__(self, message: str = "Provider request failed", status_code: Optional[int] = None):
        details = {"status_code": status_code} if status_code is not None else {}
        super().__init__(message, details)
        self.status_code = status_code


class LLMTimeoutError(TransportError):
    """Provider request timed out."""

    def __init__(self, message: str = "Provider request timed out"):
        super().__init__(message)


class LLMRateLimitError(TransportError):
    """Provider rate limit exceeded."""

    def __init__(self, message: str = "API rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        if retry_after is not None:
            self.details["retry_after"] = retry_after
        self.retry_after = retry_after


class ParseError(LLMError):
    """Structured response could not be decoded into the expected shape."""

    def __init__(self, message: str = "Failed to parse LLM response", raw_response: str = ""):
        details = {"raw_response": raw_response[:200]} if raw_response else {}
        super().__init__(message, details)
        self.raw_response = raw_response


# ---- Validation Errors ----

class ValidationError(TranslationEngineError):
    """Input or output validation failed."""


class TranslationQualityError(ValidationError):
    """A finished translation did not pass the quality gate."""

    def __init__(self, reason: str, chapter: Optional[int] = None):
        details = {"chapter": chapter} if chapter is not None else {}
        super().__init__(f"Translation rejected: {reason}", details)
        self.reason = reason


# ---- Pipeline Errors ----

class PipelineError(TranslationEngineError):
    """Base exception for pipeline orchestration errors."""


class StageError(PipelineError):
    """A pipeline stage produced a structured failure."""

    def __init__(self, stage: str, message: str):
        super().__init__(message, {"stage": stage})
        self.stage = stage
