"""Providers package — language model backends behind one capability protocol."""

from typing import Optional

from config.settings import Settings
from providers.base import (
    CompletionOptions,
    CompletionResult,
    LLMProvider,
    Message,
    StructuredResult,
    TokenUsage,
)
from providers.openai_compat import OpenAICompatibleProvider

STAGES = ("analyze", "translate", "edit")


def create_provider(settings: Settings, stage: str = "translate", model: Optional[str] = None) -> LLMProvider:
    """Build the configured backend for one pipeline stage."""
    model = model or settings.model_for_stage(stage)
    if settings.provider_backend == "claude_agent":
        from providers.agent_sdk import AgentSDKProvider
        return AgentSDKProvider(model=model)
    return OpenAICompatibleProvider(
        api_key=settings.openai_api_key,
        model=model,
        base_url=settings.openai_base_url,
        timeout=settings.request_timeout,
    )


def create_stage_providers(settings: Settings) -> dict[str, LLMProvider]:
    """One provider per stage, each with its stage's model."""
    return {stage: create_provider(settings, stage) for stage in STAGES}


__all__ = [
    "CompletionOptions",
    "CompletionResult",
    "LLMProvider",
    "Message",
    "StructuredResult",
    "TokenUsage",
    "OpenAICompatibleProvider",
    "create_provider",
    "create_stage_providers",
    "STAGES",
]
