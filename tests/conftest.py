"""Shared pytest fixtures for the novel-translator test suite."""

import json

import pytest
from unittest.mock import MagicMock, AsyncMock


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------

@pytest.fixture
def settings(tmp_path):
    """Return a Settings instance with logs in tmp_path and no retry back-off."""
    from config.settings import Settings
    return Settings(
        _env_file=None,
        provider_backend="openai",
        openai_api_key="test-key",
        log_dir=tmp_path / "logs",
        retry_backoff_seconds=0,
        retry_attempts=0,
        max_tokens_per_chunk=2000,
        edit_chunk_threshold_tokens=3000,
        check_quality=False,
    )


# ---------------------------------------------------------------------------
# Provider mocks
# ---------------------------------------------------------------------------

@pytest.fixture
def make_structured():
    """Factory for StructuredResult replies with non-zero usage."""
    from providers.base import StructuredResult, TokenUsage

    def _make(data: dict, tokens: int = 20) -> StructuredResult:
        return StructuredResult(
            data=data,
            usage=TokenUsage(tokens // 2, tokens - tokens // 2, tokens),
            raw=json.dumps(data, ensure_ascii=False),
        )
    return _make


@pytest.fixture
def make_completion():
    """Factory for CompletionResult replies with non-zero usage."""
    from providers.base import CompletionResult, TokenUsage

    def _make(content: str, tokens: int = 20) -> CompletionResult:
        return CompletionResult(
            content=content,
            usage=TokenUsage(tokens // 2, tokens - tokens // 2, tokens),
            finish_reason="stop",
            model="test-model",
        )
    return _make


@pytest.fixture
def make_provider(make_completion, make_structured):
    """Factory for MagicMock providers whose LLM calls are AsyncMocks.

    ``estimate_tokens`` is the real estimator so chunking behaves normally.
    """
    from tools.text_utils import estimate_tokens

    def _make(structured: dict = None, completion: str = "Отредактированный текст.", name: str = "mock"):
        provider = MagicMock()
        provider.name = name
        provider.model = "test-model"
        provider.estimate_tokens = estimate_tokens
        provider.complete = AsyncMock(return_value=make_completion(completion))
        provider.complete_structured = AsyncMock(
            return_value=make_structured(structured if structured is not None else {"paragraphs": []})
        )
        provider.is_available = AsyncMock(return_value=True)
        return provider
    return _make


@pytest.fixture
def mock_provider(make_provider):
    """A single mock provider with default replies."""
    return make_provider()


# ---------------------------------------------------------------------------
# Sample data fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def agent():
    """Return a fresh NovelAgent for an EN → RU novel."""
    from memory.novel_agent import NovelAgent
    return NovelAgent.create(novel_id="novel-1", title="The Test Novel", author="A. Writer")


@pytest.fixture
def agent_with_john(agent):
    """A NovelAgent whose glossary already knows John."""
    from models.enums import Gender
    agent.glossary_store.add_character("John", translated_name="Джон", gender=Gender.MALE)
    return agent


@pytest.fixture
def sample_chapter():
    """A three-paragraph English chapter."""
    return (
        "Liam walked into the tavern at dusk.\n\n"
        "John was already waiting by the fire.\n\n"
        "They spoke quietly about the road to Eldoria."
    )
