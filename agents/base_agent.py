"""Base class for pipeline stage agents: prompts, provider calls, retry, timing."""

import asyncio
import logging
import time
from functools import lru_cache
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

from config.exceptions import LLMRateLimitError, TransportError
from config.settings import Settings, get_settings
from models.agent import AgentContext
from models.enums import Language, StageType
from models.pipeline import StageResult
from providers.base import LLMProvider

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent.parent / "config" / "prompts"

T = TypeVar("T")

LANGUAGE_NAMES = {
    Language.ENGLISH: "English",
    Language.RUSSIAN: "Russian",
    Language.JAPANESE: "Japanese",
    Language.CHINESE: "Chinese",
    Language.KOREAN: "Korean",
    Language.POLISH: "Polish",
}


@lru_cache(maxsize=32)
def _read_prompt_file(path: str) -> str:
    """Read and cache a prompt file by absolute path string."""
    return Path(path).read_text(encoding="utf-8")


def language_name(code: Language | str) -> str:
    return LANGUAGE_NAMES.get(code, getattr(code, "value", code))


def build_style_guide(context: AgentContext) -> str:
    """Render the style profile as prompt lines, skipping empty axes."""
    profile = context.style_profile
    lines = []
    if profile.tone:
        lines.append(f"Тон: {profile.tone}")
    if profile.narrative_voice:
        lines.append(f"Повествование: {profile.narrative_voice}")
    if profile.dialogue_style:
        lines.append(f"Диалоги: {profile.dialogue_style}")
    if profile.writing_style:
        lines.append(f"Стиль автора: {profile.writing_style}")
    if profile.target_audience:
        lines.append(f"Аудитория: {profile.target_audience}")
    return "\n".join(lines)


class BaseAgent:
    """Base class for the Analyze, Translate and Edit stages.

    Subclasses set ``stage`` and load their prompt template in ``__init__``.
    """

    stage: StageType

    def __init__(self, provider: LLMProvider, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.provider = provider

    def _load_prompt(self, template_name: str) -> str:
        """Load a prompt template from config/prompts/ (cached after first read).

        Args:
            template_name: Filename without extension, e.g. 'translator'.
        """
        path = _PROMPTS_DIR / f"{template_name}.md"
        if not path.exists():
            raise FileNotFoundError(f"Prompt template not found: {path}")
        return _read_prompt_file(str(path))

    def _extract_section(self, template: str, section_header: str) -> str:
        """Extract one '## '-delimited section from a prompt template."""
        lines = template.split("\n")
        capturing = False
        result = []
        for line in lines:
            if line.strip().startswith("## ") and section_header in line:
                capturing = True
                continue
            elif line.strip().startswith("## ") and capturing:
                break
            elif capturing:
                result.append(line)
        return "\n".join(result).strip()

    async def _with_retry(self, call: Callable[[], Awaitable[T]], retry_attempts: Optional[int] = None) -> T:
        """Run a provider call, retrying transport failures only.

        Parse and configuration errors propagate immediately.
        """
        attempts = self.settings.retry_attempts if retry_attempts is None else retry_attempts
        attempt = 0
        while True:
            try:
                return await call()
            except TransportError as e:
                if attempt >= attempts:
                    raise
                attempt += 1
                delay = self.settings.retry_backoff_seconds * attempt
                if isinstance(e, LLMRateLimitError) and e.retry_after:
                    delay = e.retry_after
                logger.warning(
                    "%s: transport error (%s), retry %d/%d in %.1fs",
                    self.stage.value, e, attempt, attempts, delay,
                )
                await asyncio.sleep(delay)

    def _started(self) -> float:
        return time.monotonic()

    def _elapsed_ms(self, started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def _failure(
        self,
        error: Exception | str,
        started: float,
        tokens_used: int = 0,
        data=None,
    ) -> StageResult:
        message = str(error)
        error_type = type(error).__name__ if isinstance(error, Exception) else None
        logger.error("Stage %s failed: %s", self.stage.value, message)
        return StageResult(
            stage=self.stage,
            success=False,
            data=data,
            error=message,
            error_type=error_type,
            tokens_used=tokens_used,
            duration_ms=self._elapsed_ms(started),
        )

    def _success(self, data, started: float, tokens_used: int) -> StageResult:
        return StageResult(
            stage=self.stage,
            success=True,
            data=data,
            tokens_used=tokens_used,
            duration_ms=self._elapsed_ms(started),
        )
