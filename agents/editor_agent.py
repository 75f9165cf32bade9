"""Editor Agent: polishes a translated chapter and reports what changed."""

import logging
import re
from itertools import zip_longest
from typing import Optional

from agents.base_agent import BaseAgent, build_style_guide
from config.exceptions import LLMError, ValidationError
from config.settings import Settings
from memory.glossary_store import GlossaryStore
from models.agent import AgentContext
from models.enums import StageType
from models.glossary import Glossary
from models.pipeline import EditChange, EditedTranslation, StageResult, TextChunk
from providers.base import CompletionOptions, LLMProvider, Message
from tools.chunker import PARAGRAPH_SEPARATOR, chunk_text, merge_chunks
from tools.llm_client import get_list
from tools.text_utils import split_into_paragraphs, strip_paragraph_markers

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```[a-z]*\s*\n(.*?)\n?```$", re.DOTALL)

CHANGE_PREVIEW_CHARS = 100
QUALITY_TEMPERATURE = 0.3
QUALITY_MAX_TOKENS = 1024


def _clean_output(text: str) -> str:
    """Strip a wrapping code fence and any paragraph markers the model echoed."""
    text = (text or "").strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1).strip()
    return strip_paragraph_markers(text).strip()


def detect_changes(before: str, after: str) -> list[EditChange]:
    """Paragraph-level diff between the draft and the edited text."""
    changes = []
    for old, new in zip_longest(split_into_paragraphs(before), split_into_paragraphs(after), fillvalue=""):
        if old == new:
            continue
        if not old:
            reason = "paragraph added"
        elif not new:
            reason = "paragraph removed"
        else:
            reason = "paragraph edited"
        changes.append(EditChange(old[:CHANGE_PREVIEW_CHARS], new[:CHANGE_PREVIEW_CHARS], reason))
    return changes


def find_glossary_warnings(glossary: Glossary, original_text: str, edited_text: str) -> list[str]:
    """Glossary entries mentioned in the source whose translation is missing from the output.

    Characters count as present when any declined form appears.
    """
    source = original_text.lower()
    output = edited_text.lower()
    warnings = []

    for character in glossary.characters:
        names = [character.original_name, *character.aliases]
        if not any(name.lower() in source for name in names if name):
            continue
        forms = {f.lower() for f in character.declensions.to_dict().values() if f}
        forms.add(character.translated_name.lower())
        if not any(form in output for form in forms):
            warnings.append(f"{character.original_name} → {character.translated_name}")

    for location in glossary.locations:
        if location.original_name.lower() in source and location.translated_name.lower() not in output:
            warnings.append(f"{location.original_name} → {location.translated_name}")

    for term in glossary.terms:
        if term.original_term.lower() in source and term.translated_term.lower() not in output:
            warnings.append(f"{term.original_term} → {term.translated_term}")

    return warnings


def _pair_originals(original_text: str, chunks: list[TextChunk], max_tokens: int) -> list[str]:
    """Source text to show next to each translated chunk.

    Paragraph ranges line up when both sides have the same paragraph count;
    otherwise the source is chunked on its own and paired by index.
    """
    source = strip_paragraph_markers(original_text)
    source_paragraphs = split_into_paragraphs(source)
    chunk_paragraphs = [split_into_paragraphs(c.content) for c in chunks]

    if len(source_paragraphs) == sum(len(p) for p in chunk_paragraphs):
        paired, offset = [], 0
        for paragraphs in chunk_paragraphs:
            paired.append(PARAGRAPH_SEPARATOR.join(source_paragraphs[offset:offset + len(paragraphs)]))
            offset += len(paragraphs)
        return paired

    source_chunks = chunk_text(source, max_tokens=max_tokens)
    return [source_chunks[i].content if i < len(source_chunks) else "" for i in range(len(chunks))]


class EditorAgent(BaseAgent):
    """Literary polish of the draft translation, with an optional quality score."""

    stage = StageType.EDIT

    def __init__(self, provider: LLMProvider, settings: Optional[Settings] = None):
        super().__init__(provider, settings)
        self._template = self._load_prompt("editor")

    def _build_messages(self, context: AgentContext, translated_text: str, original_text: str) -> list[Message]:
        system_prompt = self._extract_section(self._template, "System Prompt")
        request = self._extract_section(self._template, "Edit Request")
        style_text = build_style_guide(context)
        user_prompt = request.format(
            glossary=GlossaryStore(context.glossary).to_prompt_text().strip() or "(пусто)",
            style_section=f"### Style Guide\n{style_text}\n\n" if style_text else "",
            original_text=strip_paragraph_markers(original_text),
            translated_text=translated_text,
        )
        return [Message("system", system_prompt), Message("user", user_prompt)]

    async def _edit_once(
        self,
        context: AgentContext,
        translated_text: str,
        original_text: str,
        retry_attempts: Optional[int],
    ) -> tuple[str, int]:
        options = CompletionOptions(
            temperature=self.settings.editing_temperature,
            max_tokens=self.settings.max_output_tokens,
        )
        messages = self._build_messages(context, translated_text, original_text)
        response = await self._with_retry(lambda: self.provider.complete(messages, options), retry_attempts)
        return _clean_output(response.content), response.usage.total_tokens

    async def _edit_chunked(
        self,
        context: AgentContext,
        translated_text: str,
        original_text: str,
        max_tokens: int,
        retry_attempts: Optional[int],
    ) -> tuple[str, int, int, int]:
        """Edit chunk by chunk. Returns (text, tokens, failed chunks, total chunks)."""
        chunks = chunk_text(translated_text, max_tokens=max_tokens, estimator=self.provider.estimate_tokens)
        originals = _pair_originals(original_text, chunks, max_tokens)
        edited, tokens, failed = [], 0, 0

        for chunk, original in zip(chunks, originals):
            try:
                text, used = await self._edit_once(context, chunk.content, original, retry_attempts)
                tokens += used
            except LLMError as e:
                logger.warning("Editing %s failed, keeping draft: %s", chunk.id, e)
                text = ""
                failed += 1
            if not text:
                text = chunk.content
            edited.append(TextChunk(id=chunk.id, content=text, index=chunk.index))

        return merge_chunks(edited), tokens, failed, len(chunks)

    async def check_quality(
        self,
        original_text: str,
        edited_text: str,
        retry_attempts: Optional[int] = None,
    ) -> tuple[Optional[float], list[str], int]:
        """Score the translation 1-10. Returns (score, issues, tokens); no score on failure."""
        system_prompt = self._extract_section(self._template, "Quality Check")
        user_prompt = (
            f"### Original\n{strip_paragraph_markers(original_text)}\n\n"
            f"### Translation\n{edited_text}"
        )
        options = CompletionOptions(temperature=QUALITY_TEMPERATURE, max_tokens=QUALITY_MAX_TOKENS)
        try:
            response = await self._with_retry(
                lambda: self.provider.complete_structured(
                    [Message("system", system_prompt), Message("user", user_prompt)], options
                ),
                retry_attempts,
            )
        except LLMError as e:
            logger.warning("Quality check failed: %s", e)
            return None, [], 0

        score = response.data.get("score")
        try:
            score = float(score) if score is not None else None
        except (TypeError, ValueError):
            score = None
        issues = [str(i) for i in get_list(response.data, "issues") if str(i).strip()]
        return score, issues, response.usage.total_tokens

    async def edit(
        self,
        context: AgentContext,
        translated_text: str,
        original_text: str,
        chunk_size: Optional[int] = None,
        check_quality: Optional[bool] = None,
        retry_attempts: Optional[int] = None,
    ) -> StageResult[EditedTranslation]:
        """Run the Edit stage for one chapter.

        Large drafts (or any draft when ``chunk_size`` is given) are edited
        per chunk; a chunk whose edit fails keeps its draft text. The quality
        score is only requested for unchunked edits.
        """
        started = self._started()
        if not translated_text or not translated_text.strip():
            return self._failure(ValidationError("Nothing to edit: translation is empty"), started)

        chunked = (
            chunk_size is not None
            or self.provider.estimate_tokens(translated_text) > self.settings.edit_chunk_threshold_tokens
        )

        logger.info("Editing translation (%d chars, chunked=%s)...", len(translated_text), chunked)
        try:
            if chunked:
                max_tokens = chunk_size if chunk_size is not None else self.settings.max_tokens_per_chunk
                if max_tokens < 1:
                    return self._failure(ValidationError(f"chunk_size must be at least 1, got {max_tokens}"), started)
                final_text, tokens, failed, total = await self._edit_chunked(
                    context, translated_text, original_text, max_tokens, retry_attempts
                )
                if failed and failed == total:
                    return self._failure(LLMError(f"All {failed} edit chunk(s) failed"), started, tokens)
            else:
                final_text, tokens = await self._edit_once(context, translated_text, original_text, retry_attempts)
        except LLMError as e:
            return self._failure(e, started)

        if not final_text:
            return self._failure(ValidationError("Editor returned empty text"), started, tokens)

        result = EditedTranslation(final_text=final_text, changes=detect_changes(translated_text, final_text))

        run_quality = self.settings.check_quality if check_quality is None else check_quality
        if run_quality and not chunked:
            score, issues, used = await self.check_quality(original_text, final_text, retry_attempts)
            result.quality_score = score
            result.quality_issues = issues
            tokens += used

        result.glossary_warnings = find_glossary_warnings(context.glossary, original_text, final_text)
        for warning in result.glossary_warnings:
            logger.warning("Glossary form missing from edited text: %s", warning)

        logger.info(
            "Editing complete: %d paragraph change(s), score=%s",
            len(result.changes), result.quality_score,
        )
        return self._success(result, started, tokens)
