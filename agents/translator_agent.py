"""Translator Agent: chunked, paragraph-aligned translation of a chapter."""

import asyncio
import logging
from typing import Optional

from agents.base_agent import BaseAgent, build_style_guide
from config.exceptions import LLMError, ParseError, StageError, ValidationError
from config.settings import Settings
from memory.glossary_store import GlossaryStore
from models.agent import AgentContext
from models.enums import StageType
from models.pipeline import (
    ChunkTranslation,
    ParagraphTranslation,
    StageResult,
    TextChunk,
    TranslationDraft,
)
from providers.base import CompletionOptions, LLMProvider, Message
from tools.chunker import PARAGRAPH_SEPARATOR, chunk_text, merge_chunks
from tools.llm_client import get_list, get_str, parse_json_response
from tools.text_utils import (
    PARA_MARKER_RE,
    extract_paragraph_marker,
    make_paragraph_marker,
    normalize_marker_id,
    split_into_paragraphs,
    strip_paragraph_markers,
)

logger = logging.getLogger(__name__)

# (marker id or None, text)
Unit = tuple[Optional[str], str]

RECENT_SUMMARIES_IN_PROMPT = 2


def build_context_text(context: AgentContext) -> str:
    """Render rolling narrative context for the translation prompt."""
    current = context.current_context
    parts = []
    if current.last_events:
        parts.append("Недавние события:\n" + "\n".join(f"- {e}" for e in current.last_events))
    if current.active_characters:
        parts.append("Активные персонажи: " + ", ".join(current.active_characters))
    if current.current_location:
        parts.append(f"Текущая локация: {current.current_location}")
    if current.current_mood:
        parts.append(f"Настроение: {current.current_mood}")
    if current.open_plot_threads:
        parts.append("Открытые сюжетные линии:\n" + "\n".join(f"- {t}" for t in current.open_plot_threads))
    recent = context.previous_chapters[-RECENT_SUMMARIES_IN_PROMPT:]
    if recent:
        parts.append("Предыдущие главы:\n" + "\n".join(
            f"Глава {s.chapter_number}: {s.summary}" for s in recent
        ))
    return "\n\n".join(parts)


def tag_chunk(chunk: TextChunk) -> list[tuple[str, str]]:
    """Give every paragraph of a chunk a marker id.

    Caller-supplied ``--para:<id>--`` markers are kept; other paragraphs
    (and repeated ids) get ``auto_<chunk>_<n>``.
    """
    units: list[tuple[str, str]] = []
    seen: set[str] = set()
    for n, paragraph in enumerate(split_into_paragraphs(chunk.content)):
        marker_id, body = extract_paragraph_marker(paragraph)
        if not marker_id or marker_id in seen:
            marker_id = f"auto_{chunk.index}_{n}"
        seen.add(marker_id)
        units.append((marker_id, body.strip()))
    return units


def parse_units(data: dict) -> list[Unit]:
    """Read translated units out of a structured reply."""
    units: list[Unit] = []
    for item in get_list(data, "paragraphs", "translations", "items"):
        if isinstance(item, dict):
            raw_id = item.get("id")
            text = get_str(item, "translated", "translation", "text")
        elif isinstance(item, str):
            raw_id, text = None, item
        else:
            continue
        marker_id = normalize_marker_id(raw_id) if raw_id else None
        units.append((marker_id or None, strip_paragraph_markers(text).strip()))
    if not units:
        single = get_str(data, "translated", "translation", "text")
        if single:
            units.append((None, strip_paragraph_markers(single).strip()))
    return units


def units_from_text(text: str) -> list[Unit]:
    """Read translated units out of a plain-text reply.

    JSON is tried first, then inline ``--para:<id>--`` markers; otherwise
    the whole reply is one untagged unit.
    """
    text = (text or "").strip()
    if not text:
        return []
    try:
        units = parse_units(parse_json_response(text))
        if units:
            return units
    except ValueError:
        pass

    parts = PARA_MARKER_RE.split(text)
    if len(parts) == 1:
        return [(None, text)]
    units = []
    if parts[0].strip():
        units.append((None, parts[0].strip()))
    for i in range(1, len(parts), 2):
        units.append((parts[i], parts[i + 1].strip()))
    return units


def reassemble(expected: list[tuple[str, str]], units: list[Unit]) -> tuple[Optional[list[ParagraphTranslation]], bool]:
    """Map returned units back onto the expected paragraphs.

    Returns (paragraphs, aligned). ``paragraphs`` is None when nothing could
    be mapped and the units must be used as one untagged block.

    * every id echoed back once: aligned by id;
    * every id echoed back plus extra units: a repeated id is appended to
      its own paragraph, anything else to the last paragraph;
    * some ids echoed back: matched ids in place, unmatched units fill the
      gaps in order, surplus text goes to the last paragraph;
    * no ids and the same count: positional;
    * no ids and a different count: untagged.
    """
    wanted = {marker_id for marker_id, _ in expected}
    by_id: dict[str, str] = {}
    leftovers: list[Unit] = []
    for marker_id, text in units:
        if marker_id in wanted and marker_id not in by_id:
            by_id[marker_id] = text
        elif text:
            leftovers.append((marker_id, text))

    if len(by_id) == len(expected):
        paragraphs = [ParagraphTranslation(i, orig, by_id[i]) for i, orig in expected]
        if not leftovers:
            return paragraphs, True
        logger.warning("Reply has %d unit(s) beyond the %d expected paragraph(s); appending them",
                       len(leftovers), len(expected))
        index = {p.id: p for p in paragraphs}
        for marker_id, text in leftovers:
            _append_text(index.get(marker_id, paragraphs[-1]), text)
        return paragraphs, False

    if not by_id:
        if len(units) == len(expected):
            logger.warning("Paragraph ids not echoed back; using positional order")
            return [
                ParagraphTranslation(marker_id, orig, text)
                for (marker_id, orig), (_, text) in zip(expected, units)
            ], False
        return None, False

    paragraphs = []
    missing = []
    for marker_id, orig in expected:
        if marker_id in by_id:
            text = by_id[marker_id]
        elif leftovers:
            text = leftovers.pop(0)[1]
        else:
            text = ""
            missing.append(marker_id)
        paragraphs.append(ParagraphTranslation(marker_id, orig, text))
    for _, text in leftovers:
        _append_text(paragraphs[-1], text)
    if missing:
        logger.warning("No translation returned for paragraph(s): %s", ", ".join(missing))
    return paragraphs, False


def _append_text(paragraph: ParagraphTranslation, text: str) -> None:
    paragraph.translated = PARAGRAPH_SEPARATOR.join(t for t in (paragraph.translated, text) if t)


class TranslatorAgent(BaseAgent):
    """Translates a chapter chunk by chunk and keeps paragraph alignment."""

    stage = StageType.TRANSLATE

    def __init__(self, provider: LLMProvider, settings: Optional[Settings] = None):
        super().__init__(provider, settings)
        self._template = self._load_prompt("translator")

    def _prompt_fields(self, context: AgentContext) -> dict:
        context_text = build_context_text(context)
        style_text = build_style_guide(context)
        return {
            "context_section": f"### Previous Context\n{context_text}\n\n" if context_text else "",
            "glossary": GlossaryStore(context.glossary).to_prompt_text().strip() or "(пусто)",
            "style_section": f"### Style Guide\n{style_text}\n\n" if style_text else "",
        }

    def _build_messages(self, fields: dict, tagged_text: str) -> list[Message]:
        system_prompt = self._extract_section(self._template, "System Prompt")
        request = self._extract_section(self._template, "Translation Request")
        return [
            Message("system", system_prompt),
            Message("user", request.format(source_text=tagged_text, **fields)),
        ]

    async def _translate_chunk(
        self,
        chunk: TextChunk,
        fields: dict,
        options: CompletionOptions,
        retry_attempts: Optional[int],
        semaphore: asyncio.Semaphore,
    ) -> ChunkTranslation:
        expected = tag_chunk(chunk)
        original = PARAGRAPH_SEPARATOR.join(body for _, body in expected)
        tagged = PARAGRAPH_SEPARATOR.join(f"{make_paragraph_marker(i)}{body}" for i, body in expected)
        messages = self._build_messages(fields, tagged)
        tokens = 0

        async with semaphore:
            logger.debug("Translating %s (%d paragraphs, ~%d tokens)", chunk.id, len(expected), chunk.token_count)
            try:
                try:
                    response = await self._with_retry(
                        lambda: self.provider.complete_structured(messages, options), retry_attempts
                    )
                    tokens += response.usage.total_tokens
                    units = parse_units(response.data)
                    if not units:
                        raise ParseError("Structured reply has no paragraphs", raw_response=response.raw)
                except ParseError as e:
                    logger.warning("%s: structured reply unusable (%s); falling back to plain text", chunk.id, e)
                    plain = await self._with_retry(
                        lambda: self.provider.complete(messages, options), retry_attempts
                    )
                    tokens += plain.usage.total_tokens
                    units = units_from_text(plain.content)
                    if not units:
                        raise ParseError("Plain-text fallback returned no content", raw_response=plain.content)
            except LLMError as e:
                logger.error("%s failed: %s", chunk.id, e)
                return ChunkTranslation(
                    chunk_id=chunk.id,
                    index=chunk.index,
                    original=original,
                    translated="",
                    paragraphs=[ParagraphTranslation(i, body, "") for i, body in expected],
                    tokens_used=tokens,
                    error=str(e),
                )

        paragraphs, aligned = reassemble(expected, units)
        if paragraphs is None:
            logger.warning("%s: no paragraph ids returned; using reply as one block", chunk.id)
            translated = PARAGRAPH_SEPARATOR.join(text for _, text in units if text)
            paragraphs = []
        else:
            translated = PARAGRAPH_SEPARATOR.join(p.translated for p in paragraphs if p.translated)

        return ChunkTranslation(
            chunk_id=chunk.id,
            index=chunk.index,
            original=original,
            translated=translated,
            paragraphs=paragraphs,
            aligned=aligned,
            tokens_used=tokens,
        )

    async def translate(
        self,
        context: AgentContext,
        source_text: str,
        chunk_size: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        max_concurrent: Optional[int] = None,
    ) -> StageResult[TranslationDraft]:
        """Run the Translate stage for one chapter.

        Chunks may be translated concurrently; results are reassembled by
        chunk index. If any chunk fails the stage fails, but the partial
        draft (with empty text for the failed chunks) is still attached.
        """
        started = self._started()
        try:
            chunks = chunk_text(
                source_text,
                max_tokens=chunk_size if chunk_size is not None else self.settings.max_tokens_per_chunk,
                estimator=self.provider.estimate_tokens,
            )
        except ValueError as e:
            return self._failure(ValidationError(str(e)), started)
        if not chunks:
            return self._failure(ValidationError("Source text is empty"), started)

        fields = self._prompt_fields(context)
        options = CompletionOptions(
            temperature=self.settings.translation_temperature,
            max_tokens=self.settings.max_output_tokens,
        )
        limit = max_concurrent if max_concurrent is not None else self.settings.max_concurrent_chunks
        if limit < 1:
            return self._failure(ValidationError(f"max_concurrent must be at least 1, got {limit}"), started)
        semaphore = asyncio.Semaphore(limit)

        logger.info("Translating %d chunk(s)...", len(chunks))
        results = await asyncio.gather(*(
            self._translate_chunk(chunk, fields, options, retry_attempts, semaphore) for chunk in chunks
        ))
        results = sorted(results, key=lambda r: r.index)

        draft = TranslationDraft(
            original_text=source_text,
            translated_text=merge_chunks(
                TextChunk(id=r.chunk_id, content=r.translated, index=r.index) for r in results
            ),
            chunk_results=results,
            paragraphs=[p for r in results for p in r.paragraphs],
            aligned=all(r.aligned for r in results),
            failed_chunks=[r.index for r in results if r.error],
        )
        tokens = sum(r.tokens_used for r in results)

        if draft.failed_chunks:
            first_error = next(r.error for r in results if r.error)
            message = f"{len(draft.failed_chunks)} of {len(results)} chunk(s) failed: {first_error}"
            return self._failure(StageError(self.stage.value, message), started, tokens, data=draft)
        if not draft.translated_text.strip():
            return self._failure(ValidationError("Translation is empty"), started, tokens, data=draft)

        logger.info("Translation complete: %d chars, aligned=%s", len(draft.translated_text), draft.aligned)
        return self._success(draft, started, tokens)
