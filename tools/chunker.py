"""Chapter chunking: provider-sized slices on paragraph boundaries."""

import logging
from typing import Callable, Iterable, Optional, Protocol

from models.pipeline import TextChunk
from tools.text_utils import estimate_tokens, split_into_paragraphs, split_into_sentences

logger = logging.getLogger(__name__)

PARAGRAPH_SEPARATOR = "\n\n"

TokenEstimator = Callable[[str], int]


class _Indexed(Protocol):
    index: int
    content: str


def _make_chunk(parts: list[str], index: int, separator: str, estimator: TokenEstimator) -> TextChunk:
    content = separator.join(parts).strip()
    return TextChunk(id=f"chunk_{index}", content=content, index=index, token_count=estimator(content))


def _pack(units: list[str], max_tokens: int, separator: str, estimator: TokenEstimator) -> list[TextChunk]:
    """Greedily pack consecutive units into chunks under the token budget.

    A unit that alone exceeds the budget becomes its own chunk.
    """
    chunks: list[TextChunk] = []
    current: list[str] = []
    current_tokens = 0

    for unit in units:
        unit_tokens = estimator(unit)
        if current and current_tokens + unit_tokens > max_tokens:
            chunks.append(_make_chunk(current, len(chunks), separator, estimator))
            current, current_tokens = [], 0
        current.append(unit)
        current_tokens += unit_tokens
        if unit_tokens > max_tokens:
            logger.debug("Unit of %d tokens exceeds budget %d; kept whole", unit_tokens, max_tokens)

    if current:
        chunks.append(_make_chunk(current, len(chunks), separator, estimator))
    return chunks


def chunk_text(
    text: str,
    max_tokens: int = 2000,
    preserve_paragraphs: bool = True,
    estimator: Optional[TokenEstimator] = None,
) -> list[TextChunk]:
    """Split chapter text into chunks of at most ``max_tokens`` estimated tokens.

    Args:
        text: Blank-line-delimited chapter text.
        max_tokens: Token budget per chunk.
        preserve_paragraphs: Pack whole paragraphs (default). When False,
            paragraphs are flattened into sentences and sentences are packed
            instead, joined by single spaces.
        estimator: Token estimator; defaults to ``estimate_tokens``.

    Returns:
        Chunks with ids ``chunk_<index>`` and consecutive indexes from 0.
    """
    if max_tokens < 1:
        raise ValueError("max_tokens must be >= 1")
    estimator = estimator or estimate_tokens

    if preserve_paragraphs:
        return _pack(split_into_paragraphs(text), max_tokens, PARAGRAPH_SEPARATOR, estimator)

    sentences = [s for p in split_into_paragraphs(text) for s in split_into_sentences(p)]
    return _pack(sentences, max_tokens, " ", estimator)


def merge_chunks(items: Iterable[_Indexed]) -> str:
    """Join chunk contents in index order, whatever order they arrive in.

    Empty contents are dropped so a failed chunk leaves no blank gap.
    """
    ordered = sorted(items, key=lambda c: c.index)
    kept = [c.content.strip() for c in ordered if c.content and c.content.strip()]
    if len(kept) != len(ordered):
        logger.warning("merge_chunks dropped %d empty chunk(s)", len(ordered) - len(kept))
    return PARAGRAPH_SEPARATOR.join(kept)


def split_into_sections(text: str, max_section_tokens: int = 8000) -> list[str]:
    """Split a very long chapter into paragraph-aligned sections."""
    chunks = chunk_text(text, max_tokens=max_section_tokens)
    return [c.content for c in chunks]
