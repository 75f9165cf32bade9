"""Text utilities: paragraph splitting, token estimation, paragraph markers."""

import math
import re
from typing import Optional

# Ideographs, kana and hangul cost roughly one token per character
_WIDE_CHAR_RE = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\u3040-\u309f\u30a0-\u30ff\uac00-\ud7af]")

_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?…。！？])\s+")

# --para:<id>-- at the start of a paragraph
PARA_MARKER_RE = re.compile(r"--para:(\S+?)--")
_LEADING_MARKER_RE = re.compile(r"^\s*--para:(\S+?)--\s*")


def count_wide_chars(text: str) -> int:
    """Count CJK ideographs, kana and hangul syllables in text."""
    return len(_WIDE_CHAR_RE.findall(text))


def estimate_tokens(text: str) -> int:
    """Coarse token estimate: four narrow characters or one wide character per token."""
    if not text:
        return 0
    wide = count_wide_chars(text)
    return math.ceil((len(text) - wide) / 4) + wide


def split_into_paragraphs(text: str) -> list[str]:
    """Split text into paragraphs on blank lines."""
    paragraphs = _PARAGRAPH_SPLIT_RE.split(text)
    return [p.strip() for p in paragraphs if p.strip()]


def split_into_sentences(text: str) -> list[str]:
    sentences = _SENTENCE_SPLIT_RE.split(text)
    return [s.strip() for s in sentences if s.strip()]


def make_paragraph_marker(marker_id: str) -> str:
    return f"--para:{marker_id}--"


def normalize_marker_id(raw: str) -> str:
    """Reduce ``--para:abc--``, ``para:abc`` or ``abc`` to the bare id ``abc``."""
    value = str(raw).strip()
    if value.startswith("--"):
        value = value[2:]
    if value.startswith("para:"):
        value = value[len("para:"):]
    if value.endswith("--"):
        value = value[:-2]
    return value.strip()


def extract_paragraph_marker(paragraph: str) -> tuple[Optional[str], str]:
    """Split a paragraph into (marker id or None, text without the marker)."""
    match = _LEADING_MARKER_RE.match(paragraph)
    if not match:
        return None, paragraph
    return match.group(1), paragraph[match.end():]


def strip_paragraph_markers(text: str) -> str:
    """Remove every ``--para:<id>--`` marker from text."""
    return PARA_MARKER_RE.sub("", text)


def get_text_excerpt(content: str, char_limit: int = 500) -> str:
    """Return the first ``char_limit`` characters of content, for log lines and prompts."""
    if not content:
        return ""
    if len(content) <= char_limit:
        return content
    return content[:char_limit] + "…"
