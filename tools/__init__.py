"""Tools package — inflection, name mapping, chunking, text utilities and JSON parsing."""

from tools.chunker import chunk_text, merge_chunks
from tools.declension import decline, detect_declension_pattern, detect_gender_from_name, get_case_form
from tools.llm_client import parse_json_response
from tools.text_utils import (
    estimate_tokens,
    split_into_paragraphs,
    split_into_sentences,
    strip_paragraph_markers,
)
from tools.transliteration import transliterate, translate_and_decline

__all__ = [
    "chunk_text",
    "merge_chunks",
    "decline",
    "detect_declension_pattern",
    "detect_gender_from_name",
    "get_case_form",
    "parse_json_response",
    "estimate_tokens",
    "split_into_paragraphs",
    "split_into_sentences",
    "strip_paragraph_markers",
    "transliterate",
    "translate_and_decline",
]
