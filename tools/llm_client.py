"""Helpers for decoding model output into JSON objects.

Models wrap JSON in code fences, add prose around it, or emit raw newlines
inside strings. ``parse_json_response`` tolerates all of these and raises
``ValueError`` only when no JSON object can be recovered at all.
"""

import json
import re
from typing import Any

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)

# Accepts unescaped control characters (raw newlines, tabs) inside strings
_LENIENT_DECODER = json.JSONDecoder(strict=False)


def _try_loads(text: str) -> Any:
    """Try parsing JSON, first strictly then leniently."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    try:
        return _LENIENT_DECODER.decode(text)
    except json.JSONDecodeError:
        pass
    raise json.JSONDecodeError("", text, 0)


def _ensure_dict(result: Any) -> dict:
    """Normalize a decoded value to a dict.

    A top-level array is wrapped as ``{"items": [...]}`` so callers can
    still look for their list; scalars are rejected.
    """
    if isinstance(result, dict):
        return result
    if isinstance(result, list):
        return {"items": result}
    raise json.JSONDecodeError("Top-level JSON value is not an object", str(result), 0)


def parse_json_response(text: str) -> dict:
    """Extract and parse a JSON object from model response text.

    Tries, in order: the whole text, the first fenced code block, and the
    widest ``{...}`` or ``[...]`` span.

    Raises:
        ValueError: If nothing in the text decodes to a JSON object or array.
    """
    text = (text or "").strip()

    try:
        return _ensure_dict(_try_loads(text))
    except json.JSONDecodeError:
        pass

    match = _JSON_FENCE_RE.search(text)
    if match:
        try:
            return _ensure_dict(_try_loads(match.group(1).strip()))
        except json.JSONDecodeError:
            pass

    for start_char, end_char in [("{", "}"), ("[", "]")]:
        start = text.find(start_char)
        end = text.rfind(end_char)
        if start != -1 and end != -1 and end > start:
            try:
                return _ensure_dict(_try_loads(text[start:end + 1]))
            except json.JSONDecodeError:
                continue

    raise ValueError(f"Failed to parse JSON from LLM response: {text[:200]}...")


def get_list(data: dict, *keys: str) -> list:
    """Return the first list found under any of ``keys``, else []."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            return value
    return []


def get_str(data: dict, *keys: str, default: str = "") -> str:
    """Return the first non-empty string found under any of ``keys``."""
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default
