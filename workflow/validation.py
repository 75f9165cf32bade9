"""Quality gate applied to a finished chapter translation."""

import logging
from typing import Optional

from config.exceptions import TranslationQualityError

logger = logging.getLogger(__name__)

# Markers that only appear when an upstream step wrote an error into the text
ERROR_SENTINELS = ("[ERROR", "❌")


def validate_translation(
    text: str,
    tokens_used: int,
    duration_ms: int,
    chapter_number: Optional[int] = None,
) -> None:
    """Reject translations that cannot be real model output.

    Raises:
        TranslationQualityError: Empty text, an error sentinel in the text,
            or a result that consumed no tokens and no time.
    """
    if not text or not text.strip():
        raise TranslationQualityError("translation is empty", chapter_number)

    for sentinel in ERROR_SENTINELS:
        if sentinel in text:
            raise TranslationQualityError(f"translation contains error marker {sentinel!r}", chapter_number)

    if tokens_used == 0 and duration_ms == 0:
        raise TranslationQualityError("no tokens used and no time spent", chapter_number)

    logger.debug("Chapter %s passed quality gate (%d chars)", chapter_number, len(text))
