"""Russian case declension for personal names.

Each ``DeclensionPattern`` maps to a single rule: how many trailing letters
to strip from the nominative and which suffixes to append for the five
oblique cases. Pattern detection looks only at the final letters of the
name and its grammatical gender.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models.enums import Gender, GrammaticalCase
from models.glossary import Declensions

logger = logging.getLogger(__name__)

VOWELS = frozenset("аеёиоуыэюя")
CONSONANTS = frozenset("бвгджзклмнпрстфхцчшщ")

# Final vowels that never take case endings on a borrowed name
INDECLINABLE_ENDINGS = frozenset("оуэиеюыё")

# Velars and sibilants: genitive -ы is spelled -и after these
_GENITIVE_I_AFTER = frozenset("гкхжшчщ")

# Sibilants and ц: unstressed instrumental -ой/-ом is spelled -ей/-ем after these
_INSTRUMENTAL_EI_AFTER = frozenset("жшчщц")


class DeclensionPattern(str, Enum):
    MASCULINE_CONSONANT = "masculine-consonant"
    MASCULINE_SOFT = "masculine-soft"
    MASCULINE_Y = "masculine-y"
    FEMININE_A = "feminine-a"
    FEMININE_YA = "feminine-ya"
    FEMININE_IYA = "feminine-iya"
    FEMININE_SOFT = "feminine-soft"
    INDECLINABLE = "indeclinable"


@dataclass(frozen=True)
class _Rule:
    strip: int
    # genitive, dative, accusative, instrumental, prepositional
    suffixes: tuple[str, str, str, str, str]


_RULES: dict[DeclensionPattern, _Rule] = {
    DeclensionPattern.MASCULINE_CONSONANT: _Rule(0, ("а", "у", "а", "ом", "е")),
    DeclensionPattern.MASCULINE_SOFT: _Rule(1, ("я", "ю", "я", "ем", "е")),
    DeclensionPattern.MASCULINE_Y: _Rule(2, ("ия", "ию", "ия", "ием", "ии")),
    DeclensionPattern.FEMININE_A: _Rule(1, ("ы", "е", "у", "ой", "е")),
    DeclensionPattern.FEMININE_YA: _Rule(1, ("и", "е", "ю", "ей", "е")),
    DeclensionPattern.FEMININE_IYA: _Rule(1, ("и", "и", "ю", "ей", "и")),
    DeclensionPattern.FEMININE_SOFT: _Rule(1, ("и", "и", "ь", "ью", "и")),
}

# Russian masculine names that end in -а/-я
_MASCULINE_A_NAMES = frozenset({
    "никита", "илья", "фома", "кузьма", "лука", "савва", "данила", "гаврила", "добрыня",
})


def detect_declension_pattern(name: str, gender: Gender | str) -> DeclensionPattern:
    """Pick the declension pattern for a single-word name."""
    gender = Gender(gender)
    word = name.strip().lower()
    if not word or gender in (Gender.NEUTRAL, Gender.UNKNOWN):
        return DeclensionPattern.INDECLINABLE

    last = word[-1]
    before = word[-2] if len(word) > 1 else ""

    if word.endswith("ия") and len(word) > 2:
        return DeclensionPattern.FEMININE_IYA
    if last == "а":
        # Ноа, Жоа: vowel + а stays put
        if before in VOWELS:
            return DeclensionPattern.INDECLINABLE
        return DeclensionPattern.FEMININE_A
    if last == "я":
        return DeclensionPattern.FEMININE_YA
    if last in INDECLINABLE_ENDINGS:
        return DeclensionPattern.INDECLINABLE

    if gender == Gender.FEMALE:
        if last == "ь":
            return DeclensionPattern.FEMININE_SOFT
        return DeclensionPattern.INDECLINABLE

    if last == "й":
        if before in ("и", "ы"):
            return DeclensionPattern.MASCULINE_Y
        return DeclensionPattern.MASCULINE_SOFT
    if last == "ь":
        return DeclensionPattern.MASCULINE_SOFT
    if last in CONSONANTS:
        return DeclensionPattern.MASCULINE_CONSONANT
    return DeclensionPattern.INDECLINABLE


def _apply_rule(word: str, pattern: DeclensionPattern) -> tuple[str, ...]:
    """Return the six case forms of ``word`` under ``pattern``."""
    rule = _RULES.get(pattern)
    if rule is None or len(word) <= rule.strip:
        return (word,) * 6

    stem = word[:-rule.strip] if rule.strip else word
    genitive, dative, accusative, instrumental, prepositional = rule.suffixes
    tail = stem[-1].lower() if stem else ""

    if pattern == DeclensionPattern.FEMININE_A:
        if tail in _GENITIVE_I_AFTER:
            genitive = "и"
        if tail in _INSTRUMENTAL_EI_AFTER:
            instrumental = "ей"
    elif pattern == DeclensionPattern.MASCULINE_CONSONANT and tail in _INSTRUMENTAL_EI_AFTER:
        instrumental = "ем"

    return (
        word,
        stem + genitive,
        stem + dative,
        stem + accusative,
        stem + instrumental,
        stem + prepositional,
    )


def _decline_words(name: str, gender: Gender) -> tuple[str, ...]:
    words = name.split(" ")
    forms = [_apply_rule(w, detect_declension_pattern(w, gender)) if w else ("",) * 6 for w in words]
    return tuple(" ".join(parts) for parts in zip(*forms))


def decline(
    name: str,
    gender: Gender | str,
    pattern: Optional[DeclensionPattern] = None,
) -> Declensions:
    """Compute the six case forms of a Russian name.

    With no explicit ``pattern`` every space-separated word is declined on
    its own, so "Джон Смит" becomes "Джона Смита". An explicit pattern is
    applied to the name as a whole. Never raises: any failure falls back to
    the nominative for every case.
    """
    try:
        gender = Gender(gender)
        if pattern is not None:
            forms = _apply_rule(name, DeclensionPattern(pattern))
        else:
            forms = _decline_words(name, gender)
        return Declensions(*forms)
    except Exception as e:
        logger.warning("Declension failed for %r (%s): %s; using identity", name, gender, e)
        return Declensions.identity(name)


def get_case_form(declensions: Declensions, case: GrammaticalCase | str) -> str:
    """Return the form of a name in the given case."""
    return declensions.get(case)


def detect_gender_from_name(name: str) -> Gender:
    """Guess grammatical gender from the ending of a Russian name.

    -а/-я reads as feminine except for the traditional masculine names in
    that class; -ь is feminine only in -овь/-ель/-аль; everything else is
    masculine.
    """
    word = name.strip().split(" ")[0].lower() if name.strip() else ""
    if not word:
        return Gender.UNKNOWN
    if word in _MASCULINE_A_NAMES:
        return Gender.MALE
    if word.endswith(("а", "я")):
        return Gender.FEMALE
    if word.endswith("ь"):
        if word.endswith(("овь", "ель", "аль")):
            return Gender.FEMALE
        return Gender.MALE
    return Gender.MALE
