"""Enumerations shared by the glossary, the agent and the pipeline."""

from enum import Enum


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    NEUTRAL = "neutral"
    UNKNOWN = "unknown"


class GrammaticalCase(str, Enum):
    NOMINATIVE = "nominative"
    GENITIVE = "genitive"
    DATIVE = "dative"
    ACCUSATIVE = "accusative"
    INSTRUMENTAL = "instrumental"
    PREPOSITIONAL = "prepositional"


class LocationType(str, Enum):
    CITY = "city"
    COUNTRY = "country"
    BUILDING = "building"
    REGION = "region"
    WORLD = "world"
    OTHER = "other"


class TermCategory(str, Enum):
    SKILL = "skill"
    MAGIC = "magic"
    ITEM = "item"
    TITLE = "title"
    ORGANIZATION = "organization"
    RACE = "race"
    OTHER = "other"


class CharacterRole(str, Enum):
    PROTAGONIST = "protagonist"
    ANTAGONIST = "antagonist"
    SUPPORTING = "supporting"
    MINOR = "minor"


class Language(str, Enum):
    JAPANESE = "ja"
    CHINESE = "zh"
    KOREAN = "ko"
    ENGLISH = "en"
    RUSSIAN = "ru"
    POLISH = "pl"


class StageType(str, Enum):
    ANALYZE = "analyze"
    TRANSLATE = "translate"
    EDIT = "edit"


class ChapterStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    TRANSLATING = "translating"
    EDITING = "editing"
    COMPLETED = "completed"
    FAILED = "failed"


def coerce_enum(enum_cls, value, default):
    """Convert a raw value to ``enum_cls``, falling back to ``default`` on unknown input."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return default
