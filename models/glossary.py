"""Glossary data models: characters, locations, terms and their case forms."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from models.enums import Gender, GrammaticalCase, LocationType, TermCategory, coerce_enum


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def from_iso(value) -> Optional[datetime]:
    """Parse an ISO-8601 string back into a datetime (datetimes pass through)."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Declensions:
    """The six Russian case forms of a name."""
    nominative: str
    genitive: str
    dative: str
    accusative: str
    instrumental: str
    prepositional: str

    @classmethod
    def identity(cls, name: str) -> "Declensions":
        return cls(name, name, name, name, name, name)

    def get(self, case: GrammaticalCase | str) -> str:
        return getattr(self, GrammaticalCase(case).value)

    def to_dict(self) -> dict:
        return {case.value: getattr(self, case.value) for case in GrammaticalCase}

    @classmethod
    def from_dict(cls, data: dict) -> "Declensions":
        nominative = data.get("nominative", "")
        return cls(**{
            case.value: data.get(case.value) or nominative
            for case in GrammaticalCase
        })


@dataclass
class Character:
    """A named character with its fixed translation."""
    id: str
    original_name: str
    translated_name: str
    declensions: Declensions
    gender: Gender = Gender.UNKNOWN
    description: str = ""
    aliases: list[str] = field(default_factory=list)
    first_appearance: int = 1
    is_main_character: bool = False

    def matches(self, name: str) -> bool:
        """Case-insensitive match against the original name and every alias."""
        key = name.strip().lower()
        if self.original_name.lower() == key:
            return True
        return any(alias.lower() == key for alias in self.aliases)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "translated_name": self.translated_name,
            "declensions": self.declensions.to_dict(),
            "gender": self.gender.value,
            "description": self.description,
            "aliases": list(self.aliases),
            "first_appearance": self.first_appearance,
            "is_main_character": self.is_main_character,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Character":
        return cls(
            id=data["id"],
            original_name=data["original_name"],
            translated_name=data["translated_name"],
            declensions=Declensions.from_dict(data.get("declensions") or {"nominative": data["translated_name"]}),
            gender=coerce_enum(Gender, data.get("gender"), Gender.UNKNOWN),
            description=data.get("description", ""),
            aliases=list(data.get("aliases") or []),
            first_appearance=data.get("first_appearance", 1),
            is_main_character=data.get("is_main_character", False),
        )


@dataclass
class Location:
    id: str
    original_name: str
    translated_name: str
    description: str = ""
    type: LocationType = LocationType.OTHER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "translated_name": self.translated_name,
            "description": self.description,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Location":
        return cls(
            id=data["id"],
            original_name=data["original_name"],
            translated_name=data["translated_name"],
            description=data.get("description", ""),
            type=coerce_enum(LocationType, data.get("type"), LocationType.OTHER),
        )


@dataclass
class Term:
    id: str
    original_term: str
    translated_term: str
    category: TermCategory = TermCategory.OTHER
    description: str = ""
    context: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_term": self.original_term,
            "translated_term": self.translated_term,
            "category": self.category.value,
            "description": self.description,
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Term":
        return cls(
            id=data["id"],
            original_term=data["original_term"],
            translated_term=data["translated_term"],
            category=coerce_enum(TermCategory, data.get("category"), TermCategory.OTHER),
            description=data.get("description", ""),
            context=data.get("context"),
        )


@dataclass
class Glossary:
    """Versioned registry of characters, locations and terms for one novel."""
    novel_id: str
    version: int = 1
    last_updated: datetime = field(default_factory=utc_now)
    characters: list[Character] = field(default_factory=list)
    locations: list[Location] = field(default_factory=list)
    terms: list[Term] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "novel_id": self.novel_id,
            "version": self.version,
            "last_updated": to_iso(self.last_updated),
            "characters": [c.to_dict() for c in self.characters],
            "locations": [loc.to_dict() for loc in self.locations],
            "terms": [t.to_dict() for t in self.terms],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Glossary":
        return cls(
            novel_id=data["novel_id"],
            version=data.get("version", 1),
            last_updated=from_iso(data.get("last_updated")) or utc_now(),
            characters=[Character.from_dict(c) for c in data.get("characters", [])],
            locations=[Location.from_dict(loc) for loc in data.get("locations", [])],
            terms=[Term.from_dict(t) for t in data.get("terms", [])],
        )


@dataclass
class CharacterDraft:
    """A character proposed for the glossary, not yet assigned an id."""
    original_name: str
    translated_name: Optional[str] = None
    gender: Gender = Gender.UNKNOWN
    description: str = ""
    aliases: list[str] = field(default_factory=list)
    first_appearance: int = 1
    is_main_character: bool = False


@dataclass
class LocationDraft:
    original_name: str
    translated_name: str
    description: str = ""
    type: LocationType = LocationType.OTHER


@dataclass
class TermDraft:
    original_term: str
    translated_term: str
    category: TermCategory = TermCategory.OTHER
    description: str = ""
    context: Optional[str] = None


@dataclass
class GlossaryUpdate:
    """A heterogeneous bundle of glossary changes applied as one batch.

    ``updated_*`` entries are partial dicts identified by ``id`` or by the
    original name/term.
    """
    new_characters: list[CharacterDraft] = field(default_factory=list)
    new_locations: list[LocationDraft] = field(default_factory=list)
    new_terms: list[TermDraft] = field(default_factory=list)
    updated_characters: list[dict] = field(default_factory=list)
    updated_locations: list[dict] = field(default_factory=list)
    updated_terms: list[dict] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any((
            self.new_characters, self.new_locations, self.new_terms,
            self.updated_characters, self.updated_locations, self.updated_terms,
        ))
