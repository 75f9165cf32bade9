"""Glossary store: versioned registry of characters, locations and terms."""

import json
import logging
import time
import uuid
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

from config.exceptions import ValidationError
from models.enums import Gender, GrammaticalCase, LocationType, TermCategory, coerce_enum
from models.glossary import (
    Character,
    CharacterDraft,
    Declensions,
    Glossary,
    GlossaryUpdate,
    Location,
    LocationDraft,
    Term,
    TermDraft,
    utc_now,
)
from tools.declension import decline
from tools.transliteration import translate_and_decline

logger = logging.getLogger(__name__)


def generate_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def _norm(value: str) -> str:
    return value.strip().lower()


class GlossaryStore:
    """Mutation and lookup API over a ``Glossary``.

    Every public mutating call bumps ``version`` exactly once and refreshes
    ``last_updated``, however many entities it touches. Calls that end up
    changing nothing leave the version alone.
    """

    def __init__(self, glossary: Glossary):
        self._glossary = glossary
        self._batch_depth = 0
        self._dirty = False

    @classmethod
    def create_empty(cls, novel_id: str) -> "GlossaryStore":
        return cls(Glossary(novel_id=novel_id))

    @classmethod
    def from_json(cls, text: str) -> "GlossaryStore":
        return cls(Glossary.from_dict(json.loads(text)))

    def to_json(self) -> str:
        return json.dumps(self._glossary.to_dict(), ensure_ascii=False, indent=2)

    @property
    def glossary(self) -> Glossary:
        return self._glossary

    @property
    def version(self) -> int:
        return self._glossary.version

    @property
    def character_count(self) -> int:
        return len(self._glossary.characters)

    @property
    def location_count(self) -> int:
        return len(self._glossary.locations)

    @property
    def term_count(self) -> int:
        return len(self._glossary.terms)

    @contextmanager
    def _batch(self) -> Iterator[None]:
        """Group nested mutations into one version bump."""
        self._batch_depth += 1
        try:
            yield
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._dirty:
                self._dirty = False
                self._glossary.version += 1
                self._glossary.last_updated = utc_now()

    def _mark_changed(self) -> None:
        self._dirty = True

    # ---- Characters ----

    def find_character(self, name: str) -> Optional[Character]:
        """Find a character by original name or alias, case-insensitively."""
        if not name or not name.strip():
            return None
        return next((c for c in self._glossary.characters if c.matches(name)), None)

    def get_character(self, character_id: str) -> Optional[Character]:
        return next((c for c in self._glossary.characters if c.id == character_id), None)

    def _name_owner(self, name: str) -> Optional[Character]:
        return self.find_character(name)

    def _free_aliases(self, aliases: list[str], owner: Optional[Character], original_name: str) -> list[str]:
        """Drop aliases already claimed by another character or duplicated."""
        result: list[str] = []
        seen = {_norm(original_name)}
        for alias in aliases:
            alias = alias.strip()
            if not alias or _norm(alias) in seen:
                continue
            holder = self._name_owner(alias)
            if holder is not None and holder is not owner:
                logger.debug("Alias %r already belongs to %s; skipped", alias, holder.original_name)
                continue
            seen.add(_norm(alias))
            result.append(alias)
        return result

    def add_character(
        self,
        original_name: str,
        translated_name: Optional[str] = None,
        gender: Gender | str = Gender.UNKNOWN,
        description: str = "",
        aliases: Optional[list[str]] = None,
        first_appearance: int = 1,
        is_main_character: bool = False,
    ) -> Character:
        """Add a character, or return the existing one matching the name or an alias.

        Declensions come from ``decline`` when a translation is supplied and
        from ``translate_and_decline`` otherwise.
        """
        original_name = original_name.strip()
        if not original_name:
            raise ValidationError("Character name must not be empty")

        existing = self.find_character(original_name)
        if existing is not None:
            return existing

        gender = coerce_enum(Gender, gender, Gender.UNKNOWN)
        if translated_name and translated_name.strip():
            translated_name = translated_name.strip()
            declensions = decline(translated_name, gender)
        else:
            forms = translate_and_decline(original_name, gender)
            translated_name, declensions = forms.surface_form, forms.declensions
            if gender == Gender.UNKNOWN:
                gender = forms.gender

        with self._batch():
            character = Character(
                id=generate_id("char"),
                original_name=original_name,
                translated_name=translated_name,
                declensions=declensions,
                gender=gender,
                description=description or "",
                aliases=self._free_aliases(aliases or [], None, original_name),
                first_appearance=first_appearance,
                is_main_character=is_main_character,
            )
            self._glossary.characters.append(character)
            self._mark_changed()
        logger.debug("Added character %s -> %s", original_name, translated_name)
        return character

    def update_character(self, character_id: str, **updates) -> Optional[Character]:
        """Update fields of a character.

        A new translated name or gender recomputes all six case forms.
        An explicit ``declensions`` mapping is merged entry by entry, and
        empty entries never overwrite existing forms.

        Returns:
            The updated character, or None if ``character_id`` is unknown.
        """
        char = self.get_character(character_id)
        if char is None:
            return None
        if "original_name" in updates and _norm(updates["original_name"]) != _norm(char.original_name):
            raise ValidationError("original_name is the stable key and cannot change", {"id": character_id})

        with self._batch():
            new_translation = (updates.get("translated_name") or "").strip()
            new_gender = updates.get("gender")
            recompute = False

            if new_translation and new_translation != char.translated_name:
                char.translated_name = new_translation
                recompute = True
            if new_gender is not None:
                new_gender = coerce_enum(Gender, new_gender, char.gender)
                if new_gender != char.gender:
                    char.gender = new_gender
                    recompute = True
            if recompute:
                char.declensions = decline(char.translated_name, char.gender)
                self._mark_changed()

            partial = updates.get("declensions")
            if isinstance(partial, Declensions):
                partial = partial.to_dict()
            if partial:
                for case in GrammaticalCase:
                    value = partial.get(case.value)
                    if value and value != getattr(char.declensions, case.value):
                        setattr(char.declensions, case.value, value)
                        self._mark_changed()

            for field_name in ("description", "first_appearance", "is_main_character"):
                if field_name in updates and updates[field_name] is not None:
                    if getattr(char, field_name) != updates[field_name]:
                        setattr(char, field_name, updates[field_name])
                        self._mark_changed()

            if updates.get("aliases") is not None:
                aliases = self._free_aliases(updates["aliases"], char, char.original_name)
                if aliases != char.aliases:
                    char.aliases = aliases
                    self._mark_changed()
        return char

    def add_character_alias(self, character_id: str, alias: str) -> bool:
        """Attach an alias to a character. Returns False if it was not added."""
        char = self.get_character(character_id)
        if char is None or not alias.strip():
            return False
        if any(_norm(a) == _norm(alias) for a in char.aliases):
            return False
        free = self._free_aliases([alias], char, char.original_name)
        if not free:
            return False
        with self._batch():
            char.aliases.append(free[0])
            self._mark_changed()
        return True

    def get_character_in_case(self, name: str, case: GrammaticalCase | str) -> Optional[str]:
        char = self.find_character(name)
        if char is None:
            return None
        return char.declensions.get(case)

    # ---- Locations ----

    def find_location(self, name: str) -> Optional[Location]:
        key = _norm(name or "")
        return next((loc for loc in self._glossary.locations if _norm(loc.original_name) == key), None)

    def add_location(
        self,
        original_name: str,
        translated_name: str,
        type: LocationType | str = LocationType.OTHER,
        description: str = "",
    ) -> Location:
        original_name = original_name.strip()
        if not original_name:
            raise ValidationError("Location name must not be empty")
        existing = self.find_location(original_name)
        if existing is not None:
            return existing
        with self._batch():
            location = Location(
                id=generate_id("loc"),
                original_name=original_name,
                translated_name=(translated_name or original_name).strip(),
                description=description or "",
                type=coerce_enum(LocationType, type, LocationType.OTHER),
            )
            self._glossary.locations.append(location)
            self._mark_changed()
        return location

    def update_location(self, location_id: str, **updates) -> Optional[Location]:
        location = next((loc for loc in self._glossary.locations if loc.id == location_id), None)
        if location is None:
            return None
        with self._batch():
            if updates.get("type") is not None:
                updates["type"] = coerce_enum(LocationType, updates["type"], location.type)
            self._assign(location, updates, ("translated_name", "description", "type"))
        return location

    # ---- Terms ----

    def find_term(self, term: str) -> Optional[Term]:
        key = _norm(term or "")
        return next((t for t in self._glossary.terms if _norm(t.original_term) == key), None)

    def add_term(
        self,
        original_term: str,
        translated_term: str,
        category: TermCategory | str = TermCategory.OTHER,
        description: str = "",
        context: Optional[str] = None,
    ) -> Term:
        original_term = original_term.strip()
        if not original_term:
            raise ValidationError("Term must not be empty")
        existing = self.find_term(original_term)
        if existing is not None:
            return existing
        with self._batch():
            term = Term(
                id=generate_id("term"),
                original_term=original_term,
                translated_term=(translated_term or original_term).strip(),
                category=coerce_enum(TermCategory, category, TermCategory.OTHER),
                description=description or "",
                context=context,
            )
            self._glossary.terms.append(term)
            self._mark_changed()
        return term

    def update_term(self, term_id: str, **updates) -> Optional[Term]:
        term = next((t for t in self._glossary.terms if t.id == term_id), None)
        if term is None:
            return None
        with self._batch():
            if updates.get("category") is not None:
                updates["category"] = coerce_enum(TermCategory, updates["category"], term.category)
            self._assign(term, updates, ("translated_term", "description", "category", "context"))
        return term

    def _assign(self, entity, updates: dict, allowed: tuple[str, ...]) -> None:
        for field_name in allowed:
            value = updates.get(field_name)
            if value is None:
                continue
            if isinstance(value, str) and not isinstance(value, Enum):
                value = value.strip()
                if not value and field_name.startswith("translated"):
                    continue
            if getattr(entity, field_name) != value:
                setattr(entity, field_name, value)
                self._mark_changed()

    # ---- Batch ----

    def apply_update(self, update: GlossaryUpdate) -> None:
        """Apply a bundle of additions and updates as one version bump.

        New entries that collide with existing ones are skipped. Updates are
        matched by ``id`` or by original name; unmatched updates are skipped.
        """
        with self._batch():
            for draft in update.new_characters:
                self._apply_new_character(draft)
            for draft in update.new_locations:
                self._apply_new_location(draft)
            for draft in update.new_terms:
                self._apply_new_term(draft)

            for changes in update.updated_characters:
                target = self.get_character(changes.get("id", "")) or self.find_character(
                    changes.get("original_name", "")
                )
                if target is None:
                    logger.debug("Character update skipped, no match: %s", changes)
                    continue
                fields = {k: v for k, v in changes.items() if k not in ("id", "original_name")}
                self.update_character(target.id, **fields)

            for changes in update.updated_locations:
                target = next(
                    (loc for loc in self._glossary.locations if loc.id == changes.get("id")), None
                ) or self.find_location(changes.get("original_name", ""))
                if target is None:
                    logger.debug("Location update skipped, no match: %s", changes)
                    continue
                self.update_location(target.id, **changes)

            for changes in update.updated_terms:
                target = next(
                    (t for t in self._glossary.terms if t.id == changes.get("id")), None
                ) or self.find_term(changes.get("original_term", ""))
                if target is None:
                    logger.debug("Term update skipped, no match: %s", changes)
                    continue
                self.update_term(target.id, **changes)

    def _apply_new_character(self, draft: CharacterDraft) -> None:
        if self.find_character(draft.original_name) is not None:
            logger.debug("Character %r already in glossary; skipped", draft.original_name)
            return
        self.add_character(
            original_name=draft.original_name,
            translated_name=draft.translated_name,
            gender=draft.gender,
            description=draft.description,
            aliases=draft.aliases,
            first_appearance=draft.first_appearance,
            is_main_character=draft.is_main_character,
        )

    def _apply_new_location(self, draft: LocationDraft) -> None:
        if self.find_location(draft.original_name) is not None:
            return
        self.add_location(draft.original_name, draft.translated_name, draft.type, draft.description)

    def _apply_new_term(self, draft: TermDraft) -> None:
        if self.find_term(draft.original_term) is not None:
            return
        self.add_term(draft.original_term, draft.translated_term, draft.category, draft.description, draft.context)

    # ---- Projection ----

    def to_prompt_text(self) -> str:
        """Render the glossary as the line-oriented block embedded in prompts."""
        text = ""
        if self._glossary.characters:
            text += "### Персонажи (Characters)\n"
            for c in self._glossary.characters:
                line = (
                    f"- {c.original_name} → {c.translated_name} [{c.gender.value}]"
                    f" (род.п.: {c.declensions.genitive}, дат.п.: {c.declensions.dative})"
                )
                if c.description:
                    line += f" - {c.description}"
                if c.aliases:
                    line += f" Также: {', '.join(c.aliases)}"
                text += line + "\n"
            text += "\n"

        if self._glossary.locations:
            text += "### Локации (Locations)\n"
            for loc in self._glossary.locations:
                line = f"- {loc.original_name} → {loc.translated_name}"
                if loc.description:
                    line += f" - {loc.description}"
                text += line + "\n"
            text += "\n"

        if self._glossary.terms:
            text += "### Термины (Terms)\n"
            for t in self._glossary.terms:
                line = f"- {t.original_term} → {t.translated_term}"
                if t.description:
                    line += f" ({t.description})"
                text += line + "\n"

        return text
