"""Cross-chapter memory models: style, narrative context, chapter history."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from models.enums import Gender, LocationType, TermCategory
from models.glossary import Glossary, GlossaryUpdate, from_iso, to_iso, utc_now


@dataclass
class StyleProfile:
    """Five free-text style axes. ``writing_style`` only ever grows."""
    tone: str = ""
    narrative_voice: str = ""
    dialogue_style: str = ""
    writing_style: str = ""
    target_audience: str = ""

    def to_dict(self) -> dict:
        return {
            "tone": self.tone,
            "narrative_voice": self.narrative_voice,
            "dialogue_style": self.dialogue_style,
            "writing_style": self.writing_style,
            "target_audience": self.target_audience,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StyleProfile":
        return cls(**{k: data.get(k, "") for k in cls().to_dict()})


@dataclass
class ChapterSummary:
    chapter_number: int
    summary: str
    title: Optional[str] = None
    key_events: list[str] = field(default_factory=list)
    active_characters: list[str] = field(default_factory=list)
    location: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "chapter_number": self.chapter_number,
            "title": self.title,
            "summary": self.summary,
            "key_events": list(self.key_events),
            "active_characters": list(self.active_characters),
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChapterSummary":
        return cls(
            chapter_number=data["chapter_number"],
            summary=data.get("summary", ""),
            title=data.get("title"),
            key_events=list(data.get("key_events") or []),
            active_characters=list(data.get("active_characters") or []),
            location=data.get("location"),
        )


@dataclass
class CurrentContext:
    """Narrative state as of the most recent Analyze run."""
    last_events: list[str] = field(default_factory=list)
    active_characters: list[str] = field(default_factory=list)
    current_location: Optional[str] = None
    current_mood: Optional[str] = None
    open_plot_threads: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "last_events": list(self.last_events),
            "active_characters": list(self.active_characters),
            "current_location": self.current_location,
            "current_mood": self.current_mood,
            "open_plot_threads": list(self.open_plot_threads),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CurrentContext":
        return cls(
            last_events=list(data.get("last_events") or []),
            active_characters=list(data.get("active_characters") or []),
            current_location=data.get("current_location"),
            current_mood=data.get("current_mood"),
            open_plot_threads=list(data.get("open_plot_threads") or []),
        )


@dataclass
class TranslationConfig:
    source_language: str = "en"
    target_language: str = "ru"
    preserve_formatting: bool = True
    max_tokens_per_chunk: int = 2000
    temperature: float = 0.7

    def to_dict(self) -> dict:
        return {
            "source_language": self.source_language,
            "target_language": self.target_language,
            "preserve_formatting": self.preserve_formatting,
            "max_tokens_per_chunk": self.max_tokens_per_chunk,
            "temperature": self.temperature,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TranslationConfig":
        defaults = cls()
        return cls(**{k: data.get(k, getattr(defaults, k)) for k in defaults.to_dict()})


@dataclass
class NovelAgentState:
    """Complete durable state of one novel's translation memory."""
    novel_id: str
    title: str
    source_language: str
    target_language: str
    glossary: Glossary
    style_profile: StyleProfile = field(default_factory=StyleProfile)
    translated_chapters: list[ChapterSummary] = field(default_factory=list)
    current_context: CurrentContext = field(default_factory=CurrentContext)
    config: TranslationConfig = field(default_factory=TranslationConfig)
    author: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> dict:
        return {
            "novel_id": self.novel_id,
            "title": self.title,
            "author": self.author,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "glossary": self.glossary.to_dict(),
            "style_profile": self.style_profile.to_dict(),
            "translated_chapters": [c.to_dict() for c in self.translated_chapters],
            "current_context": self.current_context.to_dict(),
            "config": self.config.to_dict(),
            "created_at": to_iso(self.created_at),
            "updated_at": to_iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "NovelAgentState":
        return cls(
            novel_id=data["novel_id"],
            title=data["title"],
            author=data.get("author"),
            source_language=data["source_language"],
            target_language=data["target_language"],
            glossary=Glossary.from_dict(data["glossary"]),
            style_profile=StyleProfile.from_dict(data.get("style_profile") or {}),
            translated_chapters=[ChapterSummary.from_dict(c) for c in data.get("translated_chapters", [])],
            current_context=CurrentContext.from_dict(data.get("current_context") or {}),
            config=TranslationConfig.from_dict(data.get("config") or {}),
            created_at=from_iso(data.get("created_at")) or utc_now(),
            updated_at=from_iso(data.get("updated_at")) or utc_now(),
        )


@dataclass
class AgentContext:
    """What a pipeline stage sees of the agent's memory."""
    glossary: Glossary
    style_profile: StyleProfile
    previous_chapters: list[ChapterSummary]
    current_context: CurrentContext


# ---------------------------------------------------------------------------
# Analyze stage output
# ---------------------------------------------------------------------------

@dataclass
class FoundCharacter:
    name: str
    is_new: bool
    suggested_translation: Optional[str] = None
    gender: Gender = Gender.UNKNOWN
    context: str = ""


@dataclass
class FoundLocation:
    name: str
    is_new: bool
    suggested_translation: Optional[str] = None
    type: LocationType = LocationType.OTHER


@dataclass
class FoundTerm:
    term: str
    is_new: bool
    suggested_translation: Optional[str] = None
    category: TermCategory = TermCategory.OTHER


@dataclass
class AnalysisResult:
    chapter_number: int
    found_characters: list[FoundCharacter] = field(default_factory=list)
    found_locations: list[FoundLocation] = field(default_factory=list)
    found_terms: list[FoundTerm] = field(default_factory=list)
    chapter_summary: str = ""
    key_events: list[str] = field(default_factory=list)
    mood: str = ""
    style_notes: str = ""
    open_plot_threads: list[str] = field(default_factory=list)
    glossary_update: GlossaryUpdate = field(default_factory=GlossaryUpdate)
