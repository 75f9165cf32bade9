"""Models package — glossary, agent memory and pipeline data classes."""

from models.enums import (
    Gender,
    GrammaticalCase,
    LocationType,
    TermCategory,
    CharacterRole,
    Language,
    StageType,
    ChapterStatus,
)
from models.glossary import (
    Declensions,
    Character,
    Location,
    Term,
    Glossary,
    CharacterDraft,
    LocationDraft,
    TermDraft,
    GlossaryUpdate,
)
from models.agent import (
    StyleProfile,
    ChapterSummary,
    CurrentContext,
    TranslationConfig,
    NovelAgentState,
    AgentContext,
    FoundCharacter,
    FoundLocation,
    FoundTerm,
    AnalysisResult,
)
from models.pipeline import (
    TextChunk,
    ParagraphTranslation,
    ChunkTranslation,
    TranslationDraft,
    EditChange,
    EditedTranslation,
    StageResult,
    PipelineOptions,
    PipelineResult,
)

__all__ = [
    "Gender",
    "GrammaticalCase",
    "LocationType",
    "TermCategory",
    "CharacterRole",
    "Language",
    "StageType",
    "ChapterStatus",
    "Declensions",
    "Character",
    "Location",
    "Term",
    "Glossary",
    "CharacterDraft",
    "LocationDraft",
    "TermDraft",
    "GlossaryUpdate",
    "StyleProfile",
    "ChapterSummary",
    "CurrentContext",
    "TranslationConfig",
    "NovelAgentState",
    "AgentContext",
    "FoundCharacter",
    "FoundLocation",
    "FoundTerm",
    "AnalysisResult",
    "TextChunk",
    "ParagraphTranslation",
    "ChunkTranslation",
    "TranslationDraft",
    "EditChange",
    "EditedTranslation",
    "StageResult",
    "PipelineOptions",
    "PipelineResult",
]
