"""Novel agent: cross-chapter translation memory for one novel."""

import json
import logging
from typing import Optional

from memory.glossary_store import GlossaryStore
from models.agent import (
    AgentContext,
    AnalysisResult,
    ChapterSummary,
    CurrentContext,
    NovelAgentState,
    StyleProfile,
    TranslationConfig,
)
from models.glossary import Character, Glossary, GlossaryUpdate, Location, Term, utc_now

logger = logging.getLogger(__name__)

# Number of previous chapter summaries exposed to the pipeline
CONTEXT_WINDOW = 5
MAX_LAST_EVENTS = 5


class NovelAgent:
    """Owns the glossary, style profile, narrative context and chapter history.

    An agent is a single-writer value: callers pass it into each pipeline
    call and persist it themselves with ``to_json``.
    """

    def __init__(self, state: NovelAgentState):
        self._state = state
        self._glossary = GlossaryStore(state.glossary)

    @classmethod
    def create(
        cls,
        novel_id: str,
        title: str,
        source_language: str = "en",
        target_language: str = "ru",
        author: Optional[str] = None,
        config: Optional[dict] = None,
    ) -> "NovelAgent":
        """Create an agent with an empty glossary, style profile and context."""
        translation_config = TranslationConfig(source_language=source_language, target_language=target_language)
        for key, value in (config or {}).items():
            if not hasattr(translation_config, key):
                raise ValueError(f"Unknown translation config key: {key}")
            setattr(translation_config, key, value)

        state = NovelAgentState(
            novel_id=novel_id,
            title=title,
            author=author,
            source_language=source_language,
            target_language=target_language,
            glossary=Glossary(novel_id=novel_id),
            config=translation_config,
        )
        logger.info("Created agent for novel %s (%s -> %s)", novel_id, source_language, target_language)
        return cls(state)

    # ---- Serialization ----

    def to_dict(self) -> dict:
        return self._state.to_dict()

    @classmethod
    def from_dict(cls, data: dict) -> "NovelAgent":
        return cls(NovelAgentState.from_dict(data))

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, text: str) -> "NovelAgent":
        return cls.from_dict(json.loads(text))

    # ---- Context ----

    def get_context(self) -> AgentContext:
        """Glossary, style, the last ``CONTEXT_WINDOW`` summaries and current context."""
        return AgentContext(
            glossary=self._state.glossary,
            style_profile=self._state.style_profile,
            previous_chapters=self._state.translated_chapters[-CONTEXT_WINDOW:],
            current_context=self._state.current_context,
        )

    def apply_analysis_result(self, result: AnalysisResult) -> None:
        """Fold Analyze output into memory.

        The glossary receives ``result.glossary_update``; the current context
        is replaced; style notes are appended to ``writing_style``.
        """
        self._glossary.apply_update(result.glossary_update)

        previous = self._state.current_context
        self._state.current_context = CurrentContext(
            last_events=list(result.key_events[-MAX_LAST_EVENTS:]),
            active_characters=[c.name for c in result.found_characters],
            current_location=(
                result.found_locations[0].name if result.found_locations else previous.current_location
            ),
            current_mood=result.mood or None,
            open_plot_threads=list(result.open_plot_threads) or list(previous.open_plot_threads),
        )

        if result.style_notes and result.style_notes.strip():
            self._append_writing_style(result.style_notes.strip())

        self._touch()

    def record_chapter_translation(self, summary: ChapterSummary) -> None:
        self._state.translated_chapters.append(summary)
        self._touch()
        logger.debug("Recorded chapter %d (history=%d)", summary.chapter_number, self.chapter_count)

    def update_glossary(self, update: GlossaryUpdate) -> None:
        self._glossary.apply_update(update)
        self._touch()

    def set_style_profile(self, **fields) -> None:
        """Set style axes. ``writing_style`` is appended, never replaced."""
        profile = self._state.style_profile
        for key, value in fields.items():
            if not hasattr(profile, key):
                raise ValueError(f"Unknown style field: {key}")
            if value is None:
                continue
            if key == "writing_style":
                self._append_writing_style(value)
            else:
                setattr(profile, key, value)
        self._touch()

    def _append_writing_style(self, notes: str) -> None:
        profile = self._state.style_profile
        profile.writing_style = f"{profile.writing_style}\n{notes}" if profile.writing_style else notes

    def _touch(self) -> None:
        self._state.updated_at = utc_now()

    # ---- Lookups ----

    def find_character(self, name: str) -> Optional[Character]:
        return self._glossary.find_character(name)

    def find_location(self, name: str) -> Optional[Location]:
        return self._glossary.find_location(name)

    def find_term(self, term: str) -> Optional[Term]:
        return self._glossary.find_term(term)

    # ---- Accessors ----

    @property
    def state(self) -> NovelAgentState:
        return self._state

    @property
    def glossary_store(self) -> GlossaryStore:
        return self._glossary

    @property
    def novel_id(self) -> str:
        return self._state.novel_id

    @property
    def title(self) -> str:
        return self._state.title

    @property
    def glossary(self) -> Glossary:
        return self._state.glossary

    @property
    def style_profile(self) -> StyleProfile:
        return self._state.style_profile

    @property
    def config(self) -> TranslationConfig:
        return self._state.config

    @property
    def chapter_count(self) -> int:
        return len(self._state.translated_chapters)
