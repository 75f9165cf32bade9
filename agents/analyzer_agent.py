"""Analyzer Agent: extracts entities, summary and style cues from a source chapter."""

import logging
from typing import Optional

from agents.base_agent import BaseAgent, language_name
from config.exceptions import LLMError
from config.settings import Settings
from memory.glossary_store import GlossaryStore
from models.agent import AgentContext, AnalysisResult, FoundCharacter, FoundLocation, FoundTerm
from models.enums import CharacterRole, Gender, LocationType, StageType, TermCategory, coerce_enum
from models.glossary import CharacterDraft, GlossaryUpdate, LocationDraft, TermDraft
from models.pipeline import StageResult
from providers.base import CompletionOptions, LLMProvider, Message
from tools.llm_client import get_list, get_str
from tools.text_utils import strip_paragraph_markers
from tools.transliteration import transliterate

logger = logging.getLogger(__name__)


def _str_list(value) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(v).strip() for v in value if str(v).strip()]


class AnalyzerAgent(BaseAgent):
    """Asks the model for a structured reading of the chapter and diffs it against the glossary."""

    stage = StageType.ANALYZE

    def __init__(self, provider: LLMProvider, settings: Optional[Settings] = None):
        super().__init__(provider, settings)
        self._template = self._load_prompt("analyzer")

    def _build_messages(self, context: AgentContext, source_text: str) -> list[Message]:
        system_prompt = self._extract_section(self._template, "System Prompt")
        request = self._extract_section(self._template, "Analysis Request")

        glossary_text = GlossaryStore(context.glossary).to_prompt_text()
        glossary_section = ""
        if glossary_text:
            glossary_section = (
                "### Existing Glossary (for reference)\n"
                f"{glossary_text}\n"
                "Entries already listed here are known; focus on what is new.\n\n"
            )

        user_prompt = request.format(
            source_language=language_name(self.settings.source_language),
            target_language=language_name(self.settings.target_language),
            glossary_section=glossary_section,
            source_text=strip_paragraph_markers(source_text),
        )
        return [Message("system", system_prompt), Message("user", user_prompt)]

    async def analyze(
        self,
        context: AgentContext,
        source_text: str,
        chapter_number: int,
        retry_attempts: Optional[int] = None,
    ) -> StageResult[AnalysisResult]:
        """Run the Analyze stage for one chapter.

        Never raises transport or parse errors; they come back as a failed
        ``StageResult``.
        """
        started = self._started()
        messages = self._build_messages(context, source_text)
        options = CompletionOptions(
            temperature=self.settings.analysis_temperature,
            max_tokens=self.settings.max_output_tokens,
        )

        logger.info("Analyzing chapter %d (%d chars)...", chapter_number, len(source_text))
        try:
            response = await self._with_retry(
                lambda: self.provider.complete_structured(messages, options), retry_attempts
            )
        except LLMError as e:
            return self._failure(e, started)

        result = self.build_result(response.data, context, chapter_number)
        update = result.glossary_update
        logger.info(
            "Analysis complete: %d characters (%d new), %d locations (%d new), %d terms (%d new)",
            len(result.found_characters), len(update.new_characters),
            len(result.found_locations), len(update.new_locations),
            len(result.found_terms), len(update.new_terms),
        )
        return self._success(result, started, response.usage.total_tokens)

    def build_result(self, data: dict, context: AgentContext, chapter_number: int) -> AnalysisResult:
        """Turn the decoded model reply into an ``AnalysisResult``.

        Names are classified as new or known by case-insensitive match
        against the glossary (aliases included). Only new, non-duplicate
        entries go into the glossary update.
        """
        store = GlossaryStore(context.glossary)
        update = GlossaryUpdate()
        result = AnalysisResult(chapter_number=chapter_number, glossary_update=update)

        seen: set[str] = set()
        for raw in get_list(data, "characters"):
            if not isinstance(raw, dict):
                continue
            name = get_str(raw, "name", "originalName", "original_name")
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            gender = coerce_enum(Gender, raw.get("gender"), Gender.UNKNOWN)
            suggested = get_str(raw, "suggestedTranslation", "suggested_translation", "translation") or None
            is_new = store.find_character(name) is None
            result.found_characters.append(FoundCharacter(
                name=name,
                is_new=is_new,
                suggested_translation=suggested,
                gender=gender,
                context=get_str(raw, "context"),
            ))
            if is_new:
                role = coerce_enum(CharacterRole, raw.get("role"), CharacterRole.MINOR)
                update.new_characters.append(CharacterDraft(
                    original_name=name,
                    translated_name=suggested,
                    gender=gender,
                    description=get_str(raw, "description"),
                    aliases=_str_list(raw.get("aliases")),
                    first_appearance=chapter_number,
                    is_main_character=role == CharacterRole.PROTAGONIST,
                ))

        seen.clear()
        for raw in get_list(data, "locations"):
            if not isinstance(raw, dict):
                continue
            name = get_str(raw, "name", "originalName", "original_name")
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            loc_type = coerce_enum(LocationType, raw.get("type"), LocationType.OTHER)
            suggested = get_str(raw, "suggestedTranslation", "suggested_translation", "translation") or None
            is_new = store.find_location(name) is None
            result.found_locations.append(FoundLocation(name, is_new, suggested, loc_type))
            if is_new:
                update.new_locations.append(LocationDraft(
                    original_name=name,
                    translated_name=suggested or transliterate(name),
                    description=get_str(raw, "description"),
                    type=loc_type,
                ))

        seen.clear()
        for raw in get_list(data, "terms"):
            if not isinstance(raw, dict):
                continue
            term = get_str(raw, "term", "name", "originalTerm", "original_term")
            if not term or term.lower() in seen:
                continue
            seen.add(term.lower())
            category = coerce_enum(TermCategory, raw.get("category"), TermCategory.OTHER)
            suggested = get_str(raw, "suggestedTranslation", "suggested_translation", "translation") or None
            is_new = store.find_term(term) is None
            result.found_terms.append(FoundTerm(term, is_new, suggested, category))
            if is_new:
                update.new_terms.append(TermDraft(
                    original_term=term,
                    translated_term=suggested or term,
                    category=category,
                    description=get_str(raw, "description"),
                    context=get_str(raw, "context") or None,
                ))

        result.chapter_summary = get_str(data, "chapterSummary", "chapter_summary", "summary")
        result.key_events = _str_list(data.get("keyEvents", data.get("key_events")))
        result.mood = get_str(data, "mood")
        result.style_notes = get_str(data, "styleNotes", "style_notes")
        result.open_plot_threads = _str_list(data.get("openPlotThreads", data.get("open_plot_threads")))
        return result
