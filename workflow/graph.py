"""LangGraph StateGraph: Analyze → Translate → Edit for one chapter."""

import copy
import logging
import time
from typing import Optional, Sequence

from langgraph.graph import StateGraph, END

from agents.analyzer_agent import AnalyzerAgent
from agents.editor_agent import EditorAgent
from agents.translator_agent import TranslatorAgent
from config.exceptions import ConfigurationError, TranslationQualityError
from config.settings import Settings, get_settings
from memory.novel_agent import NovelAgent
from models.agent import ChapterSummary
from models.enums import ChapterStatus, StageType
from models.pipeline import PipelineOptions, PipelineResult, StageResult
from providers import STAGES, create_stage_providers
from providers.base import LLMProvider
from tools.text_utils import get_text_excerpt
from workflow.callbacks import PipelineCallback
from workflow.conditions import (
    route_after_start,
    route_after_analyze,
    route_after_translate,
    route_after_edit,
)
from workflow.state import ChapterWorkflowState
from workflow.validation import validate_translation

logger = logging.getLogger(__name__)

SUMMARY_FALLBACK_CHARS = 200


def _stage_results(state: dict) -> list[StageResult]:
    return [state[key] for key in ("stage1", "stage2", "stage3") if state.get(key) is not None]


def _first_failure(state: dict) -> str:
    """Describe the stage failure that stopped the chapter."""
    for result in reversed(_stage_results(state)):
        if not result.success and not result.skipped:
            return f"{result.stage.value} failed: {result.error}"
    return "Chapter translation failed"


def _skipped(stage: StageType) -> StageResult:
    return StageResult(stage=stage, success=False, skipped=True)


def build_graph(
    analyzer: AnalyzerAgent,
    translator: TranslatorAgent,
    editor: EditorAgent,
    agent: NovelAgent,
    options: PipelineOptions,
):
    """Build and compile the per-chapter graph.

    Nodes close over the stage agents and the novel agent for this call only,
    so nothing outlives a single chapter.
    """
    settings = translator.settings
    check_quality = settings.check_quality if options.check_quality is None else options.check_quality

    # ---- Nodes ----

    async def start(state: ChapterWorkflowState) -> dict:
        logger.info("Entering node: start (chapter %d)", state["chapter_number"])
        if not state.get("source_text", "").strip():
            return {"error": "Source text is empty"}
        update: dict = {"status": ChapterStatus.PENDING}
        if state.get("skip_analysis"):
            update["stage1"] = _skipped(StageType.ANALYZE)
        return update

    async def analyze(state: ChapterWorkflowState) -> dict:
        logger.info("Entering node: analyze")
        result = await analyzer.analyze(
            agent.get_context(),
            state["source_text"],
            state["chapter_number"],
            retry_attempts=options.retry_attempts,
        )
        if result.success:
            # Translate must see this chapter's new glossary entries
            agent.apply_analysis_result(result.data)
        elif state.get("skip_analysis_on_failure", True):
            logger.warning("Analysis failed, continuing without it: %s", result.error)
            result.skipped = True
        return {"stage1": result, "status": ChapterStatus.ANALYZING}

    async def translate(state: ChapterWorkflowState) -> dict:
        logger.info("Entering node: translate")
        result = await translator.translate(
            agent.get_context(),
            state["source_text"],
            chunk_size=options.chunk_size,
            retry_attempts=options.retry_attempts,
            max_concurrent=options.max_concurrent_chunks,
        )
        update: dict = {"stage2": result, "status": ChapterStatus.TRANSLATING}
        if result.success and state.get("skip_editing"):
            update["stage3"] = _skipped(StageType.EDIT)
        return update

    async def edit(state: ChapterWorkflowState) -> dict:
        logger.info("Entering node: edit")
        result = await editor.edit(
            agent.get_context(),
            state["stage2"].data.translated_text,
            state["source_text"],
            chunk_size=options.chunk_size,
            check_quality=check_quality,
            retry_attempts=options.retry_attempts,
        )
        if not result.success and not state.get("fail_on_edit_error", False):
            logger.warning("Editing failed, keeping the draft translation: %s", result.error)
        return {"stage3": result, "status": ChapterStatus.EDITING}

    async def finalize(state: ChapterWorkflowState) -> dict:
        logger.info("Entering node: finalize")
        stage1, stage3 = state.get("stage1"), state.get("stage3")
        if stage3 is not None and stage3.success and stage3.data:
            final_text = stage3.data.final_text
        else:
            final_text = state["stage2"].data.translated_text

        results = _stage_results(state)
        tokens = sum(r.tokens_used for r in results)
        duration = sum(r.duration_ms for r in results)
        try:
            validate_translation(final_text, tokens, duration, state["chapter_number"])
        except TranslationQualityError as e:
            logger.error("Chapter %d rejected: %s", state["chapter_number"], e)
            return {"status": ChapterStatus.FAILED, "error": str(e), "final_translation": ""}

        analysis = stage1.data if stage1 is not None and stage1.success else None
        if analysis is not None:
            summary = ChapterSummary(
                chapter_number=state["chapter_number"],
                summary=analysis.chapter_summary,
                key_events=list(analysis.key_events),
                active_characters=[c.name for c in analysis.found_characters],
                location=analysis.found_locations[0].name if analysis.found_locations else None,
            )
        else:
            summary = ChapterSummary(
                chapter_number=state["chapter_number"],
                summary=get_text_excerpt(final_text, SUMMARY_FALLBACK_CHARS),
            )
        agent.record_chapter_translation(summary)
        return {"status": ChapterStatus.COMPLETED, "final_translation": final_text, "error": None}

    async def fail(state: ChapterWorkflowState) -> dict:
        error = state.get("error") or _first_failure(state)
        logger.error("Chapter %d failed: %s", state["chapter_number"], error)
        return {"status": ChapterStatus.FAILED, "error": error, "final_translation": ""}

    # ---- Graph construction ----

    graph = StateGraph(ChapterWorkflowState)

    graph.add_node("start", start)
    graph.add_node("analyze", analyze)
    graph.add_node("translate", translate)
    graph.add_node("edit", edit)
    graph.add_node("finalize", finalize)
    graph.add_node("fail", fail)

    graph.set_entry_point("start")

    graph.add_conditional_edges(
        "start",
        route_after_start,
        {"analyze": "analyze", "translate": "translate", "fail": "fail"},
    )
    graph.add_conditional_edges(
        "analyze",
        route_after_analyze,
        {"translate": "translate", "fail": "fail"},
    )
    graph.add_conditional_edges(
        "translate",
        route_after_translate,
        {"edit": "edit", "finalize": "finalize", "fail": "fail"},
    )
    graph.add_conditional_edges(
        "edit",
        route_after_edit,
        {"finalize": "finalize", "fail": "fail"},
    )

    graph.add_edge("finalize", END)
    graph.add_edge("fail", END)

    return graph.compile()


async def _run_with_callback(app, initial_state: dict, callback: PipelineCallback) -> dict:
    """Run the graph using astream() and emit progress callbacks.

    Returns:
        Accumulated final state dict.
    """
    accumulated: dict = dict(initial_state)
    last_error = None

    async for event in app.astream(initial_state):
        # Each event is {node_name: state_update_dict}
        for node_name, node_update in event.items():
            if node_name == "__end__":
                continue
            if isinstance(node_update, dict):
                accumulated.update(node_update)

            callback.on_stage_exit(node_name, accumulated)

            error = accumulated.get("error")
            if error and error != last_error:
                callback.on_error(node_name, error)
                last_error = error

    return accumulated


class TranslationPipeline:
    """Translates chapters of one novel through Analyze → Translate → Edit.

    The novel agent is passed into every call and never stored, so one
    pipeline can serve many novels.
    """

    def __init__(
        self,
        providers: Optional[dict[str, LLMProvider]] = None,
        provider: Optional[LLMProvider] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Args:
            providers: One provider per stage, keyed "analyze"/"translate"/"edit".
            provider: A single provider for every stage not given in ``providers``.
            settings: Defaults to ``get_settings()``.
        """
        self.settings = settings or get_settings()
        if providers is None and provider is None:
            providers = create_stage_providers(self.settings)
        providers = dict(providers or {})
        for stage in STAGES:
            if stage not in providers:
                if provider is None:
                    raise ConfigurationError(f"No provider configured for stage '{stage}'")
                providers[stage] = provider

        self.analyzer = AnalyzerAgent(providers["analyze"], self.settings)
        self.translator = TranslatorAgent(providers["translate"], self.settings)
        self.editor = EditorAgent(providers["edit"], self.settings)

    def _initial_state(self, source_text: str, chapter_number: int, options: PipelineOptions) -> ChapterWorkflowState:
        s = self.settings
        return {
            "chapter_number": chapter_number,
            "source_text": source_text or "",
            "skip_analysis": options.skip_analysis,
            "skip_editing": options.skip_editing,
            "skip_analysis_on_failure": (
                s.skip_analysis_on_failure
                if options.skip_analysis_on_failure is None else options.skip_analysis_on_failure
            ),
            "fail_on_edit_error": (
                s.fail_on_edit_error if options.fail_on_edit_error is None else options.fail_on_edit_error
            ),
            "status": ChapterStatus.PENDING,
            "error": None,
        }

    async def translate_chapter(
        self,
        agent: NovelAgent,
        source_text: str,
        chapter_number: int,
        options: Optional[PipelineOptions] = None,
        callback: Optional[PipelineCallback] = None,
    ) -> PipelineResult:
        """Translate one chapter and update the agent's memory.

        Stage failures never raise; they are reported in the result.
        ``ConfigurationError`` (bad credentials, missing backend) propagates.
        """
        options = options or PipelineOptions()
        started = time.monotonic()
        app = build_graph(self.analyzer, self.translator, self.editor, agent, options)
        initial_state = self._initial_state(source_text, chapter_number, options)

        logger.info("Translating chapter %d of '%s'", chapter_number, agent.title)
        if callback is not None:
            final_state = await _run_with_callback(app, initial_state, callback)
        else:
            final_state = await app.ainvoke(initial_state)

        stages = _stage_results(final_state)
        result = PipelineResult(
            chapter_number=chapter_number,
            original_text=source_text,
            status=final_state.get("status", ChapterStatus.FAILED),
            final_translation=final_state.get("final_translation", ""),
            stage1=final_state.get("stage1"),
            stage2=final_state.get("stage2"),
            stage3=final_state.get("stage3"),
            total_tokens_used=sum(r.tokens_used for r in stages),
            total_duration_ms=int((time.monotonic() - started) * 1000),
            updated_context=copy.deepcopy(agent.get_context()),
            error=final_state.get("error"),
        )

        logger.info(
            "Chapter %d %s: %d tokens, %d ms",
            chapter_number, result.status.value, result.total_tokens_used, result.total_duration_ms,
        )
        if callback is not None:
            callback.on_chapter_complete(result)
        return result

    async def translate_chapters(
        self,
        agent: NovelAgent,
        chapters: Sequence[tuple[int, str]],
        options: Optional[PipelineOptions] = None,
        callback: Optional[PipelineCallback] = None,
        stop_on_failure: bool = False,
    ) -> list[PipelineResult]:
        """Translate (chapter_number, source_text) pairs one at a time, in order."""
        results = []
        for chapter_number, source_text in chapters:
            result = await self.translate_chapter(agent, source_text, chapter_number, options, callback)
            results.append(result)
            if stop_on_failure and not result.success:
                logger.warning("Stopping after chapter %d failed", chapter_number)
                break
        if callback is not None:
            callback.on_pipeline_complete(results)
        return results
