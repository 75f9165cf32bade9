"""Workflow package — LangGraph chapter graph, state, conditions and callbacks."""

from workflow.graph import build_graph, TranslationPipeline
from workflow.state import ChapterWorkflowState
from workflow.conditions import (
    route_after_start,
    route_after_analyze,
    route_after_translate,
    route_after_edit,
)
from workflow.callbacks import PipelineCallback, LoggingCallback, RichProgressCallback
from workflow.validation import validate_translation

__all__ = [
    "build_graph",
    "TranslationPipeline",
    "ChapterWorkflowState",
    "route_after_start",
    "route_after_analyze",
    "route_after_translate",
    "route_after_edit",
    "PipelineCallback",
    "LoggingCallback",
    "RichProgressCallback",
    "validate_translation",
]
