"""LangGraph state for translating one chapter."""

from typing import Optional, TypedDict

from models.enums import ChapterStatus
from models.pipeline import StageResult


class ChapterWorkflowState(TypedDict, total=False):
    """State shared by the nodes of the per-chapter graph.

    Fields are grouped logically:
    - Input: chapter_number, source_text
    - Policy: skip/fail switches resolved from options and settings
    - Stage results: stage1 (analyze), stage2 (translate), stage3 (edit)
    - Outcome: status, final_translation, error
    """

    # Input
    chapter_number: int
    source_text: str

    # Policy (resolved from PipelineOptions over Settings)
    skip_analysis: bool
    skip_editing: bool
    skip_analysis_on_failure: bool
    fail_on_edit_error: bool

    # Stage results
    stage1: StageResult
    stage2: StageResult
    stage3: StageResult

    # Outcome
    status: ChapterStatus
    final_translation: str
    error: Optional[str]
