"""Conditional routing functions for the chapter translation graph."""

from workflow.state import ChapterWorkflowState


def route_after_start(state: ChapterWorkflowState) -> str:
    """Invalid input fails immediately; otherwise analyze unless skipped."""
    if state.get("error"):
        return "fail"
    if state.get("skip_analysis", False):
        return "translate"
    return "analyze"


def route_after_analyze(state: ChapterWorkflowState) -> str:
    """A failed analysis is skipped by default, or fails the chapter when configured."""
    result = state.get("stage1")
    if result is not None and result.success:
        return "translate"
    if state.get("skip_analysis_on_failure", True):
        return "translate"
    return "fail"


def route_after_translate(state: ChapterWorkflowState) -> str:
    """Translate is mandatory: failure ends the chapter."""
    result = state.get("stage2")
    if result is None or not result.success:
        return "fail"
    if state.get("skip_editing", False):
        return "finalize"
    return "edit"


def route_after_edit(state: ChapterWorkflowState) -> str:
    """A failed edit falls back to the draft unless fail_on_edit_error is set."""
    result = state.get("stage3")
    if result is not None and not result.success and state.get("fail_on_edit_error", False):
        return "fail"
    return "finalize"
