"""Pipeline progress callbacks for monitoring and real-time reporting."""

import logging
from typing import Protocol, runtime_checkable

from models.pipeline import PipelineResult

logger = logging.getLogger(__name__)


@runtime_checkable
class PipelineCallback(Protocol):
    """Protocol for pipeline progress callbacks.

    Implement this protocol to hook into chapter translation.
    """

    def on_stage_exit(self, node: str, state: dict) -> None:
        """Called after a graph node finishes with the accumulated chapter state."""
        ...

    def on_chapter_complete(self, result: PipelineResult) -> None:
        """Called when a chapter finishes, successfully or not."""
        ...

    def on_error(self, node: str, error: str) -> None:
        """Called when a node records a chapter-level error."""
        ...

    def on_pipeline_complete(self, results: list[PipelineResult]) -> None:
        """Called when a batch of chapters finishes."""
        ...


class LoggingCallback:
    """Lightweight callback that logs progress to the standard logger."""

    def on_stage_exit(self, node: str, state: dict) -> None:
        logger.debug("← node: %s", node)

    def on_chapter_complete(self, result: PipelineResult) -> None:
        logger.info(
            "Chapter %d %s (%d chars, %d tokens)",
            result.chapter_number, result.status.value,
            len(result.final_translation), result.total_tokens_used,
        )

    def on_error(self, node: str, error: str) -> None:
        logger.error("Pipeline error in '%s': %s", node, error)

    def on_pipeline_complete(self, results: list[PipelineResult]) -> None:
        done = sum(1 for r in results if r.success)
        logger.info("Pipeline complete — %d/%d chapters translated", done, len(results))


class RichProgressCallback:
    """Progress callback that renders a Rich live progress display in the terminal."""

    # astream reports a node after it finishes, so show the step that comes next
    _ENTERING_LABEL: dict[str, str] = {
        "start": "Analyzing",
        "analyze": "Translating",
        "translate": "Editing",
        "edit": "Finalizing",
    }

    def __init__(self, console=None, total_chapters: int = 0):
        """
        Args:
            console: Rich Console instance. Creates one if not provided.
            total_chapters: Chapters in the batch (for progress bar max).
        """
        self._console = console
        self._total = total_chapters
        self._completed = 0
        self._progress = None
        self._chapter_task_id = None
        self._node_task_id = None

    def start(self):
        """Start the progress display. Call before running the pipeline."""
        from rich.console import Console
        from rich.progress import (
            Progress, SpinnerColumn, TextColumn, TaskProgressColumn,
        )

        console = self._console or Console()

        self._progress = Progress(
            SpinnerColumn("dots"),
            TextColumn("[progress.description]{task.description}"),
            TaskProgressColumn(),
            console=console,
        )
        self._progress.start()

        self._chapter_task_id = self._progress.add_task(
            "Waiting...",
            total=self._total if self._total > 0 else None,
        )
        self._node_task_id = self._progress.add_task("[dim]Starting...[/]", total=None)

    def stop(self):
        """Stop the progress display."""
        if self._progress:
            self._progress.stop()
            self._progress = None

    def on_stage_exit(self, node: str, state: dict) -> None:
        if not self._progress:
            return
        chapter = state.get("chapter_number", "")
        if node == "start":
            label = "Translating" if state.get("skip_analysis") else "Analyzing"
            self._progress.update(self._chapter_task_id, description=f"Chapter {chapter}...")
        elif node == "translate" and state.get("skip_editing"):
            label = "Finalizing"
        else:
            label = self._ENTERING_LABEL.get(node, node)
        self._progress.update(self._node_task_id, description=f"[dim]{label} (chapter {chapter})[/]")

    def on_chapter_complete(self, result: PipelineResult) -> None:
        if not self._progress:
            return
        self._completed += 1
        total_label = str(self._total) if self._total > 0 else "?"
        colour = "green" if result.success else "red"
        self._progress.update(
            self._chapter_task_id,
            completed=self._completed,
            description=f"[{colour}]{self._completed}/{total_label} chapters[/] "
                        f"([cyan]{result.total_tokens_used:,}[/] tokens)",
        )

    def on_error(self, node: str, error: str) -> None:
        if not self._progress:
            return
        self._progress.update(self._node_task_id, description=f"[red]Error ({node}): {error[:80]}[/]")

    def on_pipeline_complete(self, results: list[PipelineResult]) -> None:
        if not self._progress:
            return
        done = sum(1 for r in results if r.success)
        self._progress.update(
            self._chapter_task_id,
            description=f"[bold green]Done: {done}/{len(results)} chapters[/]",
        )
        self._progress.update(self._node_task_id, description="")
