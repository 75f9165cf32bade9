"""Pipeline data models: chunks, stage results and per-chapter outcomes."""

from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

from models.agent import AgentContext
from models.enums import ChapterStatus, StageType

T = TypeVar("T")


@dataclass
class TextChunk:
    """A provider-sized slice of chapter text; ``index`` fixes its position."""
    id: str
    content: str
    index: int
    token_count: int = 0


@dataclass
class ParagraphTranslation:
    id: str
    original: str
    translated: str


@dataclass
class ChunkTranslation:
    chunk_id: str
    index: int
    original: str
    translated: str
    paragraphs: list[ParagraphTranslation] = field(default_factory=list)
    aligned: bool = False
    tokens_used: int = 0
    error: Optional[str] = None


@dataclass
class TranslationDraft:
    original_text: str
    translated_text: str
    chunk_results: list[ChunkTranslation] = field(default_factory=list)
    paragraphs: list[ParagraphTranslation] = field(default_factory=list)
    aligned: bool = False
    failed_chunks: list[int] = field(default_factory=list)


@dataclass
class EditChange:
    before: str
    after: str
    reason: str = ""


@dataclass
class EditedTranslation:
    final_text: str
    changes: list[EditChange] = field(default_factory=list)
    quality_score: Optional[float] = None
    quality_issues: list[str] = field(default_factory=list)
    glossary_warnings: list[str] = field(default_factory=list)


@dataclass
class StageResult(Generic[T]):
    """Outcome of one pipeline stage.

    A failed stage may still carry ``data`` (e.g. a partial translation draft).
    """
    stage: StageType
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    tokens_used: int = 0
    duration_ms: int = 0
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "success": self.success,
            "error": self.error,
            "error_type": self.error_type,
            "tokens_used": self.tokens_used,
            "duration_ms": self.duration_ms,
            "skipped": self.skipped,
        }


@dataclass
class PipelineOptions:
    """Per-call overrides; ``None`` means use the configured default."""
    skip_analysis: bool = False
    skip_editing: bool = False
    chunk_size: Optional[int] = None
    retry_attempts: Optional[int] = None
    skip_analysis_on_failure: Optional[bool] = None
    fail_on_edit_error: Optional[bool] = None
    check_quality: Optional[bool] = None
    max_concurrent_chunks: Optional[int] = None


@dataclass
class PipelineResult:
    chapter_number: int
    original_text: str
    status: ChapterStatus
    final_translation: str = ""
    stage1: Optional[StageResult] = None
    stage2: Optional[StageResult] = None
    stage3: Optional[StageResult] = None
    total_tokens_used: int = 0
    total_duration_ms: int = 0
    updated_context: Optional[AgentContext] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status == ChapterStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "chapter_number": self.chapter_number,
            "status": self.status.value,
            "success": self.success,
            "final_translation": self.final_translation,
            "stage1": self.stage1.to_dict() if self.stage1 else None,
            "stage2": self.stage2.to_dict() if self.stage2 else None,
            "stage3": self.stage3.to_dict() if self.stage3 else None,
            "total_tokens_used": self.total_tokens_used,
            "total_duration_ms": self.total_duration_ms,
            "error": self.error,
        }
