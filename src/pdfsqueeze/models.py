# pdfsqueeze/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from .exceptions import PipelineError


@dataclass(frozen=True)
class PageRange:
    """A contiguous, 1-based, inclusive range of pages processed as one chunk."""
    start: int
    end: int
    ordinal: int = 0

    def __post_init__(self):
        if self.start < 1 or self.end < self.start:
            raise ValueError(f"Invalid page range {self.start}-{self.end}")

    @property
    def label(self) -> str:
        return f"chunk_{self.start}-{self.end}"

    @property
    def filename(self) -> str:
        return f"{self.label}.pdf"

    @property
    def page_count(self) -> int:
        return self.end - self.start + 1


class ChunkStage(str, Enum):
    SPLIT = "split"
    COMPRESSED = "compressed"


@dataclass(frozen=True)
class ChunkArtifact:
    """One chunk file on disk, produced by the split or compress stage."""
    range: PageRange
    path: Path
    stage: ChunkStage


class PipelineState(str, Enum):
    PLANNING = "planning"
    SPLITTING = "splitting"
    COMPRESSING = "compressing"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


# Forward-only; FAILED is reachable from every non-terminal state.
_TRANSITIONS = {
    PipelineState.PLANNING: {PipelineState.SPLITTING, PipelineState.DONE},
    PipelineState.SPLITTING: {PipelineState.COMPRESSING},
    PipelineState.COMPRESSING: {PipelineState.MERGING},
    PipelineState.MERGING: {PipelineState.DONE},
    PipelineState.DONE: set(),
    PipelineState.FAILED: set(),
}


@dataclass
class PipelineResult:
    """Represents the outcome of a single squeeze run."""
    source_path: str
    output_path: Optional[str] = None
    page_count: int = 0
    ranges: List[PageRange] = field(default_factory=list)
    state: PipelineState = PipelineState.PLANNING
    error: Optional[PipelineError] = None
    original_bytes: int = 0
    final_bytes: int = 0
    stage_seconds: Dict[str, float] = field(default_factory=dict)

    def advance(self, new_state: PipelineState) -> None:
        if new_state == PipelineState.FAILED:
            if self.state in (PipelineState.DONE, PipelineState.FAILED):
                raise RuntimeError(f"Cannot fail a run that is already {self.state.value}")
        elif new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state

    def fail(self, error: PipelineError) -> None:
        self.advance(PipelineState.FAILED)
        self.error = error

    @property
    def succeeded(self) -> bool:
        return self.state == PipelineState.DONE

    @property
    def skipped(self) -> bool:
        """True when nothing was planned and the source passed through unchanged."""
        return self.succeeded and not self.ranges

    @property
    def reduction_percent(self) -> float:
        if not self.original_bytes:
            return 0.0
        return round((self.original_bytes - self.final_bytes) / self.original_bytes * 100, 1)

    def to_dict(self) -> dict:
        return {
            "source_path": self.source_path,
            "output_path": self.output_path,
            "page_count": self.page_count,
            "chunks": [r.label for r in self.ranges],
            "state": self.state.value,
            "error": self.error.to_dict() if self.error else None,
            "original_bytes": self.original_bytes,
            "final_bytes": self.final_bytes,
            "stage_seconds": dict(self.stage_seconds),
        }
