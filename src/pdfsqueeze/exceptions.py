# pdfsqueeze/exceptions.py
from __future__ import annotations

from typing import Optional


class PdfSqueezeError(Exception):
    """Base exception for the pdfsqueeze library."""
    pass


class ConfigError(PdfSqueezeError):
    """Raised when a SqueezeConfig cannot be used for a run."""
    pass


class PipelineError(PdfSqueezeError):
    """
    A fatal failure in one stage of a squeeze run.

    Carries the stage that failed and, for per-chunk stages, the page range
    of the offending chunk.
    """

    stage: str = "pipeline"

    def __init__(self, detail: str = "", page_range=None, stage: Optional[str] = None):
        if stage is not None:
            self.stage = stage
        self.page_range = page_range
        self.detail = detail
        super().__init__(self._format())

    def _format(self) -> str:
        msg = f"{self.stage} failed"
        if self.page_range is not None:
            msg += f" for pages {self.page_range.start}-{self.page_range.end}"
        if self.detail:
            msg += f": {self.detail}"
        return msg

    def to_dict(self) -> dict:
        rng = None
        if self.page_range is not None:
            rng = {"start": self.page_range.start, "end": self.page_range.end}
        return {
            "kind": type(self).__name__,
            "stage": self.stage,
            "range": rng,
            "detail": self.detail,
        }


class PageCountUnavailable(PipelineError):
    """The page count could not be determined. Only fatal in strict mode."""
    stage = "count"


class SplitFailure(PipelineError):
    stage = "split"


class CompressFailure(PipelineError):
    stage = "compress"


class MergeFailure(PipelineError):
    stage = "merge"


class ProcessLaunchFailure(PipelineError):
    """The external tool could not be started at all (missing binary, permissions)."""
    pass


class CaptureError(PdfSqueezeError):
    """Raised by a capture backend when navigation or rendering fails."""
    pass


class StorageError(PdfSqueezeError):
    """Raised by a storage backend when bytes cannot be persisted."""
    pass
