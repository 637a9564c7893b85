# pdfsqueeze/__init__.py
from .config import SqueezeConfig
from .exceptions import (
    CaptureError,
    CompressFailure,
    ConfigError,
    MergeFailure,
    PageCountUnavailable,
    PdfSqueezeError,
    PipelineError,
    ProcessLaunchFailure,
    SplitFailure,
    StorageError,
)
from .ghostscript import GhostscriptTool
from .models import ChunkArtifact, ChunkStage, PageRange, PipelineResult, PipelineState
from .pipeline import SqueezeRunner
from .planner import compute_chunk_size, plan_chunks

__version__ = "0.1.0"

__all__ = [
    "SqueezeConfig",
    "SqueezeRunner",
    "GhostscriptTool",
    "PageRange",
    "ChunkArtifact",
    "ChunkStage",
    "PipelineResult",
    "PipelineState",
    "compute_chunk_size",
    "plan_chunks",
    "PdfSqueezeError",
    "ConfigError",
    "PipelineError",
    "PageCountUnavailable",
    "SplitFailure",
    "CompressFailure",
    "MergeFailure",
    "ProcessLaunchFailure",
    "CaptureError",
    "StorageError",
]
