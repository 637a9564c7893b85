# pdfsqueeze/workers.py
from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Optional

from .exceptions import CompressFailure, PipelineError, SplitFailure
from .models import ChunkArtifact, ChunkStage

logger = logging.getLogger("pdfsqueeze")


def _cancelled(chunk_task: dict, cancel_event: Optional[threading.Event]) -> bool:
    if cancel_event is not None and cancel_event.is_set():
        chunk_task["cancelled"] = True
        return True
    return False


# --- 1. Split worker ---
def worker_split_chunk(tool, chunk_task: dict, cancel_event: Optional[threading.Event] = None) -> dict:
    """
    Extract one page range of the source PDF into its own file.
    Expected keys in chunk_task:
      range (PageRange), source_path, output_dir
    Returns the task dict with:
      - 'artifact' (ChunkArtifact, stage SPLIT) on success
      - 'error' (PipelineError) on failure
      - 'cancelled' (True) when skipped because a sibling already failed
      - 'duration_seconds' (float)
    """
    start = time.perf_counter()
    page_range = chunk_task["range"]
    try:
        if _cancelled(chunk_task, cancel_event):
            return chunk_task
        out_path = Path(chunk_task["output_dir"]) / page_range.filename
        tool.split(chunk_task["source_path"], page_range, out_path)
        chunk_task["artifact"] = ChunkArtifact(range=page_range, path=out_path, stage=ChunkStage.SPLIT)
        logger.debug("Split pages %s-%s", page_range.start, page_range.end)
        return chunk_task
    except PipelineError as e:
        chunk_task["error"] = e
        return chunk_task
    except OSError as e:
        chunk_task["error"] = SplitFailure(str(e), page_range)
        return chunk_task
    finally:
        chunk_task["duration_seconds"] = time.perf_counter() - start


# --- 2. Compress worker ---
def worker_compress_chunk(
    tool,
    chunk_task: dict,
    cancel_event: Optional[threading.Event] = None,
    pdf_settings: str = "/ebook",
    compatibility_level: str = "1.4",
) -> dict:
    """
    Recompress one split chunk into the compressed directory, keeping its filename.
    Expected keys in chunk_task:
      artifact (ChunkArtifact, stage SPLIT), output_dir
    Adds 'input_bytes' and 'output_bytes' on success.
    """
    start = time.perf_counter()
    split_artifact: ChunkArtifact = chunk_task["artifact"]
    page_range = split_artifact.range
    try:
        if _cancelled(chunk_task, cancel_event):
            return chunk_task
        out_path = Path(chunk_task["output_dir"]) / split_artifact.path.name
        tool.compress(
            split_artifact.path,
            out_path,
            page_range=page_range,
            pdf_settings=pdf_settings,
            compatibility_level=compatibility_level,
        )
        chunk_task["input_bytes"] = split_artifact.path.stat().st_size
        chunk_task["output_bytes"] = out_path.stat().st_size
        chunk_task["artifact"] = ChunkArtifact(range=page_range, path=out_path, stage=ChunkStage.COMPRESSED)
        logger.debug(
            "Compressed pages %s-%s, %d -> %d bytes",
            page_range.start, page_range.end, chunk_task["input_bytes"], chunk_task["output_bytes"],
        )
        return chunk_task
    except PipelineError as e:
        chunk_task["error"] = e
        return chunk_task
    except OSError as e:
        chunk_task["error"] = CompressFailure(str(e), page_range)
        return chunk_task
    finally:
        chunk_task["duration_seconds"] = time.perf_counter() - start
