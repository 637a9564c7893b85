# pdfsqueeze/pipeline.py
from __future__ import annotations

import json
import logging
import shutil
import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from functools import partial
from multiprocessing.pool import ThreadPool
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from tqdm import tqdm

from .config import SqueezeConfig
from .exceptions import MergeFailure, PageCountUnavailable, PipelineError
from .ghostscript import GhostscriptTool
from .logger import PROGRESS, attach_queue_handler  # noqa, PROGRESS registers logger.progress
from .models import ChunkArtifact, PageRange, PipelineResult, PipelineState
from .page_counter import BasePageCounter, get_page_counter
from .planner import compute_chunk_size, plan_chunks, sort_artifacts
from .scratch import ScratchSpace
from .workers import worker_compress_chunk, worker_split_chunk

logger = logging.getLogger("pdfsqueeze")

PathLike = Union[str, Path]


class PerformanceTracker:
    def __init__(self):
        self.stage_times: Dict[str, float] = {}
        self.chunk_times: Dict[str, float] = defaultdict(float)
        self.split_bytes = 0
        self.compressed_bytes = 0
        self.start_time = time.perf_counter()

    @contextmanager
    def stage(self, name: str):
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.stage_times[name] = round(time.perf_counter() - t0, 4)

    def add_chunk_time(self, stage: str, duration: float):
        self.chunk_times[stage] += duration

    def get_final_metrics(self) -> Dict:
        return {
            "wall_clock_total_seconds": round(time.perf_counter() - self.start_time, 4),
            "stage_seconds": dict(self.stage_times),
            "worker_seconds": {k: round(v, 4) for k, v in self.chunk_times.items()},
            "split_bytes": self.split_bytes,
            "compressed_bytes": self.compressed_bytes,
        }


# --- MAIN RUNNER CLASS ---

class SqueezeRunner:
    """
    Shrinks a PDF by splitting it into page-range chunks, recompressing the
    chunks in parallel with Ghostscript and merging them back in page order.
    """

    def __init__(
        self,
        config: SqueezeConfig,
        tool: Optional[object] = None,
        page_counter: Optional[BasePageCounter] = None,
    ):
        self.config = config
        if config.log_queue is not None:
            attach_queue_handler(config.log_queue)
        if tool is None:
            config.validate()
            tool = GhostscriptTool(config.ghostscript_cmd, timeout=config.tool_timeout)
        self.tool = tool
        self.page_counter = page_counter or get_page_counter(config.page_counter, tool)

    # -----------------------------
    # Logging helpers
    # -----------------------------
    def _log_error(self, source_path: str, error: PipelineError):
        if not self.config.error_log_path:
            return
        try:
            self.config.error_log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config.error_log_path, "a", encoding="utf-8") as f:
                log_entry = {
                    "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                    "source_path": source_path,
                    "error_reason": str(error),
                    **error.to_dict(),
                }
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except Exception:
            logger.exception("Failed to write error log")

    def _log_performance(self, metric: Dict):
        if not self.config.log_performance:
            return
        path = self.config.performance_log_path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                log_entry = {"timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"), **metric}
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except Exception:
            logger.exception("Failed to write performance log")

    # -----------------------------
    # Stage 1. Count pages and plan chunks
    # -----------------------------
    def _count_pages(self, source_path: Path) -> int:
        page_count = self.page_counter.count_pages(source_path)
        if page_count == 0 and self.config.strict_page_count:
            raise PageCountUnavailable(f"no page count for {source_path.name}")
        return page_count

    def _plan(self, page_count: int) -> List[PageRange]:
        if page_count == 0:
            return []
        chunk_size = compute_chunk_size(page_count, self.config.num_workers)
        ranges = plan_chunks(page_count, chunk_size)
        logger.info(
            "Planned %d chunks of up to %d pages for %d pages",
            len(ranges), chunk_size, page_count,
        )
        return ranges

    # -----------------------------
    # Fan-out helper shared by split and compress
    # Waits for every unit unless one fails, in which case the remaining
    # units are dropped and the tagged error is raised immediately.
    # -----------------------------
    def _fan_out(
        self,
        worker: Callable[[dict], dict],
        chunk_tasks: List[dict],
        *,
        stage: str,
        desc: str,
        pct_from: int,
        pct_to: int,
        cancel_event: threading.Event,
        perf: PerformanceTracker,
    ) -> List[dict]:
        results: List[dict] = []
        total = len(chunk_tasks)
        processes = max(1, min(self.config.num_workers, total))

        with ThreadPool(processes=processes) as pool, \
                tqdm(total=total, desc=desc, disable=not self.config.show_progress) as pbar:
            for result in pool.imap_unordered(worker, chunk_tasks):
                perf.add_chunk_time(stage, result.get("duration_seconds", 0.0))
                error = result.get("error")
                if error is not None:
                    cancel_event.set()
                    logger.error("%s, abandoning %d outstanding chunks", error, total - len(results) - 1)
                    raise error
                results.append(result)
                pbar.update(1)
                logger.progress(
                    f"{stage} progress",
                    extra={
                        "phase": stage,
                        "current": len(results),
                        "total": total,
                        "pct": pct_from + (pct_to - pct_from) * len(results) // total,
                    },
                )
        return results

    # -----------------------------
    # Stage 2. Split
    # -----------------------------
    def _split_chunks(self, source_path: Path, ranges: List[PageRange], scratch: ScratchSpace,
                      cancel_event: threading.Event, perf: PerformanceTracker) -> List[ChunkArtifact]:
        logger.info("Splitting %s into %d chunks", source_path.name, len(ranges))
        chunk_tasks = [
            {"range": r, "source_path": str(source_path), "output_dir": str(scratch.split_dir)}
            for r in ranges
        ]
        worker = partial(worker_split_chunk, self.tool, cancel_event=cancel_event)
        results = self._fan_out(
            worker, chunk_tasks, stage="split", desc="Splitting chunks",
            pct_from=10, pct_to=45, cancel_event=cancel_event, perf=perf,
        )
        return [r["artifact"] for r in results]

    # -----------------------------
    # Stage 3. Compress
    # -----------------------------
    def _compress_chunks(self, artifacts: List[ChunkArtifact], scratch: ScratchSpace,
                         cancel_event: threading.Event, perf: PerformanceTracker) -> List[ChunkArtifact]:
        logger.info("Compressing %d chunks with %s", len(artifacts), self.config.pdf_settings)
        chunk_tasks = [
            {"artifact": a, "output_dir": str(scratch.compressed_dir)}
            for a in artifacts
        ]
        worker = partial(
            worker_compress_chunk,
            self.tool,
            cancel_event=cancel_event,
            pdf_settings=self.config.pdf_settings,
            compatibility_level=self.config.compatibility_level,
        )
        results = self._fan_out(
            worker, chunk_tasks, stage="compress", desc="Compressing chunks",
            pct_from=45, pct_to=90, cancel_event=cancel_event, perf=perf,
        )
        for r in results:
            perf.split_bytes += r.get("input_bytes", 0)
            perf.compressed_bytes += r.get("output_bytes", 0)
        return [r["artifact"] for r in results]

    # -----------------------------
    # Stage 4. Merge, sequential and in page order
    # -----------------------------
    def _merge_chunks(self, artifacts: List[ChunkArtifact], output_path: Path) -> int:
        ordered = sort_artifacts(artifacts)
        logger.info("Merging %d chunks into %s", len(ordered), output_path.name)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.tool.merge([a.path for a in ordered], output_path)
        try:
            return output_path.stat().st_size
        except OSError as e:
            raise MergeFailure(f"cannot read merged output, {e}") from e

    # -----------------------------
    # Run orchestration
    # -----------------------------
    def _execute(self, source_path: Path, output_path: Path, scratch: ScratchSpace) -> PipelineResult:
        perf = PerformanceTracker()
        cancel_event = threading.Event()
        result = PipelineResult(source_path=str(source_path), output_path=str(output_path))
        result.original_bytes = source_path.stat().st_size

        try:
            logger.progress("plan start", extra={"phase": "plan", "pct": 5})
            with perf.stage("plan"):
                result.page_count = self._count_pages(source_path)
                result.ranges = self._plan(result.page_count)

            if not result.ranges:
                logger.info("No pages to split in %s, passing it through unchanged", source_path.name)
                if source_path.resolve() != output_path.resolve():
                    output_path.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copyfile(source_path, output_path)
                result.final_bytes = result.original_bytes
                result.advance(PipelineState.DONE)
                return result

            result.advance(PipelineState.SPLITTING)
            with perf.stage("split"):
                split_artifacts = self._split_chunks(source_path, result.ranges, scratch, cancel_event, perf)

            result.advance(PipelineState.COMPRESSING)
            with perf.stage("compress"):
                compressed = self._compress_chunks(split_artifacts, scratch, cancel_event, perf)

            result.advance(PipelineState.MERGING)
            logger.progress("merge start", extra={"phase": "merge", "pct": 90})
            with perf.stage("merge"):
                result.final_bytes = self._merge_chunks(compressed, output_path)

            result.advance(PipelineState.DONE)
            logger.info(
                "Squeezed %s, %d -> %d bytes (%.1f%% reduction)",
                source_path.name, result.original_bytes, result.final_bytes, result.reduction_percent,
            )
            return result

        except PipelineError as e:
            cancel_event.set()
            logger.error("Run failed for %s, %s", source_path.name, e)
            if result.state == PipelineState.MERGING and output_path.exists() \
                    and output_path.resolve() != source_path.resolve():
                output_path.unlink(missing_ok=True)
            result.fail(e)
            self._log_error(str(source_path), e)
            return result

        finally:
            result.stage_seconds = dict(perf.stage_times)
            self._log_performance({
                "metric_type": "run_finished",
                "source_path": str(source_path),
                "state": result.state.value,
                "page_count": result.page_count,
                "chunks": len(result.ranges),
                "original_bytes": result.original_bytes,
                "final_bytes": result.final_bytes,
                "reduction_percent": result.reduction_percent,
                **perf.get_final_metrics(),
            })
            logger.progress("done", extra={"phase": "done", "pct": 100})

    # -----------------------------
    # Public entry points
    # -----------------------------
    def run(self, source_path: PathLike, output_path: PathLike) -> PipelineResult:
        """
        Squeeze source_path into output_path.
        Raises FileNotFoundError if source_path is missing. Every other failure
        is returned on the result, never as a partial output file.
        """
        source_path = Path(source_path)
        output_path = Path(output_path)
        if not source_path.is_file():
            raise FileNotFoundError(f"Source PDF not found: {source_path}")
        logger.info("Run started for %s", source_path)

        with ScratchSpace(self.config.temp_dir, keep=self.config.keep_scratch) as scratch:
            return self._execute(source_path, output_path, scratch)

    def squeeze_bytes(self, data: bytes) -> bytes:
        """
        Squeeze an in-memory PDF and return the final bytes.
        Returns the input unchanged when there was nothing to split, raises the
        tagged PipelineError on failure.
        """
        with ScratchSpace(self.config.temp_dir, keep=self.config.keep_scratch) as scratch:
            source_path = scratch.root / "source.pdf"
            output_path = scratch.root / "output.pdf"
            source_path.write_bytes(data)

            result = self._execute(source_path, output_path, scratch)
            if not result.succeeded:
                raise result.error
            if result.skipped:
                return data
            return output_path.read_bytes()
