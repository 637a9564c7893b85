# src/pdfsqueeze/cli.py
from __future__ import annotations

import argparse
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from queue import Queue
from typing import List, Optional

from .config import SqueezeConfig
from .exceptions import ConfigError
from .ghostscript import GhostscriptTool
from .logger import attach_queue_handler, setup_logging
from .page_counter import get_page_counter
from .pipeline import SqueezeRunner
from .planner import compute_chunk_size, plan_chunks

__all__ = ["build_config", "run_pipeline", "main"]

logger = logging.getLogger("pdfsqueeze")


def _normalize_output_path(arg: Path, input_path: Path) -> Path:
    """
    Accept both files and directories for --output-path.
    - If arg is an existing directory: write <stem>.squeezed.pdf inside it.
    - If arg has no suffix: add .pdf
    Ensures the parent dir exists.
    """
    out = Path(arg)
    if out.exists() and out.is_dir():
        out = out / f"{input_path.stem}.squeezed.pdf"
    elif out.suffix == "":
        out = out.with_suffix(".pdf")

    if out.resolve() == input_path.resolve():
        raise SystemExit("--output-path must differ from --input-path")

    out.parent.mkdir(parents=True, exist_ok=True)
    return out


def _human_size(n: int) -> str:
    if n < 1024:
        return f"{n}B"
    size = n / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{size:.1f}GB"


def build_config(args: argparse.Namespace) -> SqueezeConfig:
    cfg_dict = {
        "ghostscript_cmd": getattr(args, "gs_cmd", None),
        "num_workers": getattr(args, "workers", None),
        "temp_dir": getattr(args, "temp_dir", None),
        "keep_scratch": getattr(args, "keep_scratch", False),
        "pdf_settings": getattr(args, "pdf_settings", None),
        "compatibility_level": getattr(args, "compatibility_level", None),
        "tool_timeout": getattr(args, "timeout", None),
        "page_counter": getattr(args, "page_counter", None),
        "strict_page_count": getattr(args, "strict_page_count", False),
        "show_progress": not getattr(args, "no_progress", False),
        "error_log_path": getattr(args, "error_log_path", None),
        "log_performance": getattr(args, "log_performance", False),
        "performance_log_path": getattr(args, "performance_log_path", None),
    }
    cfg_dict = {k: v for k, v in cfg_dict.items() if v is not None}
    return SqueezeConfig.from_dict(cfg_dict)


def run_pipeline(config: SqueezeConfig, input_path: Path, output_path: Path) -> int:
    """
    Squeeze one file. Returns a process exit code.
    """
    config.temp_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Starting pdfsqueeze")
    logger.info("Input file, %s", input_path)
    logger.info("Output file, %s", output_path)
    logger.info(
        "Workers, %s | preset, %s | timeout, %s",
        config.num_workers, config.pdf_settings, config.tool_timeout,
    )

    runner = SqueezeRunner(config)
    result = runner.run(input_path, output_path)

    if not result.succeeded:
        print(f"FAILED: {result.error}", file=sys.stderr)
        return 1

    if result.skipped:
        print(f"{input_path.name}: page count unavailable, copied unchanged to {output_path}")
    else:
        print(
            f"{input_path.name}: {result.page_count} pages in {len(result.ranges)} chunks, "
            f"{_human_size(result.original_bytes)} -> {_human_size(result.final_bytes)} "
            f"({result.reduction_percent:.1f}% reduction)"
        )
    return 0


# -------------------------------
# CLI parsing
# -------------------------------

def _add_tool_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--gs-cmd", type=str, help="Path to the Ghostscript binary (default: auto-detect)")
    p.add_argument("--timeout", type=float, help="Seconds allowed per Ghostscript invocation")
    p.add_argument(
        "--page-counter",
        type=str,
        choices=["ghostscript", "pymupdf"],
        help="Engine used to count pages",
    )


def _build_run_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("run", help="Split, compress and merge a PDF")

    p.add_argument("-i", "--input-path", type=Path, required=True, help="PDF to shrink")
    p.add_argument(
        "-o", "--output-path", type=Path, required=True,
        help="Output PDF path. Accepts a file OR a directory (<stem>.squeezed.pdf is created inside).",
    )

    p.add_argument("-w", "--workers", type=int, help="Parallel Ghostscript processes (default: CPU count)")
    _add_tool_args(p)

    gs_group = p.add_argument_group("Compression")
    gs_group.add_argument(
        "--pdf-settings",
        type=str,
        choices=["/screen", "/ebook", "/printer", "/prepress", "/default"],
        help="Ghostscript quality preset (default: /ebook)",
    )
    gs_group.add_argument("--compatibility-level", type=str, help="PDF compatibility level (default: 1.4)")
    gs_group.add_argument(
        "--strict-page-count",
        action="store_true",
        help="Fail when the page count is unavailable instead of copying the input unchanged",
    )

    scratch_group = p.add_argument_group("Scratch files")
    scratch_group.add_argument("--temp-dir", type=Path, help="Base directory for chunk files")
    scratch_group.add_argument("--keep-scratch", action="store_true", help="Leave chunk files on disk after the run")

    log_group = p.add_argument_group("Logging")
    log_group.add_argument("--error-log-path", type=Path, help="Append failed runs to this JSONL file")
    log_group.add_argument("--log-performance", action="store_true", help="Enable performance logging to a file")
    log_group.add_argument("--performance-log-path", type=Path, help="Path for the performance log JSONL file")
    log_group.add_argument("--log-file", type=Path, help="Also write log lines to this file")
    log_group.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    log_group.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def _build_count_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("count", help="Print the page count of a PDF")
    p.add_argument("-i", "--input-path", type=Path, required=True, help="PDF to inspect")
    _add_tool_args(p)
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return p


def _build_plan_parser(subparsers: argparse._SubParsersAction) -> argparse.ArgumentParser:
    p = subparsers.add_parser("plan", help="Show the chunk plan for a page count")
    p.add_argument("--pages", type=int, required=True, help="Total page count")
    p.add_argument("-w", "--workers", type=int, help="Parallelism (default: CPU count)")
    return p


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="pdfsqueeze, parallel Ghostscript PDF shrinking")
    subparsers = parser.add_subparsers(dest="command")

    _build_run_parser(subparsers)
    _build_count_parser(subparsers)
    _build_plan_parser(subparsers)

    return parser.parse_args(argv)


# -------------------------------
# Entry points
# -------------------------------

@contextmanager
def _logging_session(args: argparse.Namespace):
    log_queue: Queue = Queue(-1)
    level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    listener = setup_logging(
        log_queue,
        level=level,
        file_path=getattr(args, "log_file", None),
    )
    handler = attach_queue_handler(log_queue)
    listener.start()
    try:
        yield
    finally:
        listener.stop()
        logger.removeHandler(handler)
        logger.propagate = True


def _run_from_cli(args: argparse.Namespace) -> int:
    if not args.input_path.is_file():
        raise SystemExit(f"--input-path does not exist: {args.input_path}")
    output_path = _normalize_output_path(args.output_path, args.input_path)

    with _logging_session(args):
        try:
            config = build_config(args).validate()
        except ConfigError as e:
            raise SystemExit(str(e))
        return run_pipeline(config, args.input_path, output_path)


def _count_from_cli(args: argparse.Namespace) -> int:
    if not args.input_path.is_file():
        raise SystemExit(f"--input-path does not exist: {args.input_path}")

    with _logging_session(args):
        config = build_config(args)
        tool = None
        if config.page_counter == "ghostscript":
            try:
                config.validate()
            except ConfigError as e:
                raise SystemExit(str(e))
            tool = GhostscriptTool(config.ghostscript_cmd, timeout=config.tool_timeout)
        count = get_page_counter(config.page_counter, tool).count_pages(args.input_path)

    print(count)
    return 0


def _plan_from_cli(args: argparse.Namespace) -> int:
    if args.pages < 0:
        raise SystemExit("--pages must be >= 0")
    config = build_config(args)
    if config.num_workers < 1:
        raise SystemExit("--workers must be >= 1")
    chunk_size = compute_chunk_size(args.pages, config.num_workers)
    for r in plan_chunks(args.pages, chunk_size):
        print(f"{r.ordinal}\t{r.start}-{r.end}\t{r.filename}")
    return 0


def main(argv: Optional[List[str]] = None):
    args = _parse_args(argv)

    if args.command == "run":
        sys.exit(_run_from_cli(args))
    if args.command == "count":
        sys.exit(_count_from_cli(args))
    if args.command == "plan":
        sys.exit(_plan_from_cli(args))

    print("Usage:\n  pdfsqueeze run -i <input.pdf> -o <output.pdf> [options]\n"
          "  pdfsqueeze count -i <input.pdf>\n  pdfsqueeze plan --pages N [-w N]")
    sys.exit(2)


if __name__ == "__main__":
    main()
