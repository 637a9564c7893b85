# ghostscript_vanilla_bench.py
# Single Ghostscript pass vs. split/compress/merge, one JSONL record per file

import json
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path

from tqdm import tqdm

from pdfsqueeze.config import SqueezeConfig
from pdfsqueeze.ghostscript import GhostscriptTool
from pdfsqueeze.pipeline import SqueezeRunner

# --- CONFIGURATION ---
INPUT_DIR = Path("tests/data")                      # folder with PDFs
OUTPUT_JSONL = Path("gs_bench_results.jsonl")       # JSONL out (one record per file)
PDF_SETTINGS = "/ebook"


def _vanilla(tool: GhostscriptTool, src: Path, out: Path) -> float:
    t0 = time.perf_counter()
    tool.compress(src, out, pdf_settings=PDF_SETTINGS)
    return time.perf_counter() - t0


def main():
    print("--- Starting Ghostscript Benchmark ---")
    print(f"Input:  {INPUT_DIR.resolve()}")
    print(f"Output: {OUTPUT_JSONL.resolve()}")

    config = SqueezeConfig(pdf_settings=PDF_SETTINGS, show_progress=False).validate()
    tool = GhostscriptTool(config.ghostscript_cmd, timeout=config.tool_timeout)
    runner = SqueezeRunner(config, tool=tool)
    print(f"Using {config.ghostscript_cmd} with {config.num_workers} workers")

    files = sorted(p for p in INPUT_DIR.rglob("*.pdf") if p.is_file())
    if not files:
        print("No files found. Exiting.")
        return
    print(f"Found {len(files)} files.")

    total_vanilla = 0.0
    total_parallel = 0.0

    with open(OUTPUT_JSONL, "w", encoding="utf-8") as fout, tempfile.TemporaryDirectory() as tmp:
        tmp = Path(tmp)
        for fpath in tqdm(files, desc="Benchmarking"):
            record = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "source_path": str(fpath),
                "original_bytes": fpath.stat().st_size,
            }
            try:
                vanilla_out = tmp / f"{fpath.stem}.vanilla.pdf"
                vanilla_sec = _vanilla(tool, fpath, vanilla_out)
                total_vanilla += vanilla_sec

                t0 = time.perf_counter()
                result = runner.run(fpath, tmp / f"{fpath.stem}.parallel.pdf")
                parallel_sec = time.perf_counter() - t0
                total_parallel += parallel_sec

                record.update({
                    "page_count": result.page_count,
                    "chunks": len(result.ranges),
                    "state": result.state.value,
                    "vanilla": {"seconds": round(vanilla_sec, 4), "bytes": vanilla_out.stat().st_size},
                    "parallel": {"seconds": round(parallel_sec, 4), "bytes": result.final_bytes,
                                 "stage_seconds": result.stage_seconds},
                })
                if result.error:
                    record["error"] = str(result.error)
            except Exception as e:
                record["error"] = str(e)
            fout.write(json.dumps(record, ensure_ascii=False) + "\n")

    # Summary
    print("\n--- Ghostscript Benchmark Report ---")
    print(f"Total Files Processed: {len(files)}")
    print("-" * 30)
    print(f"Single pass total:          {total_vanilla:.2f} s")
    print(f"Split/compress/merge total: {total_parallel:.2f} s")
    if total_parallel > 0:
        print(f"Speedup:                    {(total_vanilla / total_parallel):.2f}x")
    print("--------------------------------")
    print(f"JSONL written to: {OUTPUT_JSONL.resolve()}")


if __name__ == "__main__":
    main()
