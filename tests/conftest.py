import threading
import time
from pathlib import Path

import pytest

from pdfsqueeze.config import SqueezeConfig
from pdfsqueeze.exceptions import CompressFailure, MergeFailure, SplitFailure


class FakeGhostscript:
    """
    In-process stand-in for GhostscriptTool.

    Chunk files hold a short marker so the merged output shows the order in
    which chunks were concatenated.
    """

    def __init__(self, page_count_output="10\n", fail_split=(), fail_compress=(),
                 fail_merge=False, compress_delays=None):
        self.page_count_output = page_count_output
        self.fail_split = set(fail_split)
        self.fail_compress = set(fail_compress)
        self.fail_merge = fail_merge
        self.compress_delays = compress_delays or {}
        self.calls = []
        self.merge_inputs = None
        self.compress_completion_order = []
        self.max_active = 0
        self._active = 0
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def calls_for(self, mode):
        return [c for c in self.calls if c[0] == mode]

    def count_pages(self, src):
        self._record("count", str(src))
        if isinstance(self.page_count_output, Exception):
            raise self.page_count_output
        return self.page_count_output

    def split(self, src, page_range, out):
        self._record("split", page_range.start, page_range.end)
        if (page_range.start, page_range.end) in self.fail_split:
            raise SplitFailure("Ghostscript exit code 1", page_range)
        out = Path(out)
        out.write_bytes(f"[pages {page_range.start}-{page_range.end} raw padding padding]".encode())
        return out

    def compress(self, src, out, page_range=None, pdf_settings="/ebook", compatibility_level="1.4"):
        self._record("compress", page_range.start, page_range.end, pdf_settings, compatibility_level)
        with self._lock:
            self._active += 1
            self.max_active = max(self.max_active, self._active)
        try:
            time.sleep(self.compress_delays.get((page_range.start, page_range.end), 0))
            if (page_range.start, page_range.end) in self.fail_compress:
                raise CompressFailure("Ghostscript exit code 1", page_range)
            out = Path(out)
            out.write_bytes(f"[{page_range.start}-{page_range.end}]".encode())
            with self._lock:
                self.compress_completion_order.append((page_range.start, page_range.end))
            return out
        finally:
            with self._lock:
                self._active -= 1

    def merge(self, inputs, out):
        self._record("merge", len(inputs))
        self.merge_inputs = [Path(p).name for p in inputs]
        if self.fail_merge:
            Path(out).write_bytes(b"partial")
            raise MergeFailure("Ghostscript exit code 1")
        Path(out).write_bytes(b"".join(Path(p).read_bytes() for p in inputs))
        return Path(out)


@pytest.fixture
def fake_tool():
    return FakeGhostscript()


@pytest.fixture
def config(tmp_path):
    return SqueezeConfig(
        ghostscript_cmd="gs",
        num_workers=4,
        temp_dir=tmp_path / "scratch",
        show_progress=False,
    )


@pytest.fixture
def source_pdf(tmp_path):
    p = tmp_path / "input.pdf"
    p.write_bytes(b"%PDF-1.4\n" + b"x" * 4096)
    return p
