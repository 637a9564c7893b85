import subprocess
from pathlib import Path

import pytest

from pdfsqueeze import ghostscript
from pdfsqueeze.exceptions import (
    CompressFailure,
    MergeFailure,
    PageCountUnavailable,
    ProcessLaunchFailure,
    SplitFailure,
)
from pdfsqueeze.ghostscript import GhostscriptTool, translate_ghostscript_error
from pdfsqueeze.models import PageRange


class FakeRun:
    """Replaces subprocess.run, records argv and writes the requested output file."""

    def __init__(self, returncode=0, stdout="", stderr="", write_output=True):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.write_output = write_output
        self.argv = None
        self.kwargs = None

    def __call__(self, argv, **kwargs):
        self.argv = argv
        self.kwargs = kwargs
        if self.write_output and self.returncode == 0:
            for arg in argv:
                if arg.startswith("-sOutputFile="):
                    Path(arg.split("=", 1)[1]).write_bytes(b"%PDF")
        return subprocess.CompletedProcess(argv, self.returncode, self.stdout, self.stderr)


@pytest.fixture
def fake_run(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(ghostscript.subprocess, "run", fake)
    return fake


def test_split_arguments(fake_run, tmp_path):
    tool = GhostscriptTool("gs", timeout=30)
    out = tmp_path / "chunk_4-6.pdf"

    tool.split(tmp_path / "in.pdf", PageRange(4, 6, 1), out)

    assert fake_run.argv == [
        "gs", "-sDEVICE=pdfwrite", "-dNOPAUSE", "-dBATCH", "-dSAFER", "-dQUIET",
        "-dFirstPage=4", "-dLastPage=6", f"-sOutputFile={out}", str(tmp_path / "in.pdf"),
    ]
    assert fake_run.kwargs["timeout"] == 30


def test_compress_arguments(fake_run, tmp_path):
    tool = GhostscriptTool("gs")
    out = tmp_path / "compressed" / "chunk_1-3.pdf"
    out.parent.mkdir()

    tool.compress(tmp_path / "chunk_1-3.pdf", out, PageRange(1, 3), pdf_settings="/screen")

    assert fake_run.argv[1:4] == ["-sDEVICE=pdfwrite", "-dCompatibilityLevel=1.4", "-dPDFSETTINGS=/screen"]
    assert fake_run.argv[-2:] == [f"-sOutputFile={out}", str(tmp_path / "chunk_1-3.pdf")]


def test_compress_refuses_in_place(fake_run, tmp_path):
    src = tmp_path / "chunk_1-3.pdf"
    with pytest.raises(CompressFailure):
        GhostscriptTool("gs").compress(src, src, PageRange(1, 3))
    assert fake_run.argv is None


def test_merge_keeps_input_order(fake_run, tmp_path):
    inputs = [tmp_path / "chunk_1-3.pdf", tmp_path / "chunk_4-6.pdf", tmp_path / "chunk_10-10.pdf"]
    out = tmp_path / "out.pdf"

    GhostscriptTool("gs").merge(inputs, out)

    assert fake_run.argv[:6] == ["gs", "-dBATCH", "-dNOPAUSE", "-q", "-sDEVICE=pdfwrite", f"-sOutputFile={out}"]
    assert fake_run.argv[6:] == [str(p) for p in inputs]


def test_merge_without_inputs_fails(fake_run, tmp_path):
    with pytest.raises(MergeFailure):
        GhostscriptTool("gs").merge([], tmp_path / "out.pdf")


def test_count_pages_returns_stdout(monkeypatch, tmp_path):
    fake = FakeRun(stdout="42\n")
    monkeypatch.setattr(ghostscript.subprocess, "run", fake)

    assert GhostscriptTool("gs").count_pages(tmp_path / "a (1).pdf") == "42\n"
    assert "-dNODISPLAY" in fake.argv
    assert fake.argv[-1].endswith(r"a \(1\).pdf) (r) file runpdfbegin pdfpagecount = quit")


def test_nonzero_exit_is_tagged_with_range(monkeypatch, tmp_path):
    monkeypatch.setattr(ghostscript.subprocess, "run", FakeRun(returncode=1, stderr="Error: /syntaxerror"))
    rng = PageRange(7, 9, 2)

    with pytest.raises(SplitFailure) as excinfo:
        GhostscriptTool("gs").split(tmp_path / "in.pdf", rng, tmp_path / "chunk_7-9.pdf")

    assert excinfo.value.page_range == rng
    assert excinfo.value.detail == "PDF is damaged or corrupted"


def test_missing_output_file_is_a_failure(monkeypatch, tmp_path):
    monkeypatch.setattr(ghostscript.subprocess, "run", FakeRun(write_output=False))

    with pytest.raises(CompressFailure, match="output file not created"):
        GhostscriptTool("gs").compress(tmp_path / "a.pdf", tmp_path / "b.pdf", PageRange(1, 1))


def test_timeout_maps_to_stage_failure(monkeypatch, tmp_path):
    def slow(argv, **kwargs):
        raise subprocess.TimeoutExpired(argv, kwargs.get("timeout"))

    monkeypatch.setattr(ghostscript.subprocess, "run", slow)

    with pytest.raises(CompressFailure, match="timed out"):
        GhostscriptTool("gs", timeout=1).compress(tmp_path / "a.pdf", tmp_path / "b.pdf", PageRange(1, 2))


def test_count_failure_is_page_count_unavailable(monkeypatch, tmp_path):
    monkeypatch.setattr(ghostscript.subprocess, "run", FakeRun(returncode=1))
    with pytest.raises(PageCountUnavailable):
        GhostscriptTool("gs").count_pages(tmp_path / "a.pdf")


def test_missing_binary_is_launch_failure(tmp_path):
    tool = GhostscriptTool(str(tmp_path / "definitely-not-gs"))
    with pytest.raises(ProcessLaunchFailure) as excinfo:
        tool.merge([tmp_path / "a.pdf"], tmp_path / "out.pdf")
    assert excinfo.value.stage == "merge"


@pytest.mark.parametrize("stderr, expected", [
    ("Error: /invalidfileaccess", "password-protected"),
    ("Error: /typecheck in --run--", "corrupted internal data"),
    ("Error: /ioerror", "damaged"),
    ("", "exit code 3"),
])
def test_translate_ghostscript_error(stderr, expected):
    assert expected in translate_ghostscript_error(stderr, 3)


def test_resolve_prefers_env(monkeypatch, tmp_path):
    fake_gs = tmp_path / "gs-custom"
    fake_gs.write_text("")
    monkeypatch.setenv("GHOSTSCRIPT_CMD", str(fake_gs))
    assert ghostscript.resolve_ghostscript_cmd() == str(fake_gs)
