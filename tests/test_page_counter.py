import fitz
import pytest

from pdfsqueeze.exceptions import PageCountUnavailable, ProcessLaunchFailure
from pdfsqueeze.page_counter import (
    GhostscriptPageCounter,
    PyMuPDFPageCounter,
    get_page_counter,
)

from conftest import FakeGhostscript


@pytest.mark.parametrize("output, expected", [
    ("10\n", 10),
    ("   7  \n", 7),
    ("GPL Ghostscript banner\n12\n", 12),
    ("", 0),
    ("abc\n", 0),
    ("-3\n", 0),
])
def test_ghostscript_counter_parses_stdout(tmp_path, output, expected):
    counter = GhostscriptPageCounter(FakeGhostscript(page_count_output=output))
    assert counter.count_pages(tmp_path / "doc.pdf") == expected


@pytest.mark.parametrize("error", [
    PageCountUnavailable("Ghostscript exit code 1"),
    ProcessLaunchFailure("cannot start 'gs'", stage="count"),
])
def test_ghostscript_counter_falls_back_to_zero(tmp_path, error):
    counter = GhostscriptPageCounter(FakeGhostscript(page_count_output=error))
    assert counter.count_pages(tmp_path / "doc.pdf") == 0


def test_pymupdf_counter(tmp_path):
    path = tmp_path / "three.pdf"
    doc = fitz.open()
    for _ in range(3):
        doc.new_page()
    doc.save(str(path))
    doc.close()

    assert PyMuPDFPageCounter().count_pages(path) == 3


def test_pymupdf_counter_on_garbage(tmp_path):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"this is not a pdf")
    assert PyMuPDFPageCounter().count_pages(path) == 0


def test_factory():
    tool = FakeGhostscript()
    assert isinstance(get_page_counter("ghostscript", tool), GhostscriptPageCounter)
    assert isinstance(get_page_counter("PyMuPDF"), PyMuPDFPageCounter)
    with pytest.raises(ValueError):
        get_page_counter("ghostscript")
    with pytest.raises(ValueError):
        get_page_counter("qpdf", tool)
