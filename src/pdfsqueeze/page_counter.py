# pdfsqueeze/page_counter.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import fitz  # PyMuPDF

from .exceptions import PipelineError

logger = logging.getLogger("pdfsqueeze")


# --- Step 1, interface ---
class BasePageCounter(ABC):
    """
    Interface for anything that can count the pages of a PDF on disk.
    """

    @abstractmethod
    def count_pages(self, file_path: Path) -> int:
        """Returns the page count, or 0 when it cannot be determined."""
        raise NotImplementedError


# --- Step 2, concrete implementations ---
class GhostscriptPageCounter(BasePageCounter):
    """Asks the Ghostscript tool to print the page count."""

    def __init__(self, tool):
        self.tool = tool

    def count_pages(self, file_path: Path) -> int:
        try:
            out = self.tool.count_pages(file_path)
        except PipelineError as e:
            logger.warning("Page count query failed for %s, %s", Path(file_path).name, e)
            return 0

        lines = [ln.strip() for ln in (out or "").splitlines() if ln.strip()]
        if not lines:
            logger.warning("Page count query printed nothing for %s", Path(file_path).name)
            return 0
        try:
            count = int(lines[-1])
        except ValueError:
            logger.warning("Unparseable page count %r for %s", lines[-1], Path(file_path).name)
            return 0
        return max(0, count)


class PyMuPDFPageCounter(BasePageCounter):
    """Counts pages in-process with PyMuPDF."""

    def count_pages(self, file_path: Path) -> int:
        try:
            with fitz.open(file_path) as doc:
                return len(doc)
        except Exception as e:
            logger.warning("PyMuPDF failed to open %s, %s", Path(file_path).name, e)
            return 0


# --- Step 3, factory ---
def get_page_counter(engine_name: str = "ghostscript", tool: Optional[object] = None) -> BasePageCounter:
    """
    Create a page counter by name.
    """
    name = (engine_name or "").lower()
    if name == "ghostscript":
        if tool is None:
            raise ValueError("The ghostscript page counter needs a tool instance")
        return GhostscriptPageCounter(tool)
    if name == "pymupdf":
        return PyMuPDFPageCounter()
    raise ValueError(f"Unknown page counter, '{engine_name}'. Supported counters, ['ghostscript', 'pymupdf']")
