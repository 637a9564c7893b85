# pdfsqueeze/ghostscript.py
from __future__ import annotations

import logging
import os
import platform
import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence, Type, Union

from .exceptions import (
    CompressFailure,
    MergeFailure,
    PageCountUnavailable,
    PipelineError,
    ProcessLaunchFailure,
    SplitFailure,
)
from .models import PageRange

logger = logging.getLogger("pdfsqueeze")

PathLike = Union[str, Path]

PDF_SETTINGS_PRESETS = ("/screen", "/ebook", "/printer", "/prepress", "/default")


def resolve_ghostscript_cmd() -> Optional[str]:
    # 1) explicit env override
    cmd = os.getenv("GHOSTSCRIPT_CMD")
    if cmd and (Path(cmd).exists() or shutil.which(cmd)):
        return cmd

    # 2) look on PATH
    for name in ("gs", "gswin64c", "gswin32c"):
        found = shutil.which(name)
        if found:
            return found

    # 3) common fallbacks by OS
    system = platform.system()
    if system == "Windows":
        roots = [Path(r"C:\Program Files\gs"), Path(r"C:\Program Files (x86)\gs")]
        candidates = []
        for root in roots:
            if root.is_dir():
                candidates.extend(sorted(root.glob("gs*/bin/gswin64c.exe"), reverse=True))
    elif system == "Darwin":
        candidates = [Path("/opt/homebrew/bin/gs"), Path("/usr/local/bin/gs")]
    else:
        # /opt/gs is where Lambda-style layers put the binary
        candidates = [Path("/usr/bin/gs"), Path("/usr/local/bin/gs"), Path("/opt/gs")]

    for p in candidates:
        if p.exists():
            return str(p)
    return None


def translate_ghostscript_error(stderr: str, return_code: int) -> str:
    """
    Turn Ghostscript stderr into a short message.
    The full stderr is logged at debug level.
    """
    logger.debug("Ghostscript exited with %s, stderr:\n%s", return_code, stderr)
    stderr_lower = (stderr or "").lower()

    if "invalidfileaccess" in stderr_lower or "password" in stderr_lower:
        return "PDF is password-protected or locked"
    if "typecheck" in stderr_lower or "rangecheck" in stderr_lower:
        return "PDF has corrupted internal data"
    if any(x in stderr_lower for x in ("undefined", "ioerror", "syntaxerror", "eofread")):
        return "PDF is damaged or corrupted"
    return f"Ghostscript exit code {return_code}"


def _ps_string(path: PathLike) -> str:
    # PostScript string literal, forward slashes work on every platform
    s = Path(path).as_posix()
    return s.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


class GhostscriptTool:
    """
    Thin wrapper around the Ghostscript binary.

    Each method is one subprocess invocation. Failures are raised as the
    tagged pipeline errors, never as a bare CalledProcessError.
    """

    def __init__(self, cmd: str, timeout: Optional[float] = None):
        if not cmd:
            raise ValueError("A Ghostscript command is required")
        self.cmd = cmd
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"GhostscriptTool(cmd={self.cmd!r}, timeout={self.timeout!r})"

    def _run(
        self,
        args: Sequence[str],
        *,
        failure_cls: Type[PipelineError],
        page_range: Optional[PageRange] = None,
    ) -> subprocess.CompletedProcess:
        argv: List[str] = [self.cmd, *args]
        logger.debug("Running %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            raise failure_cls(f"timed out after {self.timeout}s", page_range)
        except OSError as e:
            raise ProcessLaunchFailure(
                f"cannot start {self.cmd!r}, {e}", page_range, stage=failure_cls.stage
            ) from e

        if proc.returncode != 0:
            raise failure_cls(translate_ghostscript_error(proc.stderr, proc.returncode), page_range)
        return proc

    @staticmethod
    def _require_output(out: Path, failure_cls: Type[PipelineError], page_range=None) -> Path:
        if not out.exists():
            raise failure_cls(f"output file not created, {out.name}", page_range)
        return out

    def count_pages(self, src: PathLike) -> str:
        """Runs the page count query and returns raw stdout."""
        proc = self._run(
            [
                "-q",
                "-dNODISPLAY",
                "-dNOSAFER",
                "-c",
                f"({_ps_string(src)}) (r) file runpdfbegin pdfpagecount = quit",
            ],
            failure_cls=PageCountUnavailable,
        )
        return proc.stdout or ""

    def split(self, src: PathLike, page_range: PageRange, out: PathLike) -> Path:
        out = Path(out)
        self._run(
            [
                "-sDEVICE=pdfwrite",
                "-dNOPAUSE",
                "-dBATCH",
                "-dSAFER",
                "-dQUIET",
                f"-dFirstPage={page_range.start}",
                f"-dLastPage={page_range.end}",
                f"-sOutputFile={out}",
                str(src),
            ],
            failure_cls=SplitFailure,
            page_range=page_range,
        )
        return self._require_output(out, SplitFailure, page_range)

    def compress(
        self,
        src: PathLike,
        out: PathLike,
        page_range: Optional[PageRange] = None,
        pdf_settings: str = "/ebook",
        compatibility_level: str = "1.4",
    ) -> Path:
        out = Path(out)
        if Path(src).resolve() == out.resolve():
            raise CompressFailure("input and output must be different files", page_range)
        self._run(
            [
                "-sDEVICE=pdfwrite",
                f"-dCompatibilityLevel={compatibility_level}",
                f"-dPDFSETTINGS={pdf_settings}",
                "-dNOPAUSE",
                "-dQUIET",
                "-dBATCH",
                f"-sOutputFile={out}",
                str(src),
            ],
            failure_cls=CompressFailure,
            page_range=page_range,
        )
        return self._require_output(out, CompressFailure, page_range)

    def merge(self, inputs: Sequence[PathLike], out: PathLike) -> Path:
        out = Path(out)
        if not inputs:
            raise MergeFailure("nothing to merge")
        self._run(
            [
                "-dBATCH",
                "-dNOPAUSE",
                "-q",
                "-sDEVICE=pdfwrite",
                f"-sOutputFile={out}",
                *[str(p) for p in inputs],
            ],
            failure_cls=MergeFailure,
        )
        return self._require_output(out, MergeFailure)
