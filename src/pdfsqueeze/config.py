# pdfsqueeze/config.py
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Optional
import os
import tempfile
from multiprocessing import cpu_count

from .exceptions import ConfigError
from .ghostscript import PDF_SETTINGS_PRESETS, resolve_ghostscript_cmd


def usable_cpu_count() -> int:
    """CPUs this process may run on, honouring affinity masks where the OS exposes them."""
    if hasattr(os, "sched_getaffinity"):
        return max(1, len(os.sched_getaffinity(0)))
    return cpu_count()


@dataclass
class SqueezeConfig:
    """Configuration for a pdfsqueeze run."""
    ghostscript_cmd: Optional[str] = field(default_factory=resolve_ghostscript_cmd)

    # one chunk per usable core, no further throttling
    num_workers: int = field(default_factory=usable_cpu_count)

    temp_dir: Path = Path(tempfile.gettempdir()) / "pdfsqueeze_temp"
    keep_scratch: bool = False            # leave chunk files on disk after the run

    pdf_settings: str = "/ebook"
    compatibility_level: str = "1.4"
    tool_timeout: Optional[float] = 600.0  # seconds per Ghostscript invocation

    page_counter: str = "ghostscript"
    strict_page_count: bool = False       # unknown page count is fatal instead of a pass-through

    show_progress: bool = True
    error_log_path: Optional[Path] = None
    log_performance: bool = False
    performance_log_path: Path = Path("pdfsqueeze_performance_log.jsonl")

    log_queue: Optional[Any] = None

    def validate(self) -> "SqueezeConfig":
        if not self.ghostscript_cmd:
            raise ConfigError("Ghostscript not found. Install it or set GHOSTSCRIPT_CMD.")
        if int(self.num_workers) < 1:
            raise ConfigError(f"num_workers must be >= 1, got {self.num_workers}")
        if self.pdf_settings not in PDF_SETTINGS_PRESETS:
            raise ConfigError(
                f"Unknown pdf_settings {self.pdf_settings!r}, expected one of {list(PDF_SETTINGS_PRESETS)}"
            )
        if self.tool_timeout is not None and self.tool_timeout <= 0:
            raise ConfigError(f"tool_timeout must be positive, got {self.tool_timeout}")
        if self.page_counter not in ("ghostscript", "pymupdf"):
            raise ConfigError(f"Unknown page_counter {self.page_counter!r}")
        return self

    def to_dict(self):
        """Converts config to a plain dictionary (paths as strings, no queue)."""
        d = asdict(self)
        d.pop("log_queue", None)
        for key, value in d.items():
            if isinstance(value, Path):
                d[key] = str(value)
        return d

    @classmethod
    def from_dict(cls, config_dict: dict):
        d = dict(config_dict)

        # normalize path-like fields
        for key in ["temp_dir", "error_log_path", "performance_log_path"]:
            if key in d and isinstance(d[key], str):
                d[key] = Path(d[key])

        # allow explicit None to mean use default
        for key in ["ghostscript_cmd", "num_workers", "temp_dir", "pdf_settings",
                    "compatibility_level", "page_counter", "performance_log_path"]:
            if d.get(key) is None:
                d.pop(key, None)

        return cls(**d)
