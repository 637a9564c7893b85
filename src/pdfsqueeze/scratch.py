# pdfsqueeze/scratch.py
from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import Union

logger = logging.getLogger("pdfsqueeze")

SPLIT_DIRNAME = "temp_chunks"
COMPRESSED_DIRNAME = "compressed_chunks"


def ensure_dir(path: Union[str, Path]) -> Path:
    """Create a directory if absent. Safe to call concurrently for the same path."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p


class ScratchSpace:
    """
    Run-scoped scratch area with one directory for split chunks and one for
    compressed chunks. Everything under root is deleted on exit unless keep
    is set.
    """

    def __init__(self, base_dir: Union[str, Path], keep: bool = False):
        self.base_dir = Path(base_dir)
        self.keep = keep
        self.root = self.base_dir / f"run_{uuid.uuid4().hex}"
        self.split_dir = self.root / SPLIT_DIRNAME
        self.compressed_dir = self.root / COMPRESSED_DIRNAME

    def create(self) -> "ScratchSpace":
        ensure_dir(self.split_dir)
        ensure_dir(self.compressed_dir)
        logger.debug("Scratch area ready at %s", self.root)
        return self

    def cleanup(self) -> None:
        if self.keep:
            logger.info("Keeping scratch area %s", self.root)
            return
        # in-flight siblings of a failed stage may still be writing here
        shutil.rmtree(self.root, ignore_errors=True)
        if self.root.exists():
            logger.warning("Scratch area %s was not fully removed", self.root)

    def __enter__(self) -> "ScratchSpace":
        return self.create()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
