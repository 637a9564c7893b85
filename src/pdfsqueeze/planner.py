# pdfsqueeze/planner.py
from __future__ import annotations

import math
import re
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from .models import ChunkArtifact, PageRange

_CHUNK_NAME_RE = re.compile(r"chunk_(\d+)-(\d+)")


def compute_chunk_size(page_count: int, parallelism: int) -> int:
    """Pages per chunk so that the number of chunks is close to the parallelism."""
    if parallelism < 1:
        raise ValueError(f"parallelism must be >= 1, got {parallelism}")
    if page_count <= 0:
        return 1
    return max(1, math.ceil(page_count / parallelism))


def plan_chunks(page_count: int, chunk_size: int) -> List[PageRange]:
    """
    Partition [1, page_count] into contiguous ranges of at most chunk_size pages.

    The last range may be shorter. A page count of 0 gives an empty plan.
    """
    if page_count < 0:
        raise ValueError(f"page_count must be >= 0, got {page_count}")
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")

    ranges: List[PageRange] = []
    for ordinal, start in enumerate(range(1, page_count + 1, chunk_size)):
        end = min(start + chunk_size - 1, page_count)
        ranges.append(PageRange(start=start, end=end, ordinal=ordinal))
    return ranges


def parse_chunk_name(name: Union[str, Path]) -> Tuple[int, int]:
    """Recover (start, end) from a chunk filename such as chunk_10-12.pdf."""
    m = _CHUNK_NAME_RE.search(Path(name).name)
    if not m:
        raise ValueError(f"Not a chunk filename, {name!r}")
    return int(m.group(1)), int(m.group(2))


def sort_artifacts(artifacts: Iterable[ChunkArtifact]) -> List[ChunkArtifact]:
    """Order artifacts by the numeric page range encoded in their filenames."""
    return sorted(artifacts, key=lambda a: parse_chunk_name(a.path))
