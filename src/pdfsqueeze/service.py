# pdfsqueeze/service.py
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional

from .pipeline import SqueezeRunner

logger = logging.getLogger("pdfsqueeze")

DEFAULT_URL_EXPIRY_SECONDS = 3600


class CaptureKind(str, Enum):
    PDF = "pdf"
    PNG = "png"

    @property
    def extension(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value) -> "CaptureKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown capture type {value!r}, expected one of {[k.name for k in cls]}") from None


@dataclass
class CaptureRequest:
    """A request to render url and hand back a link to the stored result."""
    url: str
    capture_kind: CaptureKind

    @classmethod
    def from_event(cls, event: Mapping) -> "CaptureRequest":
        url = event.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ValueError("Event is missing a 'url'")
        if "capture_type" not in event:
            raise ValueError("Event is missing a 'capture_type'")
        return cls(url=url.strip(), capture_kind=CaptureKind.parse(event["capture_type"]))


class BaseCaptureBackend(ABC):
    @abstractmethod
    def capture(self, url: str, kind: CaptureKind) -> bytes:
        """Render url as a paginated PDF or a full-page PNG. Raises CaptureError."""
        pass


class BaseStorageBackend(ABC):
    @abstractmethod
    def store(self, data: bytes, key: str, expires_in: int = DEFAULT_URL_EXPIRY_SECONDS) -> str:
        """Persist data under key and return a URL valid for expires_in seconds. Raises StorageError."""
        pass


def make_object_key(kind: CaptureKind, prefix: str = "temp") -> str:
    return f"{prefix}/{uuid.uuid4()}.{kind.extension}"


def handle_capture_request(
    event: Mapping,
    capture: BaseCaptureBackend,
    storage: BaseStorageBackend,
    runner: Optional[SqueezeRunner] = None,
    expires_in: int = DEFAULT_URL_EXPIRY_SECONDS,
) -> Dict[str, str]:
    """
    Capture, shrink PDFs, store, and return {"url": ...}.
    Any error propagates to the caller and nothing is stored.
    """
    request = CaptureRequest.from_event(event)
    if request.capture_kind == CaptureKind.PDF and runner is None:
        raise ValueError("A SqueezeRunner is required for PDF captures")
    logger.info("Capturing %s as %s", request.url, request.capture_kind.value)

    data = capture.capture(request.url, request.capture_kind)

    if request.capture_kind == CaptureKind.PDF:
        original_size = len(data)
        data = runner.squeeze_bytes(data)
        logger.info("PDF capture squeezed from %d to %d bytes", original_size, len(data))

    key = make_object_key(request.capture_kind)
    url = storage.store(data, key, expires_in=expires_in)
    logger.info("Stored %s", key)
    return {"url": url}
