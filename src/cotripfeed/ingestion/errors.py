from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class IngestError(RuntimeError):
    """Base class for failures that abort a run before anything is submitted."""


class AuthError(IngestError):
    """Raised when no usable CoTrip credential is configured."""


class TransportError(IngestError):
    """Raised when an HTTP call fails or returns a non-success status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProtocolError(IngestError):
    """Raised when a response or a record does not have the expected shape."""


@dataclass(frozen=True)
class IngestErrorInfo:
    code: str
    kind: str
    message: str


def classify_ingest_error(exc: Exception) -> IngestErrorInfo:
    """Classify common ingestion failures into stable codes for the run ledger."""

    text = str(exc)
    lower = text.lower()

    if isinstance(exc, AuthError):
        return IngestErrorInfo(code="auth", kind="config", message=text)

    if isinstance(exc, ProtocolError):
        return IngestErrorInfo(code="protocol", kind="data", message=text)

    if isinstance(exc, TransportError):
        status = exc.status_code
        if status == 429:
            return IngestErrorInfo(code="rate_limited", kind="http", message=f"HTTP 429 rate limited: {text}")
        if status in {401, 403}:
            return IngestErrorInfo(code="auth", kind="http", message=f"HTTP {status} auth error: {text}")
        if status is not None:
            return IngestErrorInfo(code=f"http_{status}", kind="http", message=f"HTTP {status}: {text}")
        if "timed out" in lower or "timeout" in lower:
            return IngestErrorInfo(code="timeout", kind="network", message=text)
        if "name or service not known" in lower or "temporary failure in name resolution" in lower:
            return IngestErrorInfo(code="dns", kind="network", message=text)
        return IngestErrorInfo(code="connect_error", kind="network", message=text)

    return IngestErrorInfo(code="unknown", kind="unknown", message=text)
