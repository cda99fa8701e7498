from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from trippulse.ingestion.schemas import IngestionStats


class RejectReason(str, Enum):
    MALFORMED = "malformed"
    OUT_OF_BOUNDS = "out_of_bounds"
    OUTLIER = "outlier"
    DUPLICATE = "duplicate"


class SinkError(RuntimeError):
    """Raised by a sink when a bulk write or delete cannot be committed."""


class SourceReadError(RuntimeError):
    """Raised when the record source cannot yield further rows; aborts the run."""

    def __init__(self, message: str, *, stats: Optional["IngestionStats"] = None) -> None:
        super().__init__(message)
        self.stats = stats


@dataclass(frozen=True)
class IngestErrorInfo:
    code: str
    kind: str
    message: str


def classify_ingest_error(exc: BaseException) -> IngestErrorInfo:
    """Classify storage/source failures into stable codes for logs and the run ledger."""

    # Import lazily so code paths that never touch storage don't require duckdb.
    try:
        import duckdb  # type: ignore
    except ImportError:  # pragma: no cover
        duckdb = None  # type: ignore

    cause = exc.__cause__ if isinstance(exc, (SinkError, SourceReadError)) and exc.__cause__ else exc
    text = str(exc)
    lower = text.lower()

    if duckdb is not None:
        if isinstance(cause, duckdb.ConstraintException):
            return IngestErrorInfo(code="constraint", kind="storage", message=text)
        if isinstance(cause, duckdb.CatalogException):
            return IngestErrorInfo(code="catalog", kind="storage", message=text)
        if isinstance(cause, duckdb.IOException):
            return IngestErrorInfo(code="io", kind="storage", message=text)
        if isinstance(cause, duckdb.Error):
            return IngestErrorInfo(code="storage_error", kind="storage", message=text)

    if isinstance(cause, FileNotFoundError):
        return IngestErrorInfo(code="missing_file", kind="source", message=text)
    if isinstance(cause, (UnicodeDecodeError, ValueError)) or "parser" in lower or "tokeniz" in lower:
        return IngestErrorInfo(code="parse", kind="source", message=text)
    if isinstance(cause, OSError):
        return IngestErrorInfo(code="io", kind="source", message=text)

    if isinstance(exc, SinkError):
        return IngestErrorInfo(code="unknown", kind="storage", message=text)
    return IngestErrorInfo(code="unknown", kind="unknown", message=text)
