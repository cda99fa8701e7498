from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, Sequence

from trippulse.ingestion.schemas import CleanTrip
from trippulse.settings import AppConfig, get_config
from trippulse.storage.duckdb_backend import DuckdbTripStore


class TripSink(Protocol):
    """Bulk-write interface consumed by the ingestion pipeline.

    `bulk_insert` and `delete_all` raise `SinkError` when the store rejects the operation.
    """

    def bulk_insert(self, batch: Sequence[CleanTrip]) -> None: ...

    def delete_all(self) -> None: ...

    def count(self) -> int: ...


def duckdb_store(config: Optional[AppConfig] = None, db_path: Optional[Path] = None) -> DuckdbTripStore:
    resolved = config or get_config()
    return DuckdbTripStore(
        db_path=Path(db_path) if db_path else resolved.storage.duckdb_path,
        table=resolved.storage.table,
        timezone=resolved.app.timezone,
    )
