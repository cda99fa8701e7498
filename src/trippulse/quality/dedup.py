from __future__ import annotations


class Deduplicator:
    """Identifiers accepted so far in one ingestion run.

    Create one per run; the set only grows and is dropped with the run.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def seen(self, trip_id: str) -> bool:
        return trip_id in self._seen

    def mark_seen(self, trip_id: str) -> None:
        self._seen.add(trip_id)

    def __contains__(self, trip_id: object) -> bool:
        return trip_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)
