"""Streaming ETL over raw trip records.

Per record: dedup check -> structural/geofence/timestamp validation -> feature derivation with
plausibility check -> mark seen -> batch. Full batches are flushed to the sink before the next
record is pulled, so at most one batch is buffered and one is being written.

Rejections are counted, never raised. A failed batch write is logged and the run continues; a
failure while pulling from the source aborts the run with `SourceReadError` carrying the stats
accumulated so far.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from trippulse.ingestion.errors import (
    RejectReason,
    SinkError,
    SourceReadError,
    classify_ingest_error,
)
from trippulse.ingestion.schemas import CleanTrip, IngestionStats, RawTripRecord
from trippulse.preprocessing.features import FeatureDeriver
from trippulse.quality.dedup import Deduplicator
from trippulse.quality.validation import RecordValidator
from trippulse.settings import AppConfig, get_config
from trippulse.storage.backend import TripSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunOptions:
    batch_size: int
    # None means consume the whole source.
    target_valid_count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        if self.target_valid_count is not None and self.target_valid_count < 0:
            raise ValueError("target_valid_count must be >= 0")

    @property
    def mode(self) -> str:
        return "full" if self.target_valid_count is None else "sample"


class StreamingIngestor:
    """Drives validation, dedup, derivation and batched persistence over one source per run.

    The ingestor itself holds no per-run state: every `run` builds its own `Deduplicator` and
    `IngestionStats`, so sequential runs (or runs on separate ingestors) never share them.
    """

    def __init__(self, sink: TripSink, validator: Optional[RecordValidator] = None, config: Optional[AppConfig] = None) -> None:
        self.sink = sink
        self.validator = validator or RecordValidator(config=config)
        self.deriver = FeatureDeriver(self.validator)

    def run(self, source: Iterable[RawTripRecord], options: RunOptions) -> IngestionStats:
        stats = IngestionStats()
        seen = Deduplicator()
        batch: list[CleanTrip] = []
        records: Iterator[RawTripRecord] = iter(source)

        logger.info(
            "Ingestion started (mode=%s, batch_size=%s, target=%s).",
            options.mode,
            options.batch_size,
            options.target_valid_count,
        )

        while not self._target_reached(stats, options):
            try:
                raw = next(records)
            except StopIteration:
                break
            except Exception as exc:
                # Keep what was already validated, then abort.
                self._flush(batch, stats)
                info = classify_ingest_error(exc)
                logger.error("Source read failed after %s rows (%s): %s", stats.rows_seen, info.code, info.message)
                if isinstance(exc, SourceReadError):
                    exc.stats = stats.snapshot()
                    raise
                raise SourceReadError(f"source read failed: {exc}", stats=stats.snapshot()) from exc

            trip = self._process(raw, seen, stats)
            if trip is None:
                continue
            batch.append(trip)
            if len(batch) >= options.batch_size:
                self._flush(batch, stats)

        self._flush(batch, stats)
        logger.info("Ingestion finished (mode=%s): %s", options.mode, stats.as_dict())
        return stats

    @staticmethod
    def _target_reached(stats: IngestionStats, options: RunOptions) -> bool:
        return options.target_valid_count is not None and stats.valid_rows >= options.target_valid_count

    def _process(self, raw: RawTripRecord, seen: Deduplicator, stats: IngestionStats) -> Optional[CleanTrip]:
        stats.rows_seen += 1
        trip_id = raw.identifier

        if seen.seen(trip_id):
            self._reject(stats, RejectReason.DUPLICATE)
            return None

        check = self.validator.validate_structure(raw)
        if not check.accepted or check.parsed is None:
            self._reject(stats, check.reason or RejectReason.MALFORMED)
            return None

        derivation = self.deriver.derive(check.parsed)
        if derivation.trip is None:
            self._reject(stats, derivation.reason or RejectReason.OUTLIER)
            return None

        seen.mark_seen(trip_id)
        stats.valid_rows += 1
        return derivation.trip

    @staticmethod
    def _reject(stats: IngestionStats, reason: RejectReason) -> None:
        if reason is RejectReason.DUPLICATE:
            # Duplicates are not part of `invalid`.
            stats.duplicates += 1
            return
        stats.invalid += 1
        if reason is RejectReason.OUT_OF_BOUNDS:
            stats.out_of_bounds += 1
        elif reason is RejectReason.OUTLIER:
            stats.outliers += 1
        else:
            stats.malformed += 1

    def _flush(self, batch: list[CleanTrip], stats: IngestionStats) -> None:
        if not batch:
            return
        size = len(batch)
        try:
            self.sink.bulk_insert(list(batch))
        except SinkError as exc:
            info = classify_ingest_error(exc)
            stats.failed_batches += 1
            stats.failed_rows += size
            logger.error("Batch insert of %s trips failed (%s): %s", size, info.code, info.message)
        else:
            stats.inserted += size
            stats.batches_flushed += 1
            logger.info("Inserted %s trips (total inserted=%s).", size, stats.inserted)
        finally:
            batch.clear()


def run_full(
    source: Iterable[RawTripRecord],
    sink: TripSink,
    *,
    config: Optional[AppConfig] = None,
    batch_size: Optional[int] = None,
) -> IngestionStats:
    resolved = config or get_config()
    options = RunOptions(batch_size=int(batch_size or resolved.ingestion.batch_size))
    return StreamingIngestor(sink, config=resolved).run(source, options)


def run_sample(
    source: Iterable[RawTripRecord],
    sink: TripSink,
    target_valid_count: int,
    batch_size: int = 500,
    *,
    config: Optional[AppConfig] = None,
) -> IngestionStats:
    resolved = config or get_config()
    options = RunOptions(batch_size=int(batch_size), target_valid_count=int(target_valid_count))
    return StreamingIngestor(sink, config=resolved).run(source, options)


def clear_and_reload(
    source: Iterable[RawTripRecord],
    sink: TripSink,
    *,
    config: Optional[AppConfig] = None,
) -> IngestionStats:
    sink.delete_all()
    remaining = sink.count()
    logger.info("Store cleared; %s trips remain before reload.", remaining)
    return run_full(source, sink, config=config)


def format_stats_report(stats: IngestionStats, *, title: str = "Ingestion summary") -> str:
    lines = [
        f"=== {title} ===",
        f"  rows seen:        {stats.rows_seen:,}",
        f"  valid rows:       {stats.valid_rows:,}",
        f"  duplicates:       {stats.duplicates:,}",
        f"  invalid:          {stats.invalid:,}",
        f"    malformed:      {stats.malformed:,}",
        f"    out of bounds:  {stats.out_of_bounds:,}",
        f"    outliers:       {stats.outliers:,}",
        f"  inserted:         {stats.inserted:,}",
        f"  batches flushed:  {stats.batches_flushed:,}",
    ]
    if stats.failed_batches:
        lines.append(f"  failed batches:   {stats.failed_batches:,} ({stats.failed_rows:,} trips not inserted)")
    return "\n".join(lines)
