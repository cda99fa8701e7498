from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, Optional

from trippulse.ingestion.errors import SinkError, SourceReadError, classify_ingest_error
from trippulse.ingestion.ledger import safe_append_ledger_entry
from trippulse.ingestion.pipeline import clear_and_reload, format_stats_report, run_full, run_sample
from trippulse.ingestion.schemas import IngestionStats
from trippulse.quality.schema import SCHEMA_VERSIONS
from trippulse.settings import AppConfig
from trippulse.sources.csv_sources import open_source
from trippulse.storage.backend import TripSink

logger = logging.getLogger(__name__)

RunMode = Literal["full", "sample", "reload"]


@dataclass(frozen=True)
class RunOutcome:
    stats: IngestionStats
    exit_code: int
    error: Optional[str] = None


def _utc_now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def execute_run(
    mode: RunMode,
    input_path: Path,
    sink: TripSink,
    config: AppConfig,
    *,
    sample_size: Optional[int] = None,
    batch_size: Optional[int] = None,
    ledger_path: Optional[Path] = None,
) -> RunOutcome:
    """Run one ingestion from a file, print the summary, and record it in the ledger.

    A source read failure, or a failed store reset in reload mode, yields a non-zero exit code.
    """

    started = _utc_now()
    source = open_source(input_path, chunk_rows=config.ingestion.read_chunk_rows)
    error_code: Optional[str] = None
    error_text: Optional[str] = None

    try:
        if mode == "sample":
            stats = run_sample(
                source,
                sink,
                int(sample_size or config.ingestion.sample_size),
                int(batch_size or config.ingestion.sample_batch_size),
                config=config,
            )
        elif mode == "reload":
            stats = clear_and_reload(source, sink, config=config)
        else:
            stats = run_full(source, sink, config=config, batch_size=batch_size)
        exit_code = 0
    except SourceReadError as exc:
        stats = exc.stats or IngestionStats()
        info = classify_ingest_error(exc)
        error_code, error_text = info.code, info.message
        exit_code = 1
    except SinkError as exc:
        # Only the reload delete step lets a sink error escape the ingestor.
        logger.error("Store reset failed before reload: %s", exc)
        stats = IngestionStats()
        info = classify_ingest_error(exc)
        error_code, error_text = info.code, info.message
        exit_code = 1

    title = "Ingestion failed (partial results)" if exit_code else "Ingestion complete"
    print(format_stats_report(stats, title=title))
    if error_text:
        print(f"  error: {error_text}")

    safe_append_ledger_entry(
        ledger_path or config.ledger_path(),
        {
            "mode": mode,
            "source": str(input_path),
            "started_at_utc": started,
            "finished_at_utc": _utc_now(),
            "status": "failed" if exit_code else "ok",
            "error_code": error_code,
            "schema_version": SCHEMA_VERSIONS["trips"],
            "stats": stats.as_dict(),
        },
    )
    if stats.valid_rows != stats.inserted:
        logger.warning(
            "%s valid trips were not inserted (valid=%s, inserted=%s).",
            stats.valid_rows - stats.inserted,
            stats.valid_rows,
            stats.inserted,
        )
    return RunOutcome(stats=stats, exit_code=exit_code, error=error_text)
