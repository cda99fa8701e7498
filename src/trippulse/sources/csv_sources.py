"""Lazy record sources.

Each source is a generator of `RawTripRecord`: finite, consumed once, never materialized in full.
Failures to open or read the underlying file surface as `SourceReadError`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping

import pandas as pd

from trippulse.ingestion.errors import SourceReadError
from trippulse.ingestion.schemas import RawTripRecord, canonical_column
from trippulse.quality.schema import REQUIRED_COLUMNS


def missing_columns(columns: Iterable[str], dataset: str = "trips") -> list[str]:
    present = {canonical_column(c) for c in columns}
    return [c for c in REQUIRED_COLUMNS[dataset] if c not in present]


def iter_mapping_records(rows: Iterable[Mapping[str, Any]]) -> Iterator[RawTripRecord]:
    for row in rows:
        yield RawTripRecord.from_mapping(row)


def _records_from_frame(df: pd.DataFrame) -> Iterator[RawTripRecord]:
    for row in df.to_dict(orient="records"):
        yield RawTripRecord.from_mapping(row)


def iter_csv_records(path: Path, *, chunk_rows: int = 10000) -> Iterator[RawTripRecord]:
    if not path.exists():
        raise SourceReadError(f"Input file not found: {path}") from FileNotFoundError(str(path))

    # Everything stays text; empty cells stay "" so the validator decides what is missing.
    try:
        reader = pd.read_csv(path, dtype=str, keep_default_na=False, chunksize=int(chunk_rows))
    except (OSError, ValueError) as exc:
        raise SourceReadError(f"Cannot open CSV {path}: {exc}") from exc

    with reader:
        checked_header = False
        while True:
            try:
                chunk = next(reader)
            except StopIteration:
                return
            except (OSError, ValueError) as exc:
                raise SourceReadError(f"Cannot read CSV {path}: {exc}") from exc

            if not checked_header:
                missing = missing_columns(chunk.columns)
                if missing:
                    raise SourceReadError(f"CSV {path} is missing required columns: {missing}")
                checked_header = True

            yield from _records_from_frame(chunk)


def iter_parquet_records(path: Path, *, batch_rows: int = 10000) -> Iterator[RawTripRecord]:
    if not path.exists():
        raise SourceReadError(f"Input file not found: {path}") from FileNotFoundError(str(path))
    try:
        import pyarrow.parquet as pq
    except ImportError as exc:
        raise RuntimeError("pyarrow is required to read Parquet files. Install the project dependencies.") from exc

    try:
        parquet_file = pq.ParquetFile(path)
    except (OSError, ValueError) as exc:
        raise SourceReadError(f"Cannot open Parquet {path}: {exc}") from exc

    missing = missing_columns(parquet_file.schema_arrow.names)
    if missing:
        raise SourceReadError(f"Parquet {path} is missing required columns: {missing}")

    batches = parquet_file.iter_batches(batch_size=int(batch_rows))
    while True:
        try:
            batch = next(batches)
        except StopIteration:
            return
        except (OSError, ValueError) as exc:
            raise SourceReadError(f"Cannot read Parquet {path}: {exc}") from exc
        df = batch.to_pandas().astype(object)
        df = df.where(pd.notnull(df), None)
        yield from _records_from_frame(df)


def open_source(path: Path, *, chunk_rows: int = 10000) -> Iterator[RawTripRecord]:
    """Pick a reader by file suffix (`.parquet`/`.pq` -> Parquet, everything else -> CSV)."""

    if path.suffix.lower() in {".parquet", ".pq"}:
        return iter_parquet_records(path, batch_rows=chunk_rows)
    return iter_csv_records(path, chunk_rows=chunk_rows)
