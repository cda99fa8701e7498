from __future__ import annotations

import _bootstrap  # noqa: F401

import argparse
import json
from pathlib import Path

from trippulse.ingestion.runner import execute_run
from trippulse.logging_config import configure_logging
from trippulse.settings import get_config
from trippulse.storage.backend import duckdb_store


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Clean, enrich and load raw taxi trips into DuckDB (sample mode by default)."
    )
    parser.add_argument("--full", action="store_true", help="Process the entire input file.")
    parser.add_argument(
        "--sample-size",
        type=int,
        default=None,
        help="Stop after this many valid trips in sample mode (default: config ingestion.sample_size).",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Trips per insert batch (default: config ingestion.batch_size / sample_batch_size).",
    )
    parser.add_argument("--input", default=None, help="Input CSV/Parquet (default: config.paths.input_csv).")
    parser.add_argument("--db", default=None, help="DuckDB file (default: config.storage.duckdb_path).")
    parser.add_argument("--json", dest="json_path", default=None, help="Also write the run stats as JSON.")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging()
    config = get_config()

    input_path = Path(args.input) if args.input else config.paths.input_csv
    store = duckdb_store(config, db_path=Path(args.db) if args.db else None)
    mode = "full" if args.full else "sample"

    print(f"Mode: {mode.upper()}")
    print(f"Input: {input_path}")
    print(f"Store: {store.db_path} (table {store.table})")

    outcome = execute_run(
        mode,
        input_path,
        store,
        config,
        sample_size=args.sample_size,
        batch_size=args.batch_size,
    )

    if args.json_path:
        out = Path(args.json_path)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(outcome.stats.as_dict(), indent=2) + "\n", encoding="utf-8")
        print(f"Wrote JSON: {out}")
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
