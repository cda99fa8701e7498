from __future__ import annotations

import _bootstrap  # noqa: F401

import argparse
from pathlib import Path

from trippulse.ingestion.runner import execute_run
from trippulse.logging_config import configure_logging
from trippulse.settings import get_config
from trippulse.storage.backend import duckdb_store


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete all stored trips, then reload the full input file.")
    parser.add_argument("--input", default=None, help="Input CSV/Parquet (default: config.paths.input_csv).")
    parser.add_argument("--db", default=None, help="DuckDB file (default: config.storage.duckdb_path).")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    configure_logging()
    config = get_config()

    input_path = Path(args.input) if args.input else config.paths.input_csv
    store = duckdb_store(config, db_path=Path(args.db) if args.db else None)

    print(f"Reloading {store.db_path} (table {store.table}) from {input_path}")
    print(f"Trips before reset: {store.count():,}")
    outcome = execute_run("reload", input_path, store, config)
    print(f"Trips after reload: {store.count():,}")
    return outcome.exit_code


if __name__ == "__main__":
    raise SystemExit(main())
