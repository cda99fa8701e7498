from __future__ import annotations

import _bootstrap  # noqa: F401

import argparse
import json
from pathlib import Path

from trippulse.ingestion.ledger import recent_ledger_entries
from trippulse.settings import get_config
from trippulse.storage.backend import duckdb_store


def main() -> None:
    parser = argparse.ArgumentParser(description="Show the trips table layout, row count and recent ingestion runs.")
    parser.add_argument("--db", default=None, help="DuckDB file (default: config.storage.duckdb_path).")
    parser.add_argument("--runs", type=int, default=1, help="How many recent ledger entries to show.")
    args = parser.parse_args()

    config = get_config()
    store = duckdb_store(config, db_path=Path(args.db) if args.db else None)

    print(f"[{store.table}] {store.db_path}")
    columns = store.describe_table()
    for record in columns.to_dict(orient="records"):
        print(f"  {record['column_name']}: {record['data_type']}")
    print(f"  rows={store.count():,}")

    runs = recent_ledger_entries(config.ledger_path(), limit=args.runs)
    if not runs:
        print("No ingestion runs recorded.")
        return
    print(f"Last {len(runs)} ingestion run(s), newest first:")
    for entry in runs:
        print(json.dumps(entry, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
