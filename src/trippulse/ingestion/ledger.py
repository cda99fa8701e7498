"""JSONL run ledger: one line per ingestion run, appended after the run finishes."""

from __future__ import annotations

import json
import logging
from collections import deque
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def safe_append_ledger_entry(path: Path, entry: dict[str, Any]) -> bool:
    """Append `entry` as one JSON line. Returns False (and logs) instead of raising."""

    try:
        line = json.dumps(entry, ensure_ascii=False, separators=(",", ":"), default=str)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            f.write(line + "\n")
    except (OSError, TypeError, ValueError) as exc:
        logger.warning("Could not append ingest ledger entry to %s: %s", path, exc)
        return False
    return True


def iter_ledger_entries(path: Path) -> Iterator[dict[str, Any]]:
    """Yield ledger entries oldest first, skipping blank or unparseable lines."""

    if not path.exists():
        return
    try:
        with path.open("r", encoding="utf-8", errors="ignore") as f:
            for line in f:
                text = line.strip()
                if not text:
                    continue
                try:
                    parsed = json.loads(text)
                except json.JSONDecodeError:
                    logger.debug("Skipping unparseable ledger line in %s", path)
                    continue
                if isinstance(parsed, dict):
                    yield parsed
    except OSError as exc:
        logger.warning("Could not read ingest ledger %s: %s", path, exc)


def recent_ledger_entries(path: Path, limit: int = 5) -> list[dict[str, Any]]:
    """Newest first."""
    if limit <= 0:
        return []
    tail = deque(iter_ledger_entries(path), maxlen=limit)
    return list(reversed(tail))


def read_latest_ledger_entry(path: Path) -> dict[str, Any] | None:
    entries = recent_ledger_entries(path, limit=1)
    return entries[0] if entries else None
