from __future__ import annotations

import logging.config
import os
from pathlib import Path
from typing import Any, Optional

import yaml

from trippulse.settings import project_root

DEFAULT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _fallback_config(level: str) -> dict[str, Any]:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": {"format": DEFAULT_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stderr",
            }
        },
        "loggers": {"trippulse": {"level": level}},
        "root": {"level": "WARNING", "handlers": ["console"]},
    }


def _logging_config_path(explicit: str | Path | None) -> Path:
    path = Path(explicit or os.getenv("TRIPPULSE_LOGGING_CONFIG", "configs/logging.yaml"))
    return path if path.is_absolute() else project_root() / path


def configure_logging(logging_config_path: str | Path | None = None, level: Optional[str] = None) -> None:
    """Apply the YAML logging config, or a console-only default when the file is missing.

    `level` (or TRIPPULSE_LOG_LEVEL) overrides the level of the `trippulse` logger afterwards.
    """

    level = (level or os.getenv("TRIPPULSE_LOG_LEVEL") or "").upper() or None
    path = _logging_config_path(logging_config_path)

    if path.exists():
        config: dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        logging.config.dictConfig(config)
    else:
        logging.config.dictConfig(_fallback_config(level or "INFO"))

    if level:
        logging.getLogger("trippulse").setLevel(level)
