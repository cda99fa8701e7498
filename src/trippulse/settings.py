from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field


def project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(root: Path, value: str | Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else (root / path)


class AppSection(BaseModel):
    name: str = "trippulse"
    timezone: str = "America/New_York"


class PathsSection(BaseModel):
    raw_dir: Path = Path("data/raw")
    processed_dir: Path = Path("data/processed")
    cache_dir: Path = Path("data/cache")
    input_csv: Path = Path("data/raw/train.csv")


class StorageSection(BaseModel):
    duckdb_path: Path = Path("data/processed/trips.duckdb")
    table: str = "trips"


class IngestionSection(BaseModel):
    batch_size: int = Field(default=1000, ge=1)
    sample_batch_size: int = Field(default=500, ge=1)
    sample_size: int = Field(default=10000, ge=1)
    read_chunk_rows: int = Field(default=10000, ge=1)
    ledger_filename: str = "ingest_ledger.jsonl"


class GeofenceSection(BaseModel):
    min_lat: float = 40.4
    max_lat: float = 41.0
    min_lon: float = -74.3
    max_lon: float = -73.7


class PlausibilitySection(BaseModel):
    min_duration_s: int = 60
    max_duration_s: int = 3600 * 5
    min_distance_km: float = 0.1
    max_distance_km: float = 100.0
    min_speed_kmh: float = 1.0
    max_speed_kmh: float = 100.0


class QualitySection(BaseModel):
    geofence: GeofenceSection = Field(default_factory=GeofenceSection)
    plausibility: PlausibilitySection = Field(default_factory=PlausibilitySection)


class AppConfig(BaseModel):
    app: AppSection = Field(default_factory=AppSection)
    paths: PathsSection = Field(default_factory=PathsSection)
    storage: StorageSection = Field(default_factory=StorageSection)
    ingestion: IngestionSection = Field(default_factory=IngestionSection)
    quality: QualitySection = Field(default_factory=QualitySection)

    def resolve_paths(self, root: Optional[Path] = None) -> "AppConfig":
        repo_root = project_root() if root is None else root
        updated_paths = self.paths.model_copy(
            update={
                "raw_dir": _resolve_path(repo_root, self.paths.raw_dir),
                "processed_dir": _resolve_path(repo_root, self.paths.processed_dir),
                "cache_dir": _resolve_path(repo_root, self.paths.cache_dir),
                "input_csv": _resolve_path(repo_root, self.paths.input_csv),
            }
        )
        updated_storage = self.storage.model_copy(
            update={"duckdb_path": _resolve_path(repo_root, self.storage.duckdb_path)}
        )
        return self.model_copy(update={"paths": updated_paths, "storage": updated_storage})

    def ledger_path(self) -> Path:
        return self.paths.cache_dir / self.ingestion.ledger_filename


def _maybe_load_dotenv() -> None:
    try:
        from dotenv import load_dotenv  # type: ignore
    except ImportError:
        return

    load_dotenv()


def load_config(config_path: str | Path | None = None) -> AppConfig:
    _maybe_load_dotenv()

    root = project_root()
    candidate = config_path or os.getenv("TRIPPULSE_CONFIG", "configs/config.yaml")
    path = _resolve_path(root, candidate)
    if not path.exists():
        path = root / "configs/config.example.yaml"

    data: dict[str, Any] = {}
    if path.exists():
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    return AppConfig.model_validate(data).resolve_paths(root)


_CONFIG: AppConfig | None = None


def get_config() -> AppConfig:
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG
