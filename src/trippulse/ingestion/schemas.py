from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


# Lower-cased, underscore-stripped source column name -> RawTripRecord field.
COLUMN_ALIASES: dict[str, str] = {
    "id": "trip_id",
    "tripid": "trip_id",
    "vendorid": "vendor_id",
    "vendor": "vendor_id",
    "pickupdatetime": "pickup_datetime",
    "dropoffdatetime": "dropoff_datetime",
    "passengercount": "passenger_count",
    "pickuplatitude": "pickup_latitude",
    "pickuplat": "pickup_latitude",
    "pickuplongitude": "pickup_longitude",
    "pickuplon": "pickup_longitude",
    "dropofflatitude": "dropoff_latitude",
    "dropofflat": "dropoff_latitude",
    "dropofflongitude": "dropoff_longitude",
    "dropofflon": "dropoff_longitude",
    "storeandfwdflag": "store_and_fwd_flag",
    "tripduration": "trip_duration",
}


def canonical_column(name: str) -> str | None:
    return COLUMN_ALIASES.get(str(name).strip().lower().replace("_", ""))


@dataclass(frozen=True)
class RawTripRecord:
    """One input row exactly as read: every field is text (or missing)."""

    trip_id: Optional[str] = None
    vendor_id: Optional[str] = None
    pickup_datetime: Optional[str] = None
    dropoff_datetime: Optional[str] = None
    passenger_count: Optional[str] = None
    pickup_latitude: Optional[str] = None
    pickup_longitude: Optional[str] = None
    dropoff_latitude: Optional[str] = None
    dropoff_longitude: Optional[str] = None
    store_and_fwd_flag: Optional[str] = None
    trip_duration: Optional[str] = None

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "RawTripRecord":
        values: dict[str, Optional[str]] = {}
        for key, value in row.items():
            field_name = canonical_column(key)
            if field_name is None or field_name in values:
                continue
            values[field_name] = None if value is None else str(value)
        return cls(**values)

    @property
    def identifier(self) -> str:
        return (self.trip_id or "").strip()


class CleanTrip(BaseModel):
    """Validated, feature-enriched trip. Write-once."""

    model_config = ConfigDict(frozen=True)

    trip_id: str = Field(min_length=1)
    vendor_id: int
    pickup_datetime: datetime
    dropoff_datetime: datetime
    passenger_count: int = Field(ge=0)
    pickup_latitude: float
    pickup_longitude: float
    dropoff_latitude: float
    dropoff_longitude: float
    store_and_fwd_flag: str = Field(min_length=1, max_length=1)
    trip_duration_s: int

    trip_distance_km: float = Field(ge=0)
    trip_speed_kmh: float = Field(ge=0)
    hour_of_day: int = Field(ge=0, le=23)
    day_of_week: int = Field(ge=0, le=6)
    is_weekend: bool


# Persisted column order; matches the `trips` table.
TRIP_COLUMNS: tuple[str, ...] = tuple(CleanTrip.model_fields.keys())


@dataclass
class IngestionStats:
    rows_seen: int = 0
    valid_rows: int = 0
    duplicates: int = 0
    invalid: int = 0
    malformed: int = 0
    out_of_bounds: int = 0
    outliers: int = 0
    inserted: int = 0
    batches_flushed: int = 0
    failed_batches: int = 0
    failed_rows: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def snapshot(self) -> "IngestionStats":
        return replace(self)

    @property
    def is_partitioned(self) -> bool:
        return self.rows_seen == self.valid_rows + self.invalid + self.duplicates
