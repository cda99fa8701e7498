"""Per-record validation for raw trip rows.

Checks run cheapest-first and stop at the first failure:

1. structure  (identifier, numeric fields in range, flag) -> malformed
2. geofence   (pickup and dropoff inside the bounding box) -> out_of_bounds
3. timestamps (pickup and dropoff parse)                   -> malformed
4. plausibility on derived values (duration/distance/speed) -> outlier

Steps 1-3 form `validate_structure`; step 4 needs the derived distance and speed, so it is
exposed separately as `validate_plausibility` and called by the feature deriver.

Bad data never raises here: every failure is a `RejectReason`.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from trippulse.ingestion.errors import RejectReason
from trippulse.ingestion.schemas import RawTripRecord
from trippulse.settings import AppConfig, GeofenceSection, PlausibilitySection, get_config
from trippulse.utils.time import parse_datetime

# Integer columns are stored as 32-bit INTEGER.
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


@dataclass(frozen=True)
class ParsedTrip:
    """Typed view of a raw row that passed the structural, geofence, and timestamp checks."""

    trip_id: str
    vendor_id: int
    pickup_datetime: datetime
    dropoff_datetime: datetime
    passenger_count: int
    pickup_latitude: float
    pickup_longitude: float
    dropoff_latitude: float
    dropoff_longitude: float
    store_and_fwd_flag: str
    trip_duration_s: int


@dataclass(frozen=True)
class StructureCheck:
    reason: Optional[RejectReason] = None
    parsed: Optional[ParsedTrip] = None

    @property
    def accepted(self) -> bool:
        return self.reason is None and self.parsed is not None


def _parse_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    text = value.strip()
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _parse_int(value: Optional[str]) -> Optional[int]:
    number = _parse_float(value)
    if number is None or not number.is_integer():
        return None
    result = int(number)
    if not INT32_MIN <= result <= INT32_MAX:
        return None
    return result


def _parse_timestamp(value: Optional[str], tz: ZoneInfo) -> Optional[datetime]:
    if value is None or not value.strip():
        return None
    try:
        return parse_datetime(value, default_tz=tz)
    except ValueError:
        return None


class RecordValidator:
    def __init__(
        self,
        geofence: Optional[GeofenceSection] = None,
        plausibility: Optional[PlausibilitySection] = None,
        timezone: Optional[str] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        resolved = config or get_config()
        self.geofence = geofence or resolved.quality.geofence
        self.plausibility = plausibility or resolved.quality.plausibility
        self.tz = ZoneInfo(timezone or resolved.app.timezone)

    def in_geofence(self, lat: float, lon: float) -> bool:
        box = self.geofence
        return box.min_lat <= lat <= box.max_lat and box.min_lon <= lon <= box.max_lon

    def validate_structure(self, raw: RawTripRecord) -> StructureCheck:
        trip_id = raw.identifier
        vendor_id = _parse_int(raw.vendor_id)
        passenger_count = _parse_int(raw.passenger_count)
        pickup_lat = _parse_float(raw.pickup_latitude)
        pickup_lon = _parse_float(raw.pickup_longitude)
        dropoff_lat = _parse_float(raw.dropoff_latitude)
        dropoff_lon = _parse_float(raw.dropoff_longitude)
        duration = _parse_int(raw.trip_duration)
        flag = (raw.store_and_fwd_flag or "").strip()

        if (
            not trip_id
            or vendor_id is None
            or passenger_count is None
            or passenger_count < 0
            or pickup_lat is None
            or pickup_lon is None
            or dropoff_lat is None
            or dropoff_lon is None
            or duration is None
            or len(flag) != 1
        ):
            return StructureCheck(reason=RejectReason.MALFORMED)

        if not (self.in_geofence(pickup_lat, pickup_lon) and self.in_geofence(dropoff_lat, dropoff_lon)):
            return StructureCheck(reason=RejectReason.OUT_OF_BOUNDS)

        pickup_dt = _parse_timestamp(raw.pickup_datetime, self.tz)
        dropoff_dt = _parse_timestamp(raw.dropoff_datetime, self.tz)
        if pickup_dt is None or dropoff_dt is None:
            return StructureCheck(reason=RejectReason.MALFORMED)

        return StructureCheck(
            parsed=ParsedTrip(
                trip_id=trip_id,
                vendor_id=vendor_id,
                pickup_datetime=pickup_dt,
                dropoff_datetime=dropoff_dt,
                passenger_count=passenger_count,
                pickup_latitude=pickup_lat,
                pickup_longitude=pickup_lon,
                dropoff_latitude=dropoff_lat,
                dropoff_longitude=dropoff_lon,
                store_and_fwd_flag=flag,
                trip_duration_s=duration,
            )
        )

    def validate_plausibility(
        self, duration_s: float, distance_km: float, speed_kmh: float
    ) -> Optional[RejectReason]:
        limits = self.plausibility
        # NaN fails every comparison below, so it is rejected as an outlier too.
        if not (limits.min_duration_s <= duration_s <= limits.max_duration_s):
            return RejectReason.OUTLIER
        if not (limits.min_distance_km <= distance_km <= limits.max_distance_km):
            return RejectReason.OUTLIER
        if not (limits.min_speed_kmh <= speed_kmh <= limits.max_speed_kmh):
            return RejectReason.OUTLIER
        return None
