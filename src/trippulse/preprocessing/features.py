"""Derived trip features.

Distance and speed come from `trippulse.utils.geo`; hour/weekday come from the pickup timestamp
expressed in the configured local timezone. Weekdays are Sunday-based (0=Sunday .. 6=Saturday).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from trippulse.ingestion.errors import RejectReason
from trippulse.ingestion.schemas import CleanTrip
from trippulse.quality.validation import ParsedTrip, RecordValidator
from trippulse.utils.geo import distance_km, speed_kmh
from trippulse.utils.time import sunday_based_weekday, to_local


@dataclass(frozen=True)
class TripFeatures:
    trip_distance_km: float
    trip_speed_kmh: float
    hour_of_day: int
    day_of_week: int
    is_weekend: bool


@dataclass(frozen=True)
class Derivation:
    trip: Optional[CleanTrip] = None
    reason: Optional[RejectReason] = None
    features: Optional[TripFeatures] = None


def derive_features(parsed: ParsedTrip, validator: RecordValidator) -> TripFeatures:
    distance = distance_km(
        parsed.pickup_latitude,
        parsed.pickup_longitude,
        parsed.dropoff_latitude,
        parsed.dropoff_longitude,
    )
    speed = speed_kmh(distance, parsed.trip_duration_s)
    pickup_local = to_local(parsed.pickup_datetime, validator.tz)
    day_of_week = sunday_based_weekday(pickup_local)
    return TripFeatures(
        trip_distance_km=distance,
        trip_speed_kmh=speed,
        hour_of_day=pickup_local.hour,
        day_of_week=day_of_week,
        is_weekend=day_of_week in (0, 6),
    )


class FeatureDeriver:
    def __init__(self, validator: RecordValidator) -> None:
        self.validator = validator

    def derive(self, parsed: ParsedTrip) -> Derivation:
        features = derive_features(parsed, self.validator)
        reason = self.validator.validate_plausibility(
            parsed.trip_duration_s, features.trip_distance_km, features.trip_speed_kmh
        )
        if reason is not None:
            return Derivation(reason=reason, features=features)

        tz = self.validator.tz
        trip = CleanTrip(
            trip_id=parsed.trip_id,
            vendor_id=parsed.vendor_id,
            pickup_datetime=to_local(parsed.pickup_datetime, tz),
            dropoff_datetime=to_local(parsed.dropoff_datetime, tz),
            passenger_count=parsed.passenger_count,
            pickup_latitude=parsed.pickup_latitude,
            pickup_longitude=parsed.pickup_longitude,
            dropoff_latitude=parsed.dropoff_latitude,
            dropoff_longitude=parsed.dropoff_longitude,
            store_and_fwd_flag=parsed.store_and_fwd_flag,
            trip_duration_s=parsed.trip_duration_s,
            trip_distance_km=features.trip_distance_km,
            trip_speed_kmh=features.trip_speed_kmh,
            hour_of_day=features.hour_of_day,
            day_of_week=features.day_of_week,
            is_weekend=features.is_weekend,
        )
        return Derivation(trip=trip, features=features)
