from __future__ import annotations

# Schema versions for persisted datasets. Bump when column names/semantics change.
SCHEMA_VERSIONS: dict[str, int] = {
    "trips": 1,
}

# Required input columns (canonical names, after alias normalization) for raw sources.
REQUIRED_COLUMNS: dict[str, tuple[str, ...]] = {
    "trips": (
        "trip_id",
        "vendor_id",
        "pickup_datetime",
        "dropoff_datetime",
        "passenger_count",
        "pickup_latitude",
        "pickup_longitude",
        "dropoff_latitude",
        "dropoff_longitude",
        "store_and_fwd_flag",
        "trip_duration",
    ),
}
