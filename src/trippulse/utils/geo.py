"""Great-circle distance and derived speed.

Both functions are pure: no state, no I/O, and no exceptions for finite input.
"""

from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in kilometers between two (lat, lon) points given in degrees.

    Returns 0.0 for coincident points and NaN when any input is NaN.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    if math.isnan(a):
        return math.nan
    # Rounding can push `a` marginally outside [0, 1] for antipodal points.
    a = min(1.0, max(0.0, a))
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def speed_kmh(distance: float, duration_seconds: float) -> float:
    """Average speed in km/h; 0.0 when the duration is zero."""

    if duration_seconds == 0:
        return 0.0
    return distance / (duration_seconds / 3600)
