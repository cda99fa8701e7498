from __future__ import annotations

import math

import pytest

from trippulse.utils.geo import distance_km, speed_kmh


def test_distance_is_symmetric_and_zero_for_same_point() -> None:
    a = (40.7128, -74.0060)
    b = (40.7306, -73.9352)
    assert distance_km(*a, *b) == distance_km(*b, *a)
    assert distance_km(*a, *a) == 0.0


def test_one_degree_of_latitude_near_equator() -> None:
    expected = 2 * math.pi * 6371.0 / 360  # ~111.19 km
    assert distance_km(0.0, 10.0, 1.0, 10.0) == pytest.approx(expected, rel=0.005)


def test_manhattan_reference_trip() -> None:
    d = distance_km(40.7128, -74.0060, 40.7306, -73.9352)
    assert d == pytest.approx(6.286, abs=0.01)


def test_distance_never_negative_and_handles_antipodes() -> None:
    assert distance_km(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * 6371.0)
    assert distance_km(-89.9, 12.0, 89.9, -168.0) >= 0.0


def test_distance_nan_in_nan_out() -> None:
    assert math.isnan(distance_km(math.nan, 0.0, 1.0, 1.0))


def test_speed_zero_duration_is_zero() -> None:
    assert speed_kmh(12.5, 0) == 0.0
    assert speed_kmh(0.0, 0) == 0.0


def test_speed_kmh_basic() -> None:
    assert speed_kmh(10.0, 1800) == pytest.approx(20.0)
    assert speed_kmh(6.286267, 600) == pytest.approx(37.7176, abs=1e-3)
