"""Tests for angle normalization and great-circle bearing."""

from __future__ import annotations

import math

import numpy as np
import pytest

from qibla.geo.bearing_math import (
    KAABA,
    Coordinate,
    TurnDirection,
    bearing,
    cardinal_direction,
    direction_hint,
    normalize_angle,
    qibla_bearing,
    shortest_signed_delta,
)


def reference_bearing(observer: Coordinate, target: Coordinate) -> float:
    """Independent bearing via unit vectors on the sphere."""
    def unit(c: Coordinate) -> np.ndarray:
        lat, lon = np.radians(c.latitude_deg), np.radians(c.longitude_deg)
        return np.array([np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)])

    p, q = unit(observer), unit(target)
    z = np.array([0.0, 0.0, 1.0])
    east = np.cross(z, p)
    east /= np.linalg.norm(east)
    north = np.cross(p, east)
    return math.degrees(math.atan2(np.dot(q, east), np.dot(q, north))) % 360.0


@pytest.mark.parametrize("angle", [0.0, 359.999, 360.0, 720.5, -0.5, -720.0, -1e-14, 1e12, -1e12])
def test_normalize_angle_range_and_idempotence(angle: float) -> None:
    once = normalize_angle(angle)

    assert 0.0 <= once < 360.0
    assert normalize_angle(once) == once


def test_normalize_angle_values() -> None:
    assert normalize_angle(-90.0) == pytest.approx(270.0)
    assert normalize_angle(450.0) == pytest.approx(90.0)


@pytest.mark.parametrize(
    "coordinate",
    [KAABA, Coordinate(0.0, 0.0), Coordinate(90.0, 0.0), Coordinate(-90.0, 180.0), Coordinate(45.0, -180.0)],
)
def test_bearing_to_itself_is_finite(coordinate: Coordinate) -> None:
    result = bearing(coordinate, coordinate)

    assert math.isfinite(result)
    assert 0.0 <= result < 360.0


def test_bearing_known_value_near_mecca() -> None:
    observer = Coordinate(21.0, 39.0)

    result = qibla_bearing(observer)

    assert result == pytest.approx(61.1, abs=0.5)
    assert result == pytest.approx(reference_bearing(observer, KAABA), abs=0.5)


@pytest.mark.parametrize(
    "observer, expected",
    [
        (Coordinate(40.7128, -74.0060), 58.5),   # New York
        (Coordinate(51.5074, -0.1278), 119.0),   # London
    ],
)
def test_qibla_bearing_for_cities(observer: Coordinate, expected: float) -> None:
    assert qibla_bearing(observer) == pytest.approx(expected, abs=0.5)


def test_bearing_matches_reference_implementation() -> None:
    observers = [Coordinate(-33.87, 151.21), Coordinate(35.68, 139.69), Coordinate(-23.55, -46.63)]
    for observer in observers:
        assert bearing(observer, KAABA) == pytest.approx(reference_bearing(observer, KAABA), abs=1e-6)


def test_shortest_signed_delta_crosses_zero() -> None:
    assert shortest_signed_delta(10.0, 350.0) == pytest.approx(-20.0)
    assert shortest_signed_delta(350.0, 10.0) == pytest.approx(20.0)


def test_shortest_signed_delta_half_turn_is_positive() -> None:
    assert shortest_signed_delta(0.0, 180.0) == 180.0
    assert shortest_signed_delta(180.0, 0.0) == 180.0


def test_direction_hint() -> None:
    assert direction_hint(12.0) is TurnDirection.RIGHT
    assert direction_hint(-12.0) is TurnDirection.LEFT
    assert direction_hint(0.0) is TurnDirection.ALIGNED
    assert direction_hint(-3.0, tolerance_deg=5.0) is TurnDirection.ALIGNED


def test_cardinal_direction() -> None:
    assert cardinal_direction(0.0) == "N"
    assert cardinal_direction(350.0) == "N"
    assert cardinal_direction(61.1) == "NE"
    assert cardinal_direction(119.0) == "SE"
    assert cardinal_direction(270.0) == "W"


@pytest.mark.parametrize("lat, lon", [(91.0, 0.0), (0.0, 181.0), (float("nan"), 0.0)])
def test_coordinate_rejects_out_of_range(lat: float, lon: float) -> None:
    with pytest.raises(ValueError):
        Coordinate(lat, lon)
