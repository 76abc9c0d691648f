"""
Angle utilities and great-circle bearing computation.

All functions are pure and total over finite inputs: angles are normalized to
[0, 360) before being stored or compared, and the forward-azimuth formula is
evaluated with math.atan2 so coincident points yield a stable value instead
of raising.

Usage:
    from qibla.geo.bearing_math import Coordinate, qibla_bearing

    qibla = qibla_bearing(Coordinate(40.4168, -3.7038))   # Madrid
    delta = shortest_signed_delta(heading, qibla)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from qibla.utils.config import Config


@dataclass(frozen=True)
class Coordinate:
    """Observer or target position in decimal degrees."""

    latitude_deg: float
    longitude_deg: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude_deg) and math.isfinite(self.longitude_deg)):
            raise ValueError(f"Coordinate must be finite: {self}")
        if not -90.0 <= self.latitude_deg <= 90.0:
            raise ValueError(f"latitude_deg out of range [-90, 90]: {self.latitude_deg}")
        if not -180.0 <= self.longitude_deg <= 180.0:
            raise ValueError(f"longitude_deg out of range [-180, 180]: {self.longitude_deg}")


KAABA = Coordinate(Config.KAABA_LATITUDE, Config.KAABA_LONGITUDE)


class TurnDirection(str, Enum):
    """Rotation hint shown to the user."""

    LEFT = "turn left"
    RIGHT = "turn right"
    ALIGNED = "aligned"


def degrees_to_radians(degrees: float) -> float:
    return degrees * (math.pi / 180.0)


def radians_to_degrees(radians: float) -> float:
    return radians * (180.0 / math.pi)


def normalize_angle(angle_deg: float) -> float:
    """Wrap any finite angle into [0, 360)."""
    # Python's modulo already takes the sign of the divisor
    normalized = angle_deg % 360.0
    # -1e-14 % 360 rounds up to 360.0
    if normalized >= 360.0:
        return 0.0
    return normalized


def bearing(observer: Coordinate, target: Coordinate) -> float:
    """
    Initial great-circle bearing (forward azimuth) from observer to target.

    Args:
        observer: Starting position
        target: Destination position

    Returns:
        Clockwise angle from true north in degrees, range [0, 360)
    """
    lat1 = degrees_to_radians(observer.latitude_deg)
    lat2 = degrees_to_radians(target.latitude_deg)
    d_lon = degrees_to_radians(target.longitude_deg - observer.longitude_deg)

    y = math.sin(d_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)

    return normalize_angle(radians_to_degrees(math.atan2(y, x)))


def qibla_bearing(observer: Coordinate) -> float:
    """Bearing from observer to the Kaaba."""
    return bearing(observer, KAABA)


def shortest_signed_delta(from_deg: float, to_deg: float) -> float:
    """
    Shortest rotation from one angle to another.

    Positive means `to_deg` lies clockwise of `from_deg`. Range (-180, 180].
    """
    delta = ((to_deg - from_deg + 540.0) % 360.0) - 180.0
    if delta <= -180.0:
        return 180.0
    return delta


def direction_hint(signed_delta: float, tolerance_deg: float = 0.0) -> TurnDirection:
    """Map a signed correction to the turn the user should make."""
    if abs(signed_delta) <= tolerance_deg:
        return TurnDirection.ALIGNED
    if signed_delta > 0:
        return TurnDirection.RIGHT
    return TurnDirection.LEFT


def cardinal_direction(bearing_deg: float) -> str:
    """Convert a bearing to an 8-point compass label."""
    directions = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

    # Each direction covers 45° (360° / 8)
    index = int((normalize_angle(bearing_deg) + 22.5) // 45) % 8
    return directions[index]
