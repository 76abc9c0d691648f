"""
Magnetic declination estimate for magnetic -> true heading correction.

This is NOT a World Magnetic Model. A precise provider (any callable taking
latitude and longitude and returning degrees) can be injected; when it is
absent, raises, or returns something non-finite, a bounded heuristic based on
longitude and latitude is used instead. Declination must never block heading
delivery, so estimate() always returns a finite number.
"""

from __future__ import annotations

import logging
import math
from typing import Callable, Optional

from qibla.geo.bearing_math import Coordinate
from qibla.utils.config import Config
from qibla.utils.config_sections import clamp

log = logging.getLogger(__name__)

DeclinationProvider = Callable[[float, float], float]


def heuristic_declination(latitude_deg: float, longitude_deg: float) -> float:
    """Rough offline estimate: sin(lon)*10 + (lat/90)*5, clamped to ±25°."""
    bound = Config.DECLINATION_BOUND_DEG
    decl = (
        math.sin(math.radians(longitude_deg)) * Config.DECLINATION_LON_GAIN
        + (latitude_deg / 90.0) * Config.DECLINATION_LAT_GAIN
    )
    return clamp(decl, -bound, bound)


class DeclinationEstimator:
    """Declination in degrees with a precise provider and heuristic fallback."""

    def __init__(
        self,
        provider: Optional[DeclinationProvider] = None,
        *,
        bound_deg: float = Config.DECLINATION_BOUND_DEG,
    ) -> None:
        self.provider = provider
        self.bound_deg = bound_deg
        self.provider_failures = 0

    def estimate(self, observer: Coordinate) -> float:
        precise = self._from_provider(observer)
        if precise is not None:
            return clamp(precise, -self.bound_deg, self.bound_deg)
        return heuristic_declination(observer.latitude_deg, observer.longitude_deg)

    def _from_provider(self, observer: Coordinate) -> Optional[float]:
        if self.provider is None:
            return None
        try:
            value = float(self.provider(observer.latitude_deg, observer.longitude_deg))
        except Exception as e:
            self.provider_failures += 1
            log.debug(f"Declination provider failed, using heuristic: {e}")
            return None
        if not math.isfinite(value):
            self.provider_failures += 1
            log.debug(f"Declination provider returned {value}, using heuristic")
            return None
        return value
