"""
Heading sources: one physical sensor modality each.

Every source turns raw platform sensor callbacks into HeadingSample objects
pushed to a single callback. Three variants are provided, in the order the
aggregator probes them:

- TiltCompensatedFusion: magnetometer + accelerometer, correct at any tilt
- MagnetometerFusion: 2-axis magnetometer, device assumed flat
- PlatformCompassService: native compass callback, treated as a black box

Platform sensor APIs are reached through two small driver protocols
(VectorSensor, CompassDriver). See mock_sensors.py for simulated drivers.

Usage:
    source = MagnetometerFusion(magnetometer_driver, on_sample=print)
    if source.is_available():
        source.start(update_interval_ms=50)
"""

from __future__ import annotations

import logging
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Protocol, Tuple

import numpy as np

from qibla.geo.bearing_math import normalize_angle
from qibla.utils.config_sections import HeadingConfig, clamp, load_heading_config

log = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]

# Below this norm gravity or the horizontal field carries no direction
_DEGENERATE_NORM = 1e-9


class SourceKind(str, Enum):
    TILT_COMPENSATED = "tilt_compensated"
    MAGNETOMETER = "magnetometer"
    PLATFORM_COMPASS = "platform_compass"


# Capability probe order, best first
PROBE_ORDER = (
    SourceKind.TILT_COMPENSATED,
    SourceKind.MAGNETOMETER,
    SourceKind.PLATFORM_COMPASS,
)


@dataclass(frozen=True)
class HeadingSample:
    """Raw heading reading with monotonic timestamp (seconds)."""

    heading_deg: float
    timestamp: float


SampleCallback = Callable[[HeadingSample], None]


class Subscription(Protocol):
    def remove(self) -> None: ...


class VectorSensor(Protocol):
    """Three-axis sensor driver (magnetometer, accelerometer)."""

    def is_available(self) -> bool: ...

    def set_update_interval(self, interval_ms: int) -> None: ...

    def add_listener(self, callback: Callable[[float, float, float], None]) -> Subscription: ...


class CompassDriver(Protocol):
    """Native compass driver producing already-computed headings."""

    def is_available(self) -> bool: ...

    def start(self, interval_ms: int, callback: Callable[[float], None]) -> None: ...

    def stop(self) -> None: ...


def clamp_update_interval(interval_ms: float, config: Optional[HeadingConfig] = None) -> int:
    config = config or load_heading_config()
    return int(clamp(interval_ms, config.min_interval_ms, config.max_interval_ms))


def magnetometer_heading(x: float, y: float) -> float:
    """Flat-device heading from the horizontal magnetometer components."""
    return normalize_angle(math.degrees(math.atan2(-x, y)))


def tilt_compensated_heading(mag: Vector3, accel: Vector3) -> Optional[float]:
    """
    Heading from magnetometer and gravity, independent of device tilt.

    Args:
        mag: Magnetometer reading (mx, my, mz), any unit
        accel: Accelerometer reading (ax, ay, az), any unit

    Returns:
        Heading in degrees [0, 360), or None when gravity is zero or the
        field is parallel to gravity (no horizontal component)
    """
    g = np.asarray(accel, dtype=float)
    norm = float(np.linalg.norm(g))
    if norm < _DEGENERATE_NORM:
        return None
    g_n = g / norm

    # East is perpendicular to both field and gravity, north completes the frame
    east = np.cross(np.asarray(mag, dtype=float), g_n)
    east_norm = float(np.linalg.norm(east))
    if east_norm < _DEGENERATE_NORM:
        return None
    east = east / east_norm
    north = np.cross(g_n, east)

    # Components along the device's forward (y) axis
    return normalize_angle(math.degrees(math.atan2(east[1], north[1])))


class HeadingSource(ABC):
    """Base class for a heading-producing sensor modality."""

    kind: SourceKind

    def __init__(
        self,
        on_sample: Optional[SampleCallback] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        config: Optional[HeadingConfig] = None,
    ) -> None:
        self._callback = on_sample
        self._clock = clock
        self._running = False
        self.config = config or load_heading_config()
        self.update_interval_ms = clamp_update_interval(self.config.update_interval_ms, self.config)
        self.samples_emitted = 0
        self.samples_dropped = 0

    def set_callback(self, callback: Optional[SampleCallback]) -> None:
        self._callback = callback

    @property
    def is_running(self) -> bool:
        return self._running

    def is_available(self) -> bool:
        """Probe platform capability. Never raises."""
        try:
            return bool(self._probe())
        except Exception as e:
            log.warning(f"{self.kind.value} availability probe failed: {e}")
            return False

    def start(self, update_interval_ms: Optional[int] = None) -> None:
        if self._running:
            return
        if update_interval_ms is not None:
            self.update_interval_ms = clamp_update_interval(update_interval_ms, self.config)
        # Mark running first so a driver that calls back synchronously is not dropped
        self._running = True
        try:
            self._start_sensor()
        except Exception:
            self._running = False
            raise
        log.debug(f"{self.kind.value} started @ {self.update_interval_ms}ms")

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        try:
            self._stop_sensor()
        except Exception as e:
            log.warning(f"Error stopping {self.kind.value}: {e}")
        log.debug(f"{self.kind.value} stopped after {self.samples_emitted} samples")

    def set_update_interval(self, interval_ms: int) -> None:
        self.update_interval_ms = clamp_update_interval(interval_ms, self.config)
        if self._running:
            self._apply_update_interval()

    def _apply_update_interval(self) -> None:
        """Default for drivers without live interval support: restart."""
        self._stop_sensor()
        self._start_sensor()

    def _emit(self, heading_deg: Optional[float]) -> None:
        if not self._running:
            self.samples_dropped += 1
            return
        try:
            heading_deg = float(heading_deg)
        except (TypeError, ValueError):
            heading_deg = math.nan
        if not math.isfinite(heading_deg):
            self.samples_dropped += 1
            log.debug(f"{self.kind.value}: discarded malformed heading")
            return
        self.samples_emitted += 1
        if self._callback is not None:
            self._callback(HeadingSample(normalize_angle(heading_deg), self._clock()))

    @abstractmethod
    def _probe(self) -> bool: ...

    @abstractmethod
    def _start_sensor(self) -> None: ...

    @abstractmethod
    def _stop_sensor(self) -> None: ...


class MagnetometerFusion(HeadingSource):
    """2-axis magnetometer heading, atan2(-x, y). No tilt compensation."""

    kind = SourceKind.MAGNETOMETER

    def __init__(self, magnetometer: VectorSensor, on_sample: Optional[SampleCallback] = None, **kwargs) -> None:
        super().__init__(on_sample, **kwargs)
        self.magnetometer = magnetometer
        self._subscription: Optional[Subscription] = None

    def _probe(self) -> bool:
        return self.magnetometer.is_available()

    def _start_sensor(self) -> None:
        self.magnetometer.set_update_interval(self.update_interval_ms)
        self._subscription = self.magnetometer.add_listener(self._on_magnetometer)

    def _stop_sensor(self) -> None:
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None

    def _apply_update_interval(self) -> None:
        self.magnetometer.set_update_interval(self.update_interval_ms)

    def _on_magnetometer(self, x: float, y: float, z: float) -> None:
        if not (math.isfinite(x) and math.isfinite(y)):
            self.samples_dropped += 1
            return
        self._emit(magnetometer_heading(x, y))


class TiltCompensatedFusion(HeadingSource):
    """Magnetometer + accelerometer heading, valid at any device attitude."""

    kind = SourceKind.TILT_COMPENSATED

    def __init__(
        self,
        magnetometer: VectorSensor,
        accelerometer: VectorSensor,
        on_sample: Optional[SampleCallback] = None,
        **kwargs,
    ) -> None:
        super().__init__(on_sample, **kwargs)
        self.magnetometer = magnetometer
        self.accelerometer = accelerometer
        self._mag_subscription: Optional[Subscription] = None
        self._accel_subscription: Optional[Subscription] = None
        self._last_accel: Optional[Vector3] = None

    def _probe(self) -> bool:
        return self.magnetometer.is_available() and self.accelerometer.is_available()

    def _start_sensor(self) -> None:
        self._last_accel = None
        self.accelerometer.set_update_interval(self.update_interval_ms)
        self.magnetometer.set_update_interval(self.update_interval_ms)
        self._accel_subscription = self.accelerometer.add_listener(self._on_accelerometer)
        self._mag_subscription = self.magnetometer.add_listener(self._on_magnetometer)

    def _stop_sensor(self) -> None:
        for sub in (self._mag_subscription, self._accel_subscription):
            if sub is not None:
                sub.remove()
        self._mag_subscription = None
        self._accel_subscription = None

    def _apply_update_interval(self) -> None:
        self.accelerometer.set_update_interval(self.update_interval_ms)
        self.magnetometer.set_update_interval(self.update_interval_ms)

    def _on_accelerometer(self, x: float, y: float, z: float) -> None:
        if math.isfinite(x) and math.isfinite(y) and math.isfinite(z):
            self._last_accel = (x, y, z)

    def _on_magnetometer(self, x: float, y: float, z: float) -> None:
        if self._last_accel is None:
            return
        if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(z)):
            self.samples_dropped += 1
            return
        heading = tilt_compensated_heading((x, y, z), self._last_accel)
        if heading is None:
            self.samples_dropped += 1
            log.debug(f"{self.kind.value}: degenerate field/gravity geometry")
            return
        self._emit(heading)


class PlatformCompassService(HeadingSource):
    """Native compass service; lowest-common-denominator fallback."""

    kind = SourceKind.PLATFORM_COMPASS

    def __init__(self, compass: CompassDriver, on_sample: Optional[SampleCallback] = None, **kwargs) -> None:
        super().__init__(on_sample, **kwargs)
        self.compass = compass

    def _probe(self) -> bool:
        return self.compass.is_available()

    def _start_sensor(self) -> None:
        self.compass.start(self.update_interval_ms, self._emit)

    def _stop_sensor(self) -> None:
        self.compass.stop()
