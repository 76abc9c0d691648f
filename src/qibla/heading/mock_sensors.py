"""
Simulated sensor drivers for running the compass without hardware.

These drivers implement the VectorSensor and CompassDriver protocols used by
the heading sources, so a full session can be exercised on a desktop or in
tests. Each driver can be fed by hand (push) or, once started, by a daemon
thread that samples a heading profile at the requested interval.

Operating modes:
- manual: call push()/push_heading() from the test or caller
- threaded: start_generator() samples `heading_fn(t)` every interval

Usage:
    rig = SimulatedDevice(heading_fn=lambda t: (t * 30.0) % 360)
    source = TiltCompensatedFusion(rig.magnetometer, rig.accelerometer)
    rig.start_generator()
"""

from __future__ import annotations

import logging
import math
import threading
import time
from typing import Callable, List, Optional, Tuple

import numpy as np

log = logging.getLogger(__name__)

Vector3 = Tuple[float, float, float]
VectorCallback = Callable[[float, float, float], None]


class _Subscription:
    def __init__(self, sensor: "SimulatedVectorSensor", callback: VectorCallback) -> None:
        self._sensor = sensor
        self._callback = callback

    def remove(self) -> None:
        self._sensor._remove(self._callback)


class SimulatedVectorSensor:
    """Three-axis sensor with listener registration, like a platform API."""

    def __init__(self, name: str, *, available: bool = True) -> None:
        self.name = name
        self.available = available
        self.update_interval_ms: Optional[int] = None
        self._listeners: List[VectorCallback] = []
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def set_update_interval(self, interval_ms: int) -> None:
        self.update_interval_ms = interval_ms

    def add_listener(self, callback: VectorCallback) -> _Subscription:
        with self._lock:
            self._listeners.append(callback)
        return _Subscription(self, callback)

    def _remove(self, callback: VectorCallback) -> None:
        with self._lock:
            if callback in self._listeners:
                self._listeners.remove(callback)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def push(self, x: float, y: float, z: float) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for callback in listeners:
            callback(x, y, z)


class SimulatedCompass:
    """Native compass stand-in producing ready-made headings."""

    def __init__(self, *, available: bool = True) -> None:
        self.available = available
        self.interval_ms: Optional[int] = None
        self.start_count = 0
        self.stop_count = 0
        self._callback: Optional[Callable[[float], None]] = None

    def is_available(self) -> bool:
        return self.available

    def start(self, interval_ms: int, callback: Callable[[float], None]) -> None:
        self.interval_ms = interval_ms
        self._callback = callback
        self.start_count += 1

    def stop(self) -> None:
        self._callback = None
        self.stop_count += 1

    @property
    def running(self) -> bool:
        return self._callback is not None

    def push_heading(self, heading_deg: float) -> None:
        callback = self._callback
        if callback is not None:
            callback(heading_deg)


def field_for_heading(heading_deg: float, strength_ut: float = 45.0, dip_deg: float = 60.0) -> Vector3:
    """
    Magnetometer vector a flat device would read when facing heading_deg.

    Inverse of atan2(-x, y): x = -sin(h), y = cos(h) on the horizontal plane,
    plus a downward vertical component from the magnetic dip angle.
    """
    h = math.radians(heading_deg)
    horizontal = strength_ut * math.cos(math.radians(dip_deg))
    vertical = strength_ut * math.sin(math.radians(dip_deg))
    return (-horizontal * math.sin(h), horizontal * math.cos(h), -vertical)


class SimulatedDevice:
    """
    Flat-held device: magnetometer + accelerometer + native compass rig.

    Args:
        heading_fn: Heading in degrees as a function of elapsed seconds
        noise_deg: Gaussian heading noise (standard deviation)
        seed: RNG seed for reproducible noise
    """

    def __init__(
        self,
        heading_fn: Callable[[float], float] = lambda t: 0.0,
        *,
        noise_deg: float = 0.0,
        seed: Optional[int] = None,
        magnetometer_available: bool = True,
        accelerometer_available: bool = True,
        compass_available: bool = True,
    ) -> None:
        self.heading_fn = heading_fn
        self.noise_deg = noise_deg
        self.rng = np.random.default_rng(seed)

        self.magnetometer = SimulatedVectorSensor("magnetometer", available=magnetometer_available)
        self.accelerometer = SimulatedVectorSensor("accelerometer", available=accelerometer_available)
        self.compass = SimulatedCompass(available=compass_available)

        self.running = False
        self.sample_count = 0
        self.start_time: Optional[float] = None
        self._thread: Optional[threading.Thread] = None

    def emit(self, heading_deg: float) -> None:
        """Push one consistent reading to every simulated sensor."""
        if self.noise_deg > 0:
            heading_deg += float(self.rng.normal(0.0, self.noise_deg))
        self.accelerometer.push(0.0, 0.0, 9.81)
        self.magnetometer.push(*field_for_heading(heading_deg))
        self.compass.push_heading(heading_deg % 360.0)
        self.sample_count += 1

    def start_generator(self, interval_ms: int = 50) -> None:
        if self.running:
            return
        self.running = True
        self.start_time = time.monotonic()
        self._thread = threading.Thread(target=self._generate, args=(interval_ms,), daemon=True)
        self._thread.start()
        log.info(f"Simulated device generating @ {interval_ms}ms")

    def stop_generator(self) -> None:
        self.running = False
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=1.0)
        self._thread = None

    def _generate(self, interval_ms: int) -> None:
        while self.running:
            elapsed = time.monotonic() - self.start_time
            try:
                self.emit(self.heading_fn(elapsed))
            except Exception:
                log.exception("Simulated sample failed")
            time.sleep(interval_ms / 1000.0)
