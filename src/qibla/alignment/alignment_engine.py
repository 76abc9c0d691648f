"""
Alignment detection between device heading and target bearing.

The engine is a pure reducer over a tiny state (last aligned flag, last pulse
time, tolerance) plus each new heading. It produces:

- an edge-triggered `changed` flag: set only when the aligned boolean flips,
  so noise that stays on one side of the tolerance boundary never re-fires
- a throttled `pulse` flag for haptic/visual feedback while aligned, spaced
  at least pulse_interval_s apart
- the signed shortest correction and a derived turn hint

Usage:
    engine = AlignmentEngine(tolerance_deg=5.0)
    update = engine.update(heading_deg=2.0, target_bearing_deg=5.0)
    if update and update.changed:
        print("aligned" if update.aligned else "lost alignment")
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from qibla.geo.bearing_math import TurnDirection, direction_hint, shortest_signed_delta
from qibla.utils.config_sections import AlignmentConfig, clamp, load_alignment_config

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignmentUpdate:
    """Result of evaluating one heading against the target bearing."""

    heading_deg: float
    target_bearing_deg: float
    signed_delta_deg: float
    tolerance_deg: float
    aligned: bool
    changed: bool
    pulse: bool
    timestamp: float

    @property
    def abs_delta_deg(self) -> float:
        return abs(self.signed_delta_deg)

    @property
    def direction(self) -> TurnDirection:
        return direction_hint(self.signed_delta_deg, self.tolerance_deg)


AlignmentCallback = Callable[[AlignmentUpdate], None]


class AlignmentEngine:
    """Edge-triggered aligned / not-aligned detector with pulse throttling."""

    def __init__(
        self,
        tolerance_deg: Optional[float] = None,
        *,
        config: Optional[AlignmentConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or load_alignment_config()
        self.clock = clock
        self.pulse_interval_s = self.config.pulse_interval_s
        self.tolerance_deg = self._clamp_tolerance(
            tolerance_deg if tolerance_deg is not None else self.config.tolerance_deg
        )

        self.last_aligned = False
        self.last_trigger_time: Optional[float] = None

        self._listeners: List[AlignmentCallback] = []

    def _clamp_tolerance(self, tolerance_deg: float) -> float:
        return clamp(tolerance_deg, self.config.min_tolerance_deg, self.config.max_tolerance_deg)

    def set_tolerance(self, tolerance_deg: float) -> None:
        """Apply a new tolerance; alignment state starts over."""
        self.tolerance_deg = self._clamp_tolerance(tolerance_deg)
        self.reset()
        log.debug(f"Alignment tolerance set to {self.tolerance_deg}°")

    def reset(self) -> None:
        self.last_aligned = False
        self.last_trigger_time = None

    def subscribe(self, callback: AlignmentCallback) -> Callable[[], None]:
        """Notified for edge transitions and feedback pulses only."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def update(
        self,
        heading_deg: float,
        target_bearing_deg: Optional[float],
        now: Optional[float] = None,
    ) -> Optional[AlignmentUpdate]:
        """
        Evaluate one heading.

        Args:
            heading_deg: Corrected device heading
            target_bearing_deg: Bearing to the target, None when no location yet
            now: Monotonic timestamp, defaults to the engine clock

        Returns:
            AlignmentUpdate, or None when there is no target or the heading is unusable
        """
        if target_bearing_deg is None:
            return None
        if not (math.isfinite(heading_deg) and math.isfinite(target_bearing_deg)):
            return None
        if now is None:
            now = self.clock()

        signed_delta = shortest_signed_delta(heading_deg, target_bearing_deg)
        aligned_now = abs(signed_delta) <= self.tolerance_deg

        changed = aligned_now != self.last_aligned
        if changed:
            self.last_aligned = aligned_now

        pulse = False
        if aligned_now and (
            self.last_trigger_time is None or now - self.last_trigger_time > self.pulse_interval_s
        ):
            pulse = True
            self.last_trigger_time = now

        update = AlignmentUpdate(
            heading_deg=heading_deg,
            target_bearing_deg=target_bearing_deg,
            signed_delta_deg=signed_delta,
            tolerance_deg=self.tolerance_deg,
            aligned=aligned_now,
            changed=changed,
            pulse=pulse,
            timestamp=now,
        )

        if changed:
            log.debug(f"Alignment {'gained' if aligned_now else 'lost'}: delta={signed_delta:+.1f}°")
        if changed or pulse:
            for callback in list(self._listeners):
                try:
                    callback(update)
                except Exception:
                    log.exception("Error in alignment callback")
        return update
