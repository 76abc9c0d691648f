"""
Single corrected-heading stream over one active HeadingSource.

The aggregator owns the lifecycle of exactly one source at a time. It probes
the sources in capability order, starts the best one, and arms a no-data
timeout. A source that stays silent is stopped and the next candidate is
started after a short backoff, up to max_attempts start attempts in total;
then the aggregator parks in UNAVAILABLE until start() or retry() is called.

Raw headings are corrected by the declination of the current observer
location (computed once per location change, not per sample) and pushed to
every subscriber. Subscriptions survive stop()/start() cycles.

State machine:
    STOPPED -> STARTING_PRIMARY -> RUNNING_PRIMARY | RUNNING_FALLBACK
    STARTING_PRIMARY -> RETRYING_PRIMARY -> ... -> UNAVAILABLE
    UNAVAILABLE -- start() | retry() --> STARTING_PRIMARY
    any -- stop() --> STOPPED

Usage:
    aggregator = HeadingAggregator(sources, declination=DeclinationEstimator())
    unsubscribe = aggregator.subscribe(lambda heading: print(heading))
    aggregator.set_observer_location(Coordinate(40.4, -3.7))
    aggregator.start()
"""

from __future__ import annotations

import logging
import math
import threading
from enum import Enum
from functools import partial
from typing import Callable, List, Optional, Sequence

from qibla.geo.bearing_math import Coordinate, normalize_angle
from qibla.geo.declination import DeclinationEstimator
from qibla.heading.heading_source import (
    PROBE_ORDER,
    HeadingSample,
    HeadingSource,
    SourceKind,
    clamp_update_interval,
)
from qibla.heading.scheduler import Scheduler, ThreadingScheduler, TimerHandle
from qibla.utils.config_sections import HeadingConfig, load_heading_config

log = logging.getLogger(__name__)

HeadingCallback = Callable[[float], None]


class AggregatorState(str, Enum):
    STOPPED = "stopped"
    STARTING_PRIMARY = "starting_primary"
    RUNNING_PRIMARY = "running_primary"
    RETRYING_PRIMARY = "retrying_primary"
    RUNNING_FALLBACK = "running_fallback"
    UNAVAILABLE = "unavailable"


_ACQUIRING = (AggregatorState.STARTING_PRIMARY, AggregatorState.RETRYING_PRIMARY)
_IDLE = (AggregatorState.STOPPED, AggregatorState.UNAVAILABLE)


class HeadingAggregator:
    """Owns the active heading source and fans out corrected headings."""

    def __init__(
        self,
        sources: Sequence[HeadingSource],
        *,
        declination: Optional[DeclinationEstimator] = None,
        config: Optional[HeadingConfig] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.config = config or load_heading_config()
        self.sources: List[HeadingSource] = sorted(sources, key=lambda s: PROBE_ORDER.index(s.kind))
        for source in self.sources:
            source.set_callback(partial(self._on_sample, source))

        self.declination = declination
        self.scheduler = scheduler or ThreadingScheduler()

        # Timer callbacks arrive on other threads
        self._lock = threading.RLock()

        self._state = AggregatorState.STOPPED
        self._candidates: List[HeadingSource] = []
        self._active: Optional[HeadingSource] = None
        self._active_index = 0
        self._attempts = 0
        self._timer: Optional[TimerHandle] = None
        self._generation = 0

        self._listeners: List[HeadingCallback] = []
        self._state_listeners: List[Callable[[AggregatorState], None]] = []

        self._corrected_heading: Optional[float] = None
        self._declination_deg = 0.0
        self._update_interval_ms = clamp_update_interval(self.config.update_interval_ms, self.config)

        self.samples_discarded = 0

    # ------------------------------------------------------------------
    # properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def active_source_kind(self) -> Optional[SourceKind]:
        active = self._active
        return active.kind if active is not None else None

    @property
    def is_fallback(self) -> bool:
        return self._state == AggregatorState.RUNNING_FALLBACK

    @property
    def corrected_heading_deg(self) -> Optional[float]:
        return self._corrected_heading

    @property
    def declination_deg(self) -> float:
        return self._declination_deg

    @property
    def update_interval_ms(self) -> int:
        return self._update_interval_ms

    @property
    def attempts(self) -> int:
        return self._attempts

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin heading acquisition from STOPPED or UNAVAILABLE. No-op otherwise."""
        with self._lock:
            if self._state not in _IDLE:
                return
            self._begin()

    def retry(self) -> bool:
        """User-triggered recovery from UNAVAILABLE."""
        with self._lock:
            if self._state != AggregatorState.UNAVAILABLE:
                return False
            log.info("Retrying heading acquisition")
            self._begin()
            return True

    def stop(self) -> None:
        """Release the active sensor. Safe in any state; subscribers persist."""
        with self._lock:
            self._generation += 1
            self._cancel_timer()
            self._stop_active()
            self._attempts = 0
            self._set_state(AggregatorState.STOPPED)

    def close(self) -> None:
        """Feature teardown: stop and drop every subscriber."""
        with self._lock:
            self.stop()
            self._listeners.clear()
            self._state_listeners.clear()

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------

    def set_observer_location(self, coordinate: Optional[Coordinate]) -> float:
        """Recompute declination for a new observer location."""
        if coordinate is None or self.declination is None:
            declination_deg = 0.0
        else:
            declination_deg = self.declination.estimate(coordinate)
        with self._lock:
            self._declination_deg = declination_deg
        log.info(f"Declination set to {declination_deg:+.2f}°")
        return declination_deg

    def set_update_interval(self, interval_ms: int) -> None:
        with self._lock:
            self._update_interval_ms = clamp_update_interval(interval_ms, self.config)
            if self._active is None:
                return
            try:
                self._active.set_update_interval(self._update_interval_ms)
            except Exception as e:
                log.warning(f"Could not apply update interval to {self._active.kind.value}: {e}")

    # ------------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: HeadingCallback) -> Callable[[], None]:
        """Register for corrected headings. Latest value is replayed at once."""
        with self._lock:
            self._listeners.append(callback)
            current = self._corrected_heading
        if current is not None:
            self._notify(callback, current)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def subscribe_state(self, callback: Callable[[AggregatorState], None]) -> Callable[[], None]:
        with self._lock:
            self._state_listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._state_listeners:
                    self._state_listeners.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # acquisition state machine
    # ------------------------------------------------------------------

    def _begin(self) -> None:
        self._attempts = 0
        self._candidates = [s for s in self.sources if s.is_available()]
        if not self._candidates:
            log.warning("No heading source available")
            self._set_state(AggregatorState.UNAVAILABLE)
            return
        log.info(f"Heading candidates: {[s.kind.value for s in self._candidates]}")
        self._set_state(AggregatorState.STARTING_PRIMARY)
        self._start_attempt(0)

    def _start_attempt(self, index: int) -> None:
        self._generation += 1
        generation = self._generation
        self._attempts += 1
        self._active_index = index % len(self._candidates)
        source = self._candidates[self._active_index]
        self._active = source

        # Arm before starting: a driver may call back synchronously
        self._timer = self.scheduler.call_later(
            self.config.no_data_timeout_s, partial(self._on_timeout, generation)
        )
        log.info(f"Starting {source.kind.value} (attempt {self._attempts}/{self.config.max_attempts})")
        try:
            source.start(self._update_interval_ms)
        except Exception as e:
            log.warning(f"{source.kind.value} failed to start: {e}")
            self._cancel_timer()
            self._attempt_failed()

    def _on_timeout(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation or self._state not in _ACQUIRING:
                return
            self._timer = None
            kind = self.active_source_kind
            log.warning(
                f"No heading from {kind.value if kind else '?'} within {self.config.no_data_timeout_s}s"
            )
            self._attempt_failed()

    def _attempt_failed(self) -> None:
        self._stop_active()
        if self._attempts >= self.config.max_attempts:
            log.error(f"Heading unavailable after {self._attempts} attempts")
            self._set_state(AggregatorState.UNAVAILABLE)
            return

        self._set_state(AggregatorState.RETRYING_PRIMARY)
        self._generation += 1
        self._timer = self.scheduler.call_later(
            self.config.retry_backoff_s,
            partial(self._on_backoff_elapsed, self._generation, self._active_index + 1),
        )

    def _on_backoff_elapsed(self, generation: int, index: int) -> None:
        with self._lock:
            if generation != self._generation or self._state != AggregatorState.RETRYING_PRIMARY:
                return
            self._timer = None
            self._start_attempt(index)

    def _on_sample(self, source: HeadingSource, sample: HeadingSample) -> None:
        with self._lock:
            if source is not self._active or self._state in _IDLE:
                # In-flight sample after stop or from a replaced source
                self.samples_discarded += 1
                return
            if not math.isfinite(sample.heading_deg):
                self.samples_discarded += 1
                return

            if self._state in _ACQUIRING:
                self._cancel_timer()
                if source is self._candidates[0]:
                    self._set_state(AggregatorState.RUNNING_PRIMARY)
                else:
                    self._set_state(AggregatorState.RUNNING_FALLBACK)

            corrected = normalize_angle(sample.heading_deg + self._declination_deg)
            self._corrected_heading = corrected
            for callback in list(self._listeners):
                self._notify(callback, corrected)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _stop_active(self) -> None:
        if self._active is not None:
            self._active.stop()
            self._active = None

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _set_state(self, new_state: AggregatorState) -> None:
        if new_state == self._state:
            return
        log.info(f"Heading state: {self._state.value} -> {new_state.value}")
        self._state = new_state
        for callback in list(self._state_listeners):
            try:
                callback(new_state)
            except Exception:
                log.exception("Error in heading state callback")

    @staticmethod
    def _notify(callback: HeadingCallback, heading: float) -> None:
        try:
            callback(heading)
        except Exception:
            log.exception("Error in heading callback")
