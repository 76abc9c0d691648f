"""
Qibla compass session - composes the compass feature.

Orchestrates data flow from location and heading inputs to alignment events
and feedback. One session lives for as long as the compass screen is active.

Pipeline Flow:
    Coordinate -> target bearing (on location change only)
    HeadingSource -> HeadingAggregator (+ declination) -> AlignmentEngine
    AlignmentEngine -> subscribers, haptics, announcer, rating prompt

Location failures (permission denied, no fix) are passed through unchanged:
the session simply has no target and suppresses alignment output until a
coordinate arrives.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from qibla.alignment.alignment_engine import AlignmentCallback, AlignmentEngine, AlignmentUpdate
from qibla.alignment.feedback import AlignmentAnnouncer, HapticEngine, RatingPromptCounter
from qibla.geo.bearing_math import KAABA, Coordinate, bearing, cardinal_direction
from qibla.heading.heading_aggregator import AggregatorState, HeadingAggregator
from qibla.telemetry.compass_logger import CompassLogger
from qibla.utils.config import Config
from qibla.utils.config_sections import FeedbackPreferences, clamp, load_feedback_preferences

log = logging.getLogger(__name__)


class LocationStatus(str, Enum):
    WAITING = "waiting"
    OK = "ok"
    PERMISSION_DENIED = "permission_denied"
    LOCATION_UNAVAILABLE = "location_unavailable"


_LOCATION_MESSAGES = {
    LocationStatus.PERMISSION_DENIED: Config.MSG_LOCATION_PERMISSION_DENIED,
    LocationStatus.LOCATION_UNAVAILABLE: Config.MSG_LOCATION_UNAVAILABLE,
}


class QiblaCompassSession:
    """Wires location, heading and alignment for one active compass."""

    def __init__(
        self,
        aggregator: HeadingAggregator,
        engine: AlignmentEngine,
        *,
        target: Coordinate = KAABA,
        preferences: Optional[FeedbackPreferences] = None,
        haptics: Optional[HapticEngine] = None,
        announcer: Optional[AlignmentAnnouncer] = None,
        rating_prompt: Optional[RatingPromptCounter] = None,
        compass_logger: Optional[CompassLogger] = None,
    ) -> None:
        self.aggregator = aggregator
        self.engine = engine
        self.target = target
        self.preferences = preferences or load_feedback_preferences()
        self.haptics = haptics
        self.announcer = announcer
        self.rating_prompt = rating_prompt
        self.compass_logger = compass_logger

        self.location: Optional[Coordinate] = None
        self.location_status = LocationStatus.WAITING
        self.target_bearing: Optional[float] = None
        self.heading: Optional[float] = None
        self.last_update: Optional[AlignmentUpdate] = None

        self._listeners: List[AlignmentCallback] = []
        self._unsubscribe_heading: Optional[Callable[[], None]] = None
        self._unsubscribe_state: Optional[Callable[[], None]] = None

        self.pulse_count = 0

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._unsubscribe_heading is None:
            self._unsubscribe_heading = self.aggregator.subscribe(self._on_heading)
            self._unsubscribe_state = self.aggregator.subscribe_state(self._on_state)
        self.aggregator.start()

    def stop(self) -> None:
        self.aggregator.stop()

    def retry(self) -> bool:
        return self.aggregator.retry()

    def close(self) -> None:
        """Deactivate the feature: release sensors and every subscription."""
        if self._unsubscribe_heading is not None:
            self._unsubscribe_heading()
            self._unsubscribe_heading = None
        if self._unsubscribe_state is not None:
            self._unsubscribe_state()
            self._unsubscribe_state = None
        self.aggregator.close()
        self._listeners.clear()

    # ------------------------------------------------------------------
    # inputs
    # ------------------------------------------------------------------

    def set_location(self, coordinate: Coordinate) -> float:
        """New observer fix (GPS or manual city). Returns the target bearing."""
        self.location = coordinate
        self.location_status = LocationStatus.OK
        self.target_bearing = bearing(coordinate, self.target)
        declination = self.aggregator.set_observer_location(coordinate)
        self.engine.reset()

        log.info(
            f"Location {coordinate.latitude_deg:.4f},{coordinate.longitude_deg:.4f}: "
            f"bearing={self.target_bearing:.2f}° declination={declination:+.2f}°"
        )
        if self.compass_logger is not None:
            self.compass_logger.heading.info(
                f"target_bearing={self.target_bearing:.2f} declination={declination:+.2f}"
            )

        if self.heading is not None:
            self._evaluate(self.heading)
        return self.target_bearing

    def report_location_error(self, status: LocationStatus) -> None:
        """Pass-through of a location boundary failure: no target until a fix arrives."""
        if status not in _LOCATION_MESSAGES:
            raise ValueError(f"Not a location failure: {status}")
        self.location_status = status
        self.location = None
        self.target_bearing = None
        self.last_update = None
        self.engine.reset()
        self.aggregator.set_observer_location(None)
        log.warning(f"Location failure: {status.value}")

    def set_tolerance(self, tolerance_deg: float) -> None:
        self.engine.set_tolerance(tolerance_deg)

    def set_update_interval(self, interval_ms: int) -> None:
        interval_ms = int(clamp(interval_ms, Config.PREF_MIN_INTERVAL_MS, Config.PREF_MAX_INTERVAL_MS))
        self.aggregator.set_update_interval(interval_ms)

    def set_preferences(self, preferences: FeedbackPreferences) -> None:
        self.preferences = preferences

    def subscribe(self, callback: AlignmentCallback) -> Callable[[], None]:
        """Alignment edges and feedback pulses."""
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # outputs
    # ------------------------------------------------------------------

    def issue_message(self) -> Optional[str]:
        """User-facing message for the current blocking condition, if any."""
        if self.location_status in _LOCATION_MESSAGES:
            return _LOCATION_MESSAGES[self.location_status]
        if self.aggregator.state == AggregatorState.UNAVAILABLE:
            return Config.MSG_SENSOR_UNAVAILABLE
        return None

    def calibration_hint(self) -> Optional[str]:
        """Figure-8 reminder while headings come from a fallback source."""
        if self.aggregator.state == AggregatorState.RUNNING_FALLBACK:
            return Config.MSG_CALIBRATION_NEEDED
        return None

    def feedback_state(self) -> Dict[str, bool]:
        aligned = bool(self.last_update and self.last_update.aligned)
        return {
            "aligned": aligned,
            "glow": aligned and not self.preferences.reduce_motion,
            "haptics": self.preferences.haptics_enabled,
            "reduce_motion": self.preferences.reduce_motion,
        }

    def snapshot(self) -> Dict[str, Any]:
        update = self.last_update
        return {
            "heading": self.heading,
            "target_bearing": self.target_bearing,
            "declination": self.aggregator.declination_deg,
            "heading_state": self.aggregator.state.value,
            "source": self.aggregator.active_source_kind.value if self.aggregator.active_source_kind else None,
            "location_status": self.location_status.value,
            "aligned": update.aligned if update else False,
            "signed_delta": update.signed_delta_deg if update else None,
            "direction": update.direction.value if update else None,
            "cardinal": cardinal_direction(self.heading) if self.heading is not None else None,
            "issue": self.issue_message(),
            "calibration_hint": self.calibration_hint(),
        }

    # ------------------------------------------------------------------
    # internal
    # ------------------------------------------------------------------

    def _on_heading(self, heading: float) -> None:
        self.heading = heading
        self._evaluate(heading)

    def _on_state(self, state: AggregatorState) -> None:
        if self.compass_logger is not None:
            self.compass_logger.sensors.info(
                f"state={state.value} source="
                f"{self.aggregator.active_source_kind.value if self.aggregator.active_source_kind else '-'}"
            )

    def _evaluate(self, heading: float) -> None:
        update = self.engine.update(heading, self.target_bearing)
        if update is None:
            return
        self.last_update = update
        if not (update.changed or update.pulse):
            return

        if update.changed and self.compass_logger is not None:
            self.compass_logger.alignment.info(
                f"{'ALIGNED' if update.aligned else 'LEFT'} heading={update.heading_deg:.1f} "
                f"delta={update.signed_delta_deg:+.1f}"
            )

        if update.pulse and self.preferences.haptics_enabled and self.haptics is not None:
            self.pulse_count += 1
            try:
                self.haptics.pulse()
            except Exception:
                log.exception("Haptic pulse failed")

        if update.changed:
            if self.announcer is not None and self.preferences.announce_accessibility:
                try:
                    self.announcer.on_alignment(update)
                except Exception:
                    log.exception("Announcer failed")
            if self.rating_prompt is not None and self.preferences.ask_for_ratings:
                self.rating_prompt.on_alignment(update)

        for callback in list(self._listeners):
            try:
                callback(update)
            except Exception:
                log.exception("Error in alignment callback")
