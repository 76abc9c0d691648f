"""Integration tests for QiblaCompassSession over simulated sensors."""

from __future__ import annotations

import pytest

from qibla.alignment.alignment_engine import AlignmentEngine
from qibla.alignment.feedback import AlignmentAnnouncer, RatingPromptCounter
from qibla.geo.bearing_math import Coordinate, qibla_bearing
from qibla.geo.declination import DeclinationEstimator
from qibla.heading.heading_aggregator import AggregatorState, HeadingAggregator
from qibla.heading.heading_source import MagnetometerFusion, PlatformCompassService, TiltCompensatedFusion
from qibla.session import LocationStatus, QiblaCompassSession
from qibla.utils.config_sections import FeedbackPreferences, HeadingConfig

MADRID = Coordinate(40.4168, -3.7038)


@pytest.fixture()
def aggregator(device, scheduler) -> HeadingAggregator:
    sources = [
        TiltCompensatedFusion(device.magnetometer, device.accelerometer),
        MagnetometerFusion(device.magnetometer),
        PlatformCompassService(device.compass),
    ]
    return HeadingAggregator(
        sources,
        declination=DeclinationEstimator(lambda lat, lon: 0.0),
        config=HeadingConfig(no_data_timeout_s=3.0, retry_backoff_s=0.5, max_attempts=3),
        scheduler=scheduler,
    )


@pytest.fixture()
def clock():
    class Clock:
        now = 0.0

        def __call__(self) -> float:
            return self.now

    return Clock()


@pytest.fixture()
def session(aggregator, clock, haptics, announcer) -> QiblaCompassSession:
    return QiblaCompassSession(
        aggregator,
        AlignmentEngine(tolerance_deg=5.0, clock=clock),
        preferences=FeedbackPreferences(announce_accessibility=True),
        haptics=haptics,
        announcer=AlignmentAnnouncer(announcer),
    )


def test_set_location_computes_target_bearing(session: QiblaCompassSession) -> None:
    target = session.set_location(MADRID)

    assert target == pytest.approx(qibla_bearing(MADRID))
    assert session.location_status is LocationStatus.OK


def test_no_alignment_without_location(session, device) -> None:
    events = []
    session.subscribe(events.append)
    session.start()

    device.emit(100.0)

    assert session.heading == pytest.approx(100.0, abs=1e-6)
    assert session.last_update is None
    assert events == []


def test_alignment_events_drive_feedback(session, device, clock, haptics, announcer) -> None:
    events = []
    session.subscribe(events.append)
    target = session.set_location(MADRID)
    session.start()

    device.emit(target - 40.0)
    clock.now = 1.0
    device.emit(target + 1.0)
    clock.now = 1.2
    device.emit(target - 1.0)
    clock.now = 2.5
    device.emit(target)
    clock.now = 3.0
    device.emit(target + 20.0)

    edges = [e.aligned for e in events if e.changed]
    assert edges == [True, False]
    assert haptics.pulses == 2
    assert announcer.messages == ["Aligned with Qibla", "Leaving alignment: adjust 20 degrees"]


def test_haptics_gated_by_preference(aggregator, device, clock, haptics) -> None:
    session = QiblaCompassSession(
        aggregator,
        AlignmentEngine(tolerance_deg=5.0, clock=clock),
        preferences=FeedbackPreferences(haptics_enabled=False),
        haptics=haptics,
    )
    events = []
    session.subscribe(events.append)
    target = session.set_location(MADRID)
    session.start()

    device.emit(target)

    assert haptics.pulses == 0
    assert events and events[0].aligned


def test_location_arrival_reevaluates_last_heading(session, device) -> None:
    session.start()
    device.emit(qibla_bearing(MADRID))
    assert session.last_update is None

    session.set_location(MADRID)

    assert session.last_update is not None
    assert session.last_update.aligned


@pytest.mark.parametrize(
    "status", [LocationStatus.PERMISSION_DENIED, LocationStatus.LOCATION_UNAVAILABLE]
)
def test_location_error_passes_through(session, device, status) -> None:
    events = []
    session.subscribe(events.append)
    session.set_location(MADRID)
    session.start()

    session.report_location_error(status)
    device.emit(qibla_bearing(MADRID))

    assert session.location_status is status
    assert session.target_bearing is None
    assert events == []
    assert "location" in session.issue_message().lower()


def test_report_location_error_rejects_non_failures(session) -> None:
    with pytest.raises(ValueError):
        session.report_location_error(LocationStatus.OK)


def test_sensor_unavailable_is_reported(session, scheduler) -> None:
    session.set_location(MADRID)
    session.start()

    scheduler.advance(30.0)

    assert session.aggregator.state is AggregatorState.UNAVAILABLE
    assert session.issue_message() == "Compass sensor is not available on this device."
    assert session.snapshot()["heading_state"] == "unavailable"

    assert session.retry() is True
    assert session.issue_message() is None


def test_start_after_exhausted_retries_restarts_acquisition(session, device, scheduler) -> None:
    session.start()
    scheduler.advance(30.0)
    assert session.aggregator.state is AggregatorState.UNAVAILABLE

    session.start()
    device.emit(90.0)

    assert session.aggregator.state is AggregatorState.RUNNING_PRIMARY
    assert session.heading == pytest.approx(90.0, abs=1e-6)


def test_calibration_hint_only_on_fallback(session, device, scheduler) -> None:
    session.start()
    device.emit(10.0)
    assert session.calibration_hint() is None

    session.stop()
    session.start()
    # Tilt source stays silent until the timeout hands over to the magnetometer
    scheduler.advance(3.5)
    device.emit(10.0)

    assert session.aggregator.active_source_kind.value == "magnetometer"
    assert session.aggregator.state is AggregatorState.RUNNING_FALLBACK
    assert session.calibration_hint() == "Compass needs calibration. Move your device in a figure-8 pattern."
    assert session.snapshot()["calibration_hint"] == session.calibration_hint()


def test_preferences_pushed_live(session, device) -> None:
    session.start()

    session.set_update_interval(1000)
    assert session.aggregator.update_interval_ms == 300
    assert device.magnetometer.update_interval_ms == 300

    session.set_tolerance(10.0)
    assert session.engine.tolerance_deg == 10.0


def test_rating_prompt_wired_through_session(aggregator, device, clock) -> None:
    prompts = []
    session = QiblaCompassSession(
        aggregator,
        AlignmentEngine(tolerance_deg=5.0, clock=clock),
        preferences=FeedbackPreferences(rating_prompt_after=2),
        rating_prompt=RatingPromptCounter(lambda: prompts.append(True), threshold=2),
    )
    target = session.set_location(MADRID)
    session.start()

    for offset in (0.0, 30.0, 0.0, 30.0, 0.0):
        device.emit(target + offset)

    assert prompts == [True]


def test_snapshot_and_feedback_state(session, device) -> None:
    target = session.set_location(MADRID)
    session.start()
    device.emit(target)

    snapshot = session.snapshot()
    state = session.feedback_state()

    assert snapshot["aligned"] is True
    assert snapshot["direction"] == "aligned"
    assert snapshot["source"] == "tilt_compensated"
    assert snapshot["cardinal"] == "E"
    assert snapshot["issue"] is None
    assert state == {"aligned": True, "glow": True, "haptics": True, "reduce_motion": False}

    session.set_preferences(FeedbackPreferences(reduce_motion=True))
    assert session.feedback_state()["glow"] is False


def test_close_releases_everything(session, device) -> None:
    events = []
    session.subscribe(events.append)
    session.set_location(MADRID)
    session.start()

    session.close()
    device.emit(qibla_bearing(MADRID))

    assert session.aggregator.state is AggregatorState.STOPPED
    assert device.magnetometer.listener_count == 0
    assert events == []
