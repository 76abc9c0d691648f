"""Shared fixtures: deterministic scheduler and simulated sensor rigs."""

from __future__ import annotations

import pytest

from fakes import FakeScheduler, RecordingAnnouncer, RecordingHaptics
from qibla.heading.mock_sensors import SimulatedDevice


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def device() -> SimulatedDevice:
    return SimulatedDevice()


@pytest.fixture()
def haptics() -> RecordingHaptics:
    return RecordingHaptics()


@pytest.fixture()
def announcer() -> RecordingAnnouncer:
    return RecordingAnnouncer()
