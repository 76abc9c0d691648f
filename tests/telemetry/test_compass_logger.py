"""Tests for the session-scoped compass logger."""

from __future__ import annotations

import pytest

from qibla.telemetry.compass_logger import CompassLogger, get_compass_logger, reset_compass_logger


@pytest.fixture(autouse=True)
def fresh_logger():
    reset_compass_logger()
    yield
    reset_compass_logger()


def test_logger_creates_channel_files(tmp_path) -> None:
    compass_log = get_compass_logger(session_dir=tmp_path / "session")

    compass_log.alignment.info("Aligned with Qibla")
    compass_log.sensors.warning("tilt_compensated silent")
    for handler in compass_log.alignment.handlers + compass_log.sensors.handlers:
        handler.flush()

    assert (tmp_path / "session" / "heading.log").exists()
    assert "Aligned with Qibla" in (tmp_path / "session" / "alignment.log").read_text()
    assert "tilt_compensated silent" in (tmp_path / "session" / "sensors.log").read_text()


def test_logger_is_singleton(tmp_path) -> None:
    first = get_compass_logger(session_dir=tmp_path)

    assert get_compass_logger() is first
    assert CompassLogger() is first
