"""
Dedicated logger for compass heading and alignment debugging.

This module provides a singleton logger that separates compass debugging logs
into dedicated files for easier analysis and troubleshooting.

Features:
- Singleton pattern (one instance per session)
- Separate log files for heading stream, alignment events and sensor lifecycle
- DEBUG level logging to files
- WARNING level console output for critical messages

Log Files:
- heading.log: Corrected heading samples and declination changes
- alignment.log: Edge transitions and feedback pulses
- sensors.log: Source selection, retries and availability

Usage:
    from qibla.telemetry.compass_logger import get_compass_logger

    compass_log = get_compass_logger(session_dir=Path("logs/session_2026-01-15_10-30-00"))
    compass_log.alignment.info("Aligned with Qibla")
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from qibla.utils.config import Config

_CHANNELS = {
    "heading": "heading.log",
    "alignment": "alignment.log",
    "sensors": "sensors.log",
}


class CompassLogger:
    """Singleton logger for compass debugging."""

    _instance = None
    _initialized = False

    def __new__(cls, session_dir: Optional[Path] = None):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, session_dir: Optional[Path] = None):
        if self._initialized:
            return

        if session_dir is None:
            timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            self.log_dir = Path(Config.LOG_DIR) / f"session_{timestamp}"
        else:
            self.log_dir = Path(session_dir)

        self.log_dir.mkdir(parents=True, exist_ok=True)

        for name, filename in _CHANNELS.items():
            self._setup_logger(name, filename)

        self._initialized = True

    def _setup_logger(self, name: str, filename: str):
        logger = logging.getLogger(f"compass.{name}")
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        logger.handlers.clear()

        fh = logging.FileHandler(self.log_dir / filename, mode="w")
        fh.setLevel(logging.DEBUG)

        ch = logging.StreamHandler()
        ch.setLevel(logging.WARNING)

        formatter = logging.Formatter(
            "%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s",
            datefmt="%H:%M:%S",
        )
        fh.setFormatter(formatter)
        ch.setFormatter(formatter)

        logger.addHandler(fh)
        logger.addHandler(ch)

        setattr(self, name, logger)

    def close(self):
        """Close all handlers."""
        for name in _CHANNELS:
            logger = getattr(self, name, None)
            if logger:
                for handler in logger.handlers[:]:
                    handler.close()
                    logger.removeHandler(handler)


# Global instance
_compass_logger = None


def get_compass_logger(session_dir: Optional[Path] = None) -> CompassLogger:
    """Get or create compass logger instance."""
    global _compass_logger
    if _compass_logger is None:
        _compass_logger = CompassLogger(session_dir=session_dir)
    return _compass_logger


def reset_compass_logger() -> None:
    """Close and forget the session logger (next call starts a new session)."""
    global _compass_logger
    if _compass_logger is not None:
        _compass_logger.close()
    _compass_logger = None
    CompassLogger._instance = None
    CompassLogger._initialized = False
