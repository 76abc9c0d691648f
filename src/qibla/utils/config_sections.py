"""
Typed configuration sections for the Qibla compass core.

This module provides strongly-typed configuration sections to replace
scattered getattr(Config, ...) calls with proper type hints and defaults.

Benefits:
- Type safety: IDE autocomplete and type checking
- Discoverability: All config options visible in one place
- Default values: Centralized and documented
- Better testing: Can build sections directly with custom values
"""

from dataclasses import dataclass


@dataclass
class HeadingConfig:
    """Configuration for heading acquisition and source failover."""

    # Sensor cadence
    update_interval_ms: int = 50
    min_interval_ms: int = 30
    max_interval_ms: int = 500

    # Failover
    no_data_timeout_s: float = 3.0  # Source considered dead without a sample
    retry_backoff_s: float = 0.5  # Pause between stop and next start
    max_attempts: int = 3  # Total start attempts before UNAVAILABLE


@dataclass
class AlignmentConfig:
    """Configuration for alignment detection and feedback throttling."""

    tolerance_deg: float = 5.0
    min_tolerance_deg: float = 1.0
    max_tolerance_deg: float = 15.0
    pulse_interval_s: float = 0.8  # Minimum spacing between haptic pulses


@dataclass
class FeedbackPreferences:
    """User preferences gating the feedback collaborators."""

    haptics_enabled: bool = True
    reduce_motion: bool = False
    announce_accessibility: bool = False
    ask_for_ratings: bool = True
    rating_prompt_after: int = 3  # Aligned edges before the rating prompt


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def load_heading_config() -> HeadingConfig:
    """
    Load heading configuration from Config with fallback defaults.

    Returns:
        HeadingConfig with values from Config or defaults
    """
    from qibla.utils.config import Config

    return HeadingConfig(
        update_interval_ms=getattr(Config, "HEADING_UPDATE_INTERVAL_MS", 50),
        min_interval_ms=getattr(Config, "HEADING_MIN_INTERVAL_MS", 30),
        max_interval_ms=getattr(Config, "HEADING_MAX_INTERVAL_MS", 500),
        no_data_timeout_s=getattr(Config, "HEADING_NO_DATA_TIMEOUT_S", 3.0),
        retry_backoff_s=getattr(Config, "HEADING_RETRY_BACKOFF_S", 0.5),
        max_attempts=getattr(Config, "HEADING_MAX_ATTEMPTS", 3),
    )


def load_alignment_config() -> AlignmentConfig:
    """
    Load alignment configuration from Config with fallback defaults.

    Returns:
        AlignmentConfig with values from Config or defaults
    """
    from qibla.utils.config import Config

    return AlignmentConfig(
        tolerance_deg=getattr(Config, "ALIGNMENT_TOLERANCE_DEG", 5.0),
        min_tolerance_deg=getattr(Config, "ALIGNMENT_MIN_TOLERANCE_DEG", 1.0),
        max_tolerance_deg=getattr(Config, "ALIGNMENT_MAX_TOLERANCE_DEG", 15.0),
        pulse_interval_s=getattr(Config, "ALIGNMENT_PULSE_INTERVAL_S", 0.8),
    )


def load_feedback_preferences() -> FeedbackPreferences:
    """
    Load feedback preferences from Config with fallback defaults.

    Returns:
        FeedbackPreferences with values from Config or defaults
    """
    from qibla.utils.config import Config

    return FeedbackPreferences(
        haptics_enabled=getattr(Config, "HAPTICS_ENABLED", True),
        reduce_motion=getattr(Config, "REDUCE_MOTION_ENABLED", False),
        announce_accessibility=getattr(Config, "ANNOUNCE_ACCESSIBILITY", False),
        ask_for_ratings=getattr(Config, "ASK_FOR_RATINGS", True),
        rating_prompt_after=getattr(Config, "RATING_PROMPT_AFTER_ALIGNMENTS", 3),
    )
