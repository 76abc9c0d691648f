"""
Centralized configuration for the Qibla compass core.

This module provides all configuration constants and runtime defaults for:
- The fixed target (Kaaba coordinates)
- Heading acquisition (update interval, no-data timeout, retry policy)
- Magnetic declination bounds
- Alignment detection (tolerance, feedback throttle)
- User-facing status messages

The Config class contains all constants as class attributes, making them
accessible throughout the application without instantiation.

Usage:
    from qibla.utils.config import Config

    timeout = Config.HEADING_NO_DATA_TIMEOUT_S
    if Config.HAPTICS_ENABLED:
        # Forward alignment pulses to the haptic engine
"""


class Config:
    """System configuration constants for the Qibla compass."""

    # ==========================================================================
    # TARGET: Kaaba, Mecca
    # ==========================================================================

    KAABA_LATITUDE = 21.422487
    KAABA_LONGITUDE = 39.826206

    # ==========================================================================
    # HEADING SOURCES
    # ==========================================================================

    HEADING_UPDATE_INTERVAL_MS = 50         # 20 Hz for smooth rotation
    HEADING_MIN_INTERVAL_MS = 30            # Source-level clamp
    HEADING_MAX_INTERVAL_MS = 500
    HEADING_NO_DATA_TIMEOUT_S = 3.0         # Give native sensors time to initialize
    HEADING_RETRY_BACKOFF_S = 0.5
    HEADING_MAX_ATTEMPTS = 3                # Total start attempts before UNAVAILABLE

    # ==========================================================================
    # DECLINATION
    # ==========================================================================

    DECLINATION_BOUND_DEG = 25.0
    DECLINATION_LON_GAIN = 10.0             # Heuristic: sin(lon) * gain
    DECLINATION_LAT_GAIN = 5.0              # Heuristic: (lat / 90) * gain

    # ==========================================================================
    # ALIGNMENT
    # ==========================================================================

    ALIGNMENT_TOLERANCE_DEG = 5.0
    ALIGNMENT_MIN_TOLERANCE_DEG = 1.0
    ALIGNMENT_MAX_TOLERANCE_DEG = 15.0
    ALIGNMENT_PULSE_INTERVAL_S = 0.8        # Minimum spacing of haptic pulses

    # ==========================================================================
    # USER PREFERENCES (defaults, pushed live by the preferences store)
    # ==========================================================================

    PREF_MIN_INTERVAL_MS = 30
    PREF_MAX_INTERVAL_MS = 300
    HAPTICS_ENABLED = True
    REDUCE_MOTION_ENABLED = False
    ANNOUNCE_ACCESSIBILITY = False
    ASK_FOR_RATINGS = True
    RATING_PROMPT_AFTER_ALIGNMENTS = 3

    # ==========================================================================
    # MESSAGES
    # ==========================================================================

    MSG_LOCATION_PERMISSION_DENIED = (
        "Location permission is required to find Qibla direction. "
        "Please enable location access in your device settings."
    )
    MSG_LOCATION_UNAVAILABLE = (
        "Unable to get your location. Please ensure GPS is enabled and try again."
    )
    MSG_SENSOR_UNAVAILABLE = "Compass sensor is not available on this device."
    MSG_CALIBRATION_NEEDED = (
        "Compass needs calibration. Move your device in a figure-8 pattern."
    )
    MSG_ALIGNED = "Aligned with Qibla"
    MSG_LEAVING_ALIGNMENT = "Leaving alignment: adjust {degrees} degrees"

    # ==========================================================================
    # TELEMETRY
    # ==========================================================================

    LOG_DIR = "logs"
    LOG_LEVEL = "INFO"
