"""
Qibla Compass Core

Real-time bearing to the Kaaba, heading acquisition with sensor failover and
declination correction, and hysteresis-stable alignment events.

Components:
- bearing / qibla_bearing: great-circle forward azimuth
- DeclinationEstimator: magnetic -> true correction with heuristic fallback
- HeadingAggregator: one active heading source, corrected heading stream
- AlignmentEngine: edge-triggered aligned flag and throttled feedback pulses
- QiblaCompassSession: composes the feature for a UI
"""

from .geo.bearing_math import KAABA, Coordinate, bearing, qibla_bearing
from .geo.declination import DeclinationEstimator
from .heading.heading_aggregator import AggregatorState, HeadingAggregator
from .alignment.alignment_engine import AlignmentEngine, AlignmentUpdate
from .session import LocationStatus, QiblaCompassSession

__version__ = "1.0.0"
