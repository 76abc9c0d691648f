"""
Builder - creates every dependency of a compass session.

Sensor drivers are the only platform-specific inputs; everything else reads
Config through the typed config sections.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from qibla.alignment.alignment_engine import AlignmentEngine
from qibla.alignment.feedback import AlignmentAnnouncer, Announcer, HapticEngine, RatingPromptCounter
from qibla.geo.declination import DeclinationEstimator, DeclinationProvider
from qibla.heading.heading_aggregator import HeadingAggregator
from qibla.heading.heading_source import (
    CompassDriver,
    HeadingSource,
    MagnetometerFusion,
    PlatformCompassService,
    TiltCompensatedFusion,
    VectorSensor,
)
from qibla.heading.scheduler import Scheduler
from qibla.session import QiblaCompassSession
from qibla.telemetry.compass_logger import CompassLogger
from qibla.utils.config_sections import load_feedback_preferences

log = logging.getLogger(__name__)


class Builder:
    """Builds heading sources, aggregator, engine and session."""

    def build_sources(
        self,
        *,
        magnetometer: Optional[VectorSensor] = None,
        accelerometer: Optional[VectorSensor] = None,
        compass: Optional[CompassDriver] = None,
    ) -> List[HeadingSource]:
        sources: List[HeadingSource] = []
        if magnetometer is not None and accelerometer is not None:
            sources.append(TiltCompensatedFusion(magnetometer, accelerometer))
        if magnetometer is not None:
            sources.append(MagnetometerFusion(magnetometer))
        if compass is not None:
            sources.append(PlatformCompassService(compass))
        log.debug(f"Built sources: {[s.kind.value for s in sources]}")
        return sources

    def build_aggregator(
        self,
        sources: List[HeadingSource],
        *,
        declination_provider: Optional[DeclinationProvider] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> HeadingAggregator:
        return HeadingAggregator(
            sources,
            declination=DeclinationEstimator(declination_provider),
            scheduler=scheduler,
        )

    def build_engine(self, tolerance_deg: Optional[float] = None) -> AlignmentEngine:
        return AlignmentEngine(tolerance_deg)

    def build_session(
        self,
        aggregator: HeadingAggregator,
        engine: AlignmentEngine,
        *,
        haptics: Optional[HapticEngine] = None,
        announcer: Optional[Announcer] = None,
        on_rating_prompt=None,
        compass_logger: Optional[CompassLogger] = None,
    ) -> QiblaCompassSession:
        preferences = load_feedback_preferences()
        return QiblaCompassSession(
            aggregator,
            engine,
            preferences=preferences,
            haptics=haptics,
            announcer=AlignmentAnnouncer(announcer) if announcer is not None else None,
            rating_prompt=(
                RatingPromptCounter(on_rating_prompt, threshold=preferences.rating_prompt_after)
                if on_rating_prompt is not None
                else None
            ),
            compass_logger=compass_logger,
        )
