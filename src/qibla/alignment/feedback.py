"""
Feedback collaborators driven by alignment events.

The core always computes alignment; these helpers decide what the user
actually perceives. Hardware and UI are reached through small protocols
(HapticEngine, Announcer) so the session never depends on a platform API.

- AlignmentAnnouncer: accessibility messages on edge transitions
- RatingPromptCounter: fires once after N aligned edges (per instance)
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol

from qibla.alignment.alignment_engine import AlignmentUpdate
from qibla.utils.config import Config

log = logging.getLogger(__name__)


class HapticEngine(Protocol):
    def pulse(self) -> None: ...


class Announcer(Protocol):
    def announce(self, message: str) -> None: ...


def alignment_message(update: AlignmentUpdate) -> str:
    if update.aligned:
        return Config.MSG_ALIGNED
    return Config.MSG_LEAVING_ALIGNMENT.format(degrees=round(update.abs_delta_deg))


class AlignmentAnnouncer:
    """Speaks alignment edges through an accessibility announcer."""

    def __init__(self, announcer: Announcer) -> None:
        self.announcer = announcer
        self.last_message: Optional[str] = None

    def on_alignment(self, update: AlignmentUpdate) -> None:
        if not update.changed:
            return
        message = alignment_message(update)
        self.last_message = message
        self.announcer.announce(message)


class RatingPromptCounter:
    """Counts aligned edges and requests the rating prompt exactly once."""

    def __init__(
        self,
        on_prompt: Callable[[], None],
        *,
        threshold: int = Config.RATING_PROMPT_AFTER_ALIGNMENTS,
        already_prompted: bool = False,
    ) -> None:
        self.on_prompt = on_prompt
        self.threshold = threshold
        self.count = 0
        self.prompted = already_prompted

    def on_alignment(self, update: AlignmentUpdate) -> None:
        if self.prompted or not (update.changed and update.aligned):
            return
        self.count += 1
        if self.count >= self.threshold:
            self.prompted = True
            log.info(f"Rating prompt after {self.count} alignments")
            self.on_prompt()
