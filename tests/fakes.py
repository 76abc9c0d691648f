"""Shared test doubles for heading tests.

Provides FakeScheduler (mimics ThreadingScheduler with a manual clock) so
timeout and retry tests run deterministically without real timers.
"""
from __future__ import annotations


class FakeTimer:
    """Mimics threading.Timer: fires once unless cancelled."""

    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Collects call_later requests and fires them on advance()."""

    def __init__(self):
        self.now = 0.0
        self.timers: list[FakeTimer] = []

    def call_later(self, delay_s: float, callback) -> FakeTimer:
        timer = FakeTimer(self.now + delay_s, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float):
        """Move the clock forward, firing due timers in order (including new ones)."""
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.callback()
        self.now = target


class RecordingHaptics:
    def __init__(self):
        self.pulses = 0

    def pulse(self):
        self.pulses += 1


class RecordingAnnouncer:
    def __init__(self):
        self.messages: list[str] = []

    def announce(self, message: str):
        self.messages.append(message)
