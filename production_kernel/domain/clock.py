"""
Time sources for the ledger services.

Services stamp audit events and the article's ``started_at`` /
``completed_at`` through an injected clock.  Audit ordering comes from
the per-article sequence number, so timestamps are informational only.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock UTC time of the host."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock:
    """
    Scripted clock for tests and replays.

    Starts at the opening of a Monday day shift and moves forward by
    ``step`` on every reading, so consecutive events carry strictly
    increasing timestamps without sleeping.
    """

    SHIFT_START = datetime(2025, 3, 3, 8, 0, tzinfo=UTC)

    def __init__(self, start: datetime | None = None, step: timedelta = timedelta(seconds=1)):
        self._current = start or self.SHIFT_START
        self._step = step

    def now(self) -> datetime:
        reading = self._current
        self._current += self._step
        return reading

    def jump(self, delta: timedelta) -> None:
        """Skip ahead, e.g. to the next shift."""
        self._current += delta
