"""Deterministic clock for timestamps in extraction and persistence tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

FIXED_NOW = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class TickingClock:
    """Advances one second per call, so successive records get distinct times."""

    def __init__(self, start: datetime = FIXED_NOW) -> None:
        self._now = start

    def __call__(self) -> datetime:
        current = self._now
        self._now += timedelta(seconds=1)
        return current
