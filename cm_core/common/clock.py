# cm_core/common/clock.py
from __future__ import annotations

from datetime import date, datetime, timedelta

from django.utils import timezone


class SystemClock:
    """Wall clock backed by django.utils.timezone (aware datetimes when USE_TZ=True)."""

    def now(self) -> datetime:
        return timezone.now()

    def today(self) -> date:
        return timezone.localdate()


class FixedClock:
    """
    Deterministic clock for tests and replays.
    `advance()` moves the frozen instant forward.
    """

    def __init__(self, at: datetime):
        self._at = at

    def now(self) -> datetime:
        return self._at

    def today(self) -> date:
        if timezone.is_aware(self._at):
            return timezone.localtime(self._at).date()
        return self._at.date()

    def advance(self, **delta) -> datetime:
        self._at = self._at + timedelta(**delta)
        return self._at
