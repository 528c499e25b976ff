"""Timestamp sources."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Manually advanced clock for deterministic runs."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 1, 1, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def advance(self, **kwargs: float) -> datetime:
        """Move time forward by ``timedelta(**kwargs)``."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
