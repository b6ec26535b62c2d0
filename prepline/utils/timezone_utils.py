from __future__ import annotations

from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional


class TimezoneUtils:
    """UTC helpers shared by the models and the composite engines."""

    @staticmethod
    def utc_now() -> datetime:
        """Return the current UTC timestamp (timezone aware)."""
        return datetime.now(dt_timezone.utc)

    @staticmethod
    def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
        """Treat naive datetimes (sqlite round-trips) as UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt_timezone.utc)
        return value.astimezone(dt_timezone.utc)

    @staticmethod
    def hours_between(start: datetime, end: datetime) -> float:
        delta = TimezoneUtils.ensure_utc(end) - TimezoneUtils.ensure_utc(start)
        return delta / timedelta(hours=1)
