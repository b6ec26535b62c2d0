import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from ..config import EngineConfig
from ..utils.timezone_utils import TimezoneUtils

logger = logging.getLogger(__name__)

NOT_PREPARED = 'not_prepared'
FRESH = 'fresh'
EXPIRING_SOON = 'expiring_soon'
EXPIRED = 'expired'

# Position on the one-way freshness path
STATUS_ORDER = {FRESH: 0, EXPIRING_SOON: 1, EXPIRED: 2}


@dataclass
class FreshnessStatus:
    status: str
    hours_elapsed: Optional[float]
    hours_remaining: Optional[float]
    expiry_hours: Optional[float]

    @property
    def is_expired(self) -> bool:
        return self.status == EXPIRED

    @property
    def hours_overdue(self) -> float:
        if self.status != EXPIRED:
            return 0.0
        return max(0.0, self.hours_elapsed - self.expiry_hours)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'status': self.status,
            'hoursElapsed': self.hours_elapsed,
            'hoursRemaining': self.hours_remaining,
        }


class FreshnessService:
    """Derive the freshness status of prepared composite stock.

    Stock is ``expired`` once the elapsed time since the last preparation
    reaches ``expiry_hours`` and ``expiring_soon`` once it reaches
    ``expiring_soon_ratio`` of it. Nothing is cached; every read recomputes.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def status(
        self,
        last_prepared_at: Optional[datetime],
        expiry_hours: Optional[float],
        now: Optional[datetime] = None,
    ) -> FreshnessStatus:
        if last_prepared_at is None:
            return FreshnessStatus(NOT_PREPARED, None, None, expiry_hours)

        expiry = float(expiry_hours if expiry_hours is not None else self.config.default_expiry_hours)
        moment = now or TimezoneUtils.utc_now()
        hours_elapsed = TimezoneUtils.hours_between(last_prepared_at, moment)

        if hours_elapsed >= expiry:
            status = EXPIRED
        elif hours_elapsed >= self.config.expiring_soon_ratio * expiry:
            status = EXPIRING_SOON
        else:
            status = FRESH

        return FreshnessStatus(
            status=status,
            hours_elapsed=hours_elapsed,
            hours_remaining=max(0.0, expiry - hours_elapsed),
            expiry_hours=expiry,
        )

    def status_of(self, product, now: Optional[datetime] = None) -> FreshnessStatus:
        return self.status(product.last_prepared_at, product.expiry_hours, now)
