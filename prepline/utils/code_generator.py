from __future__ import annotations

from datetime import datetime
from typing import Optional

from prepline.utils.timezone_utils import TimezoneUtils

__all__ = ["generate_batch_number", "generate_product_prefix"]

DEFAULT_PREFIX = "PRD"


def generate_batch_number(product_code: Optional[str], when: Optional[datetime] = None) -> str:
    """
    Generate a batch number for a prepare action.

    Format: {PREFIX}-{TIMESTAMP}
    - PREFIX: first three characters of the product code, uppercased ("PRD" when missing)
    - TIMESTAMP: epoch milliseconds of ``when`` (defaults to now, UTC)
    """
    moment = TimezoneUtils.ensure_utc(when) or TimezoneUtils.utc_now()
    timestamp = int(moment.timestamp() * 1000)
    return f"{generate_product_prefix(product_code)}-{timestamp}"


def generate_product_prefix(product_code: Optional[str]) -> str:
    cleaned = (product_code or "").strip()
    if not cleaned:
        return DEFAULT_PREFIX
    return cleaned[:3].upper()
