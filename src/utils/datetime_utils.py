"""Date and datetime helpers.

Usage:
    from src.utils.datetime_utils import utc_now, today, coerce_date

    # SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)

    # Ledger dates from form payloads ("2025-03-01" or date objects)
    transaction_date = coerce_date(payload.get("date")) or today()
"""

from datetime import date, datetime, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Return the current local business date."""
    return date.today()


def coerce_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """Convert a date, datetime or ISO string to a date.

    Args:
        value: Value to convert; None passes through

    Returns:
        The date, or None if value is None or empty

    Raises:
        ValueError: If a string is not an ISO date
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])
