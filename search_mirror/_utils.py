import logging
from datetime import date, datetime, timedelta, timezone
from typing import Union

logger = logging.getLogger("search-mirror")


def parse_day(value: Union[str, date, datetime, None]) -> date:
    """Parse a YYYY-MM-DD string (or date/datetime) into a calendar day.

    None resolves to today (UTC).
    """
    if value is None or value == "":
        return datetime.now(timezone.utc).date()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()


def format_day(day: date) -> str:
    return day.strftime("%Y-%m-%d")


def day_start_iso(day: date) -> str:
    """Midnight UTC of the given day as an OData DateTimeOffset literal."""
    return f"{format_day(day)}T00:00:00Z"


def next_day(day: date) -> date:
    return day + timedelta(days=1)
