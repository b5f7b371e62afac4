"""Date parsing for command line arguments."""

from __future__ import annotations

from datetime import datetime

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"


def parse_datetime(value: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS`` or ``YYYY-MM-DD``."""
    for fmt in (DATETIME_FORMAT, DATE_FORMAT):
        try:
            return datetime.strptime(value.strip(), fmt)
        except ValueError:
            continue
    raise ValueError(
        f"invalid datetime '{value}', expected YYYY-MM-DD or YYYY-MM-DD HH:MM:SS"
    )
