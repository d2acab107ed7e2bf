"""
Timestamp parsing and time distance between records.
"""

import re
from datetime import date, datetime, timezone
from typing import Optional

from dateutil.parser import parse as parse_date

from ..models.transaction import TimestampValue


_DATE_PATTERN = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})")


class TemporalComparator:
    """Parses heterogeneous timestamps and measures the hours between them."""

    @staticmethod
    def parse(value: TimestampValue) -> Optional[datetime]:
        """
        Parse a timestamp to an aware UTC-based datetime.

        Accepts datetimes, dates, ISO-8601 strings (trailing "Z" included)
        and anything dateutil understands, such as "2024/03/01 10:00:00" or
        RFC 2822 dates. Naive values are read as UTC. Strings neither can
        read fall back to the first YYYY-M-D they contain, at UTC midnight.

        Returns None when nothing usable is found.
        """
        if value is None:
            return None

        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value

        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

        if not isinstance(value, str):
            return None

        text = value.strip()
        if not text:
            return None

        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None

        if parsed is None:
            # Slash dates, RFC 2822, trailing zone names, ...
            try:
                parsed = parse_date(text)
            except (ValueError, OverflowError):
                parsed = None

        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed

        match = _DATE_PATTERN.search(text)
        if not match:
            return None

        year, month, day = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, tzinfo=timezone.utc)
        except ValueError:
            return None

    @classmethod
    def hours_between(
        cls,
        value1: TimestampValue,
        value2: TimestampValue,
    ) -> Optional[float]:
        """Absolute distance in hours, or None if either side does not parse."""
        instant1 = cls.parse(value1)
        instant2 = cls.parse(value2)

        if instant1 is None or instant2 is None:
            return None

        return abs((instant1 - instant2).total_seconds()) / 3600.0
