from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any, Optional

from src.api.errors import ParseError, ValidationError
from src.api.schemas.common import parse_instant

logger = logging.getLogger(__name__)

MAX_CUSTOM_RANGE = timedelta(days=365)

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class DateRangeToken(str, Enum):
    """Named time windows offered by the alert history and bus views."""

    all = "all"
    today = "today"
    yesterday = "yesterday"
    week = "week"
    month = "month"
    custom = "custom"


_TOKEN_ALIASES = {
    "": DateRangeToken.all,
    "all": DateRangeToken.all,
    "all time": DateRangeToken.all,
    "today": DateRangeToken.today,
    "yesterday": DateRangeToken.yesterday,
    "week": DateRangeToken.week,
    "this week": DateRangeToken.week,
    "last 7 days": DateRangeToken.week,
    "month": DateRangeToken.month,
    "this month": DateRangeToken.month,
    "last 30 days": DateRangeToken.month,
    "custom": DateRangeToken.custom,
}


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end]; both None means 'do not filter by date'."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def is_unbounded(self) -> bool:
        return self.start is None or self.end is None

    def contains(self, instant: datetime) -> bool:
        if self.is_unbounded:
            return True
        return self.start <= instant <= self.end


UNBOUNDED = DateRange()


# PUBLIC_INTERFACE
def normalize_token(token: Any) -> DateRangeToken:
    """Map a user-facing token ('This Week', ' today ', 'custom') to a DateRangeToken; unknown -> all."""
    if isinstance(token, DateRangeToken):
        return token
    if token is None:
        return DateRangeToken.all
    key = " ".join(str(token).split()).lower()
    resolved = _TOKEN_ALIASES.get(key)
    if resolved is None:
        logger.debug("Unrecognized date range token %r; treating as 'all'", token)
        return DateRangeToken.all
    return resolved


def _local_now(now: Optional[datetime]) -> datetime:
    # astimezone() on a naive value interprets it as local time.
    return (now or datetime.now()).astimezone()


def _coerce_boundary(value: Any) -> Optional[datetime]:
    """
    Turn a caller-supplied custom boundary into an aware datetime; None when missing/unparseable.

    Every zone-less form (date, "YYYY-MM-DD", naive datetime, naive ISO string) is read as local time.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, str) and _DATE_ONLY_RE.match(value.strip()):
        try:
            parsed = datetime.combine(date.fromisoformat(value.strip()), time.min)
        except ValueError:
            return None
    else:
        try:
            parsed = parse_instant(value, assume_utc=False)
        except ParseError:
            return None
    return parsed if parsed.tzinfo is not None else parsed.astimezone()


class DateRangeResolver:
    """Resolves named time windows into concrete instants. Never raises."""

    # PUBLIC_INTERFACE
    def resolve(
        self,
        token: Any,
        custom_start: Any = None,
        custom_end: Any = None,
        now: Optional[datetime] = None,
    ) -> DateRange:
        """
        Resolve `token` to a DateRange relative to `now` (local time by default).

        - today/yesterday are whole calendar days (end inclusive, 1µs before next midnight)
        - week/month are trailing 7/30-day windows ending at now
        - custom uses the supplied boundaries verbatim; a missing, unparseable or inverted
          boundary pair disables date filtering altogether
        - all/unknown tokens are unbounded
        """
        kind = normalize_token(token)
        current = _local_now(now)
        midnight = current.replace(hour=0, minute=0, second=0, microsecond=0)
        one_us = timedelta(microseconds=1)

        if kind is DateRangeToken.today:
            return DateRange(midnight, midnight + timedelta(days=1) - one_us)
        if kind is DateRangeToken.yesterday:
            return DateRange(midnight - timedelta(days=1), midnight - one_us)
        if kind is DateRangeToken.week:
            return DateRange(current - timedelta(days=7), current)
        if kind is DateRangeToken.month:
            return DateRange(current - timedelta(days=30), current)
        if kind is DateRangeToken.custom:
            start = _coerce_boundary(custom_start)
            end = _coerce_boundary(custom_end)
            if start is None or end is None:
                # A half-specified custom range disables the date predicate entirely.
                return UNBOUNDED
            if start > end:
                logger.warning("Inverted custom date range start=%s end=%s; not filtering by date", start, end)
                return UNBOUNDED
            return DateRange(start, end)
        return UNBOUNDED


# PUBLIC_INTERFACE
def validate_date_range(start: Any, end: Any) -> DateRange:
    """
    Strict check for an explicit custom range, used where the user should be told about a bad input.

    Raises ValidationError for missing/unparseable boundaries, start > end, or a span over one year.
    """
    start_dt = _coerce_boundary(start)
    end_dt = _coerce_boundary(end)
    if start_dt is None or end_dt is None:
        raise ValidationError("startDate and endDate must both be valid dates")
    if start_dt > end_dt:
        raise ValidationError("startDate must not be after endDate")
    if end_dt - start_dt > MAX_CUSTOM_RANGE:
        raise ValidationError("date range must not exceed one year")
    return DateRange(start_dt, end_dt)
