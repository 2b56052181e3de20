"""Helpers for resolving and expanding reporting date ranges."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Tuple

import pandas as pd

from ..errors import InvalidRange

__all__ = ["DateRange", "DEFAULT_WINDOW_DAYS", "resolve_date_range", "utc_today"]

DEFAULT_WINDOW_DAYS = 7

_ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-date window."""

    start: date
    end: date

    def __iter__(self):
        yield self.start
        yield self.end

    def isoformat(self) -> Tuple[str, str]:
        return self.start.isoformat(), self.end.isoformat()


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def _parse_iso_date(value: str | date, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or _ISO_DATE_PATTERN.fullmatch(value) is None:
        raise InvalidRange(f"Invalid {field}. Expected format YYYY-MM-DD, received: {value}")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise InvalidRange(f"Invalid {field}. Unable to parse date: {value}") from exc


def _ensure_chronology(start: date, end: date) -> None:
    if end < start:
        raise InvalidRange("end_date must be on or after start_date.")


def _ensure_not_future(value: date, today: date, field: str) -> None:
    if value > today:
        raise InvalidRange(f"{field} cannot be in the future (today is {today.isoformat()}).")


def resolve_date_range(
    start_date: str | date | None = None,
    end_date: str | date | None = None,
    *,
    today: date | None = None,
) -> DateRange:
    """Return the concrete inclusive range for an optional start/end request.

    Missing bounds are filled with a seven day window: a lone ``start_date``
    extends forward (never past ``today``), a lone ``end_date`` extends
    backward, and no bounds at all means the seven days ending ``today``.
    """

    today = today or utc_today()
    span = timedelta(days=DEFAULT_WINDOW_DAYS - 1)

    if start_date is not None and end_date is not None:
        start = _parse_iso_date(start_date, "start_date")
        end = _parse_iso_date(end_date, "end_date")
        _ensure_chronology(start, end)
        _ensure_not_future(start, today, "start_date")
        _ensure_not_future(end, today, "end_date")
        return DateRange(start, end)

    if start_date is not None:
        start = _parse_iso_date(start_date, "start_date")
        _ensure_not_future(start, today, "start_date")
        end = min(start + span, today)
        return DateRange(start, end)

    if end_date is not None:
        end = _parse_iso_date(end_date, "end_date")
        _ensure_not_future(end, today, "end_date")
        return DateRange(end - span, end)

    return DateRange(today - span, today)


def _parse_date_range(start: date, end: date, tz: str) -> Tuple[pd.Timestamp, pd.Timestamp]:
    """Return timezone aware timestamps covering the inclusive date range."""

    if end < start:
        raise ValueError("end must be on or after start")

    start_ts = (
        pd.Timestamp(start)
        .tz_localize(tz)
        .replace(hour=0, minute=0, second=0, microsecond=0)
    )
    end_ts = (
        pd.Timestamp(end)
        .tz_localize(tz)
        .replace(hour=23, minute=59, second=59, microsecond=999_999)
    )
    return start_ts, end_ts


def _table_suffix_condition(table_id: str, start: date | None, end: date | None) -> str | None:
    """Return the ``_TABLE_SUFFIX`` predicate for wildcard tables, if needed.

    Daily export tables are named after the property's local date, so the
    suffix window is widened by a day on each side and the ``DATE(..., @tz)``
    predicate stays authoritative.
    """

    if not table_id.endswith("*") or (start is None and end is None):
        return None

    parts = []
    if start is not None:
        lo = (start - timedelta(days=1)).strftime("%Y%m%d")
        parts.append(f"REGEXP_EXTRACT(_TABLE_SUFFIX, r'(\\d+)$') >= '{lo}'")
    if end is not None:
        hi = (end + timedelta(days=1)).strftime("%Y%m%d")
        parts.append(f"REGEXP_EXTRACT(_TABLE_SUFFIX, r'(\\d+)$') <= '{hi}'")
    return " AND ".join(parts)
