"""
date_utils.py – turn raw date / time tokens into time-zone aware datetimes.

Every helper returns ``None`` for input it does not understand instead of
raising, so the extractors can simply skip that fragment.
"""

from __future__ import annotations

import datetime
import logging
import re
from typing import Optional, Sequence

import pytz

logger = logging.getLogger(__name__)

ICS_DATETIME_RE = re.compile(r"^(\d{8}T\d{6})(Z?)$", re.IGNORECASE)
ICS_DATE_RE = re.compile(r"^\d{8}$")
MERIDIEM_RE = re.compile(r"\s*([AP])\.?M\.?$", re.IGNORECASE)

MONTH_NAME_FORMATS = ("%B %d %Y", "%b %d %Y")
US_NUMERIC_FORMATS = ("%m/%d/%Y",)
ISO_DATE_FORMATS = ("%Y-%m-%d",)
TIME_FORMATS = ("%I:%M %p", "%I %p", "%H:%M")

RELATIVE_DAY_OFFSETS = {"today": 0, "tonight": 0, "tomorrow": 1}
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

DEFAULT_TIME_OF_DAY = datetime.time(9, 0)


def get_timezone(name: Optional[str], fallback: datetime.tzinfo) -> datetime.tzinfo:
    """pytz zone for *name*, or *fallback* when missing / unknown."""
    if not name:
        return fallback
    try:
        return pytz.timezone(name.strip())
    except pytz.UnknownTimeZoneError:
        logger.debug("Ignoring unknown TZID %r", name)
        return fallback


def localize(naive: datetime.datetime, tz: datetime.tzinfo) -> datetime.datetime:
    """Attach *tz* to a naive wall-clock datetime."""
    if hasattr(tz, "localize"):
        return tz.localize(naive)
    return naive.replace(tzinfo=tz)


def parse_ics_datetime(token: Optional[str], tz: datetime.tzinfo) -> Optional[datetime.datetime]:
    """
    Parse an iCalendar date token.

    ``YYYYMMDDTHHMMSSZ`` is UTC, ``YYYYMMDDTHHMMSS`` is wall-clock time in
    *tz* and ``YYYYMMDD`` is midnight in *tz*. Any other shape yields None.
    """
    if not isinstance(token, str):
        return None
    token = token.strip()

    match = ICS_DATETIME_RE.match(token)
    try:
        if match:
            naive = datetime.datetime.strptime(match.group(1).upper(), "%Y%m%dT%H%M%S")
            if match.group(2):
                return pytz.utc.localize(naive)
            return localize(naive, tz)
        if ICS_DATE_RE.match(token):
            return localize(datetime.datetime.strptime(token, "%Y%m%d"), tz)
    except ValueError:
        logger.debug("Invalid calendar date token %r", token)
    return None


def parse_time_of_day(text: Optional[str]) -> Optional[datetime.time]:
    """Accepts ``2:00 PM``, ``2:00pm``, ``2 PM``, ``14:00``."""
    if not text:
        return None
    cleaned = " ".join(text.split())
    cleaned = MERIDIEM_RE.sub(lambda m: f" {m.group(1).upper()}M", cleaned).strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    return None


def parse_calendar_date(text: str, formats: Sequence[str]) -> Optional[datetime.date]:
    cleaned = " ".join(text.replace(",", " ").split())
    for fmt in formats:
        try:
            return datetime.datetime.strptime(cleaned, fmt).date()
        except ValueError:
            continue
    return None


def parse_date_time(
    date_text: str,
    time_text: Optional[str],
    formats: Sequence[str],
    tz: datetime.tzinfo,
) -> Optional[datetime.datetime]:
    """
    Combine a date and an optional time into an aware datetime.

    A time that is given but cannot be read makes the whole value invalid;
    a missing time means midnight.
    """
    day = parse_calendar_date(date_text, formats)
    if day is None:
        return None

    clock = datetime.time(0, 0)
    if time_text:
        parsed = parse_time_of_day(time_text)
        if parsed is None:
            return None
        clock = parsed
    return localize(datetime.datetime.combine(day, clock), tz)


def next_weekday(today: datetime.date, weekday: int) -> datetime.date:
    """Next *weekday* strictly after *today* (a week ahead if it is today)."""
    days_ahead = (weekday - today.weekday()) % 7 or 7
    return today + datetime.timedelta(days=days_ahead)


def resolve_relative_date(phrase: str, today: datetime.date) -> Optional[datetime.date]:
    """Resolve ``today``, ``tonight``, ``tomorrow`` and ``next <weekday>``."""
    words = phrase.strip().lower().split()
    if len(words) == 1 and words[0] in RELATIVE_DAY_OFFSETS:
        return today + datetime.timedelta(days=RELATIVE_DAY_OFFSETS[words[0]])
    if len(words) == 2 and words[0] == "next" and words[1] in WEEKDAYS:
        return next_weekday(today, WEEKDAYS.index(words[1]))
    return None


def local_now(tz: datetime.tzinfo, now: Optional[datetime.datetime] = None) -> datetime.datetime:
    """*now* (or the wall clock) expressed in *tz*."""
    if now is None:
        return datetime.datetime.now(tz)
    if now.tzinfo is None:
        return localize(now, tz)
    return now.astimezone(tz)


def start_of_iso_week(day: datetime.date) -> datetime.date:
    """Monday of the ISO week containing *day*."""
    return day - datetime.timedelta(days=day.weekday())


def at_time(day: datetime.date, clock: datetime.time, tz: datetime.tzinfo) -> datetime.datetime:
    return localize(datetime.datetime.combine(day, clock), tz)
