"""
calendar_utils.py – utility for converting a list of :class:`CalendarEvent`
objects into an RFC 5545‑flavoured *.ics* calendar and handing it over for
download.

Only the subset of iCalendar the extractor produces is written: one
``VEVENT`` per event with UID, DTSTAMP, DTSTART, DTEND, SUMMARY and the
optional DESCRIPTION / LOCATION. Timed values carry a ``TZID`` parameter
naming the event's time-zone (UTC with a ``Z`` suffix when the event has no
usable zone), so :mod:`event_parser` reads back the same instant.
"""

from __future__ import annotations

import datetime
import logging
import os
import re
from typing import Callable, List, Optional, Sequence

import pytz

from calendar_models import PLACEHOLDER_TITLES, CalendarEvent, ExportResult

__all__ = [
    "ICS_MIME_TYPE",
    "PRODID",
    "escape_text",
    "format_ics_date",
    "generate_ics",
    "validate_ics",
    "derive_filename",
    "save_ics_file",
    "export_events",
]

logger = logging.getLogger(__name__)

PRODID = "-//Custom Calendar//NONSGML v1.0//EN"
UID_DOMAIN = "calendar-event-extractor"
ICS_MIME_TYPE = "text/calendar;charset=utf-8"
CRLF = "\r\n"

DEFAULT_BASENAME = "calendar-events"
MAX_BASENAME_LENGTH = 20

# (content, filename, mime_type) -> None
Deliver = Callable[[bytes, str, str], None]


# --------------------------------------------------------------------------- #
# Serialization                                                               #
# --------------------------------------------------------------------------- #
def escape_text(text: str) -> str:
    """Escape a TEXT value. Backslashes go first so later escapes survive."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return (
        text.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def _event_zone(event: CalendarEvent) -> Optional[datetime.tzinfo]:
    if not event.timezone:
        return None
    try:
        return pytz.timezone(event.timezone)
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown time-zone %r on '%s'; writing UTC.", event.timezone, event.title)
        return None


def format_ics_date(
    value: datetime.datetime,
    all_day: bool = False,
    tz: Optional[datetime.tzinfo] = None,
) -> str:
    """``YYYYMMDD`` for all-day values, ``YYYYMMDDTHHMMSS`` otherwise."""
    if tz is not None and value.tzinfo is not None:
        value = value.astimezone(tz)
    if all_day:
        return value.strftime("%Y%m%d")
    return value.strftime("%Y%m%dT%H%M%S")


def _date_property(name: str, value: datetime.datetime, event: CalendarEvent, tz: Optional[datetime.tzinfo]) -> str:
    """``DTSTART;TZID=<zone>:...`` for zoned timed values, ``...Z`` for unzoned aware ones."""
    if event.all_day:
        return f"{name}:{format_ics_date(value, True, tz)}"
    if tz is not None:
        return f"{name};TZID={getattr(tz, 'zone', event.timezone)}:{format_ics_date(value, tz=tz)}"
    if value.tzinfo is not None:
        return f"{name}:{format_ics_date(value, tz=pytz.utc)}Z"
    return f"{name}:{format_ics_date(value)}"


def generate_ics(events: Sequence[CalendarEvent], now: Optional[datetime.datetime] = None) -> str:
    """
    Render *events* as iCalendar text.

    Parameters
    ----------
    events : Sequence[CalendarEvent]
        Events in the order they should appear.
    now : datetime.datetime, optional
        DTSTAMP / UID source; the current UTC time if omitted.

    Returns
    -------
    str
        CRLF-joined calendar text (no trailing newline).
    """
    stamp: datetime.datetime = now or datetime.datetime.now(pytz.utc)
    if stamp.tzinfo is None:
        stamp = pytz.utc.localize(stamp)
    dtstamp: str = format_ics_date(stamp, tz=pytz.utc) + "Z"
    millis: int = int(stamp.timestamp() * 1000)

    lines: List[str] = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
    ]

    for index, event in enumerate(events):
        tz = _event_zone(event)
        lines.extend(
            [
                "BEGIN:VEVENT",
                f"UID:event-{millis}-{index}@{UID_DOMAIN}",
                f"DTSTAMP:{dtstamp}",
                _date_property("DTSTART", event.start_date, event, tz),
                _date_property("DTEND", event.end_date, event, tz),
                f"SUMMARY:{escape_text(event.title)}",
            ]
        )
        # Empty optional properties are left out entirely.
        if event.description:
            lines.append(f"DESCRIPTION:{escape_text(event.description)}")
        if event.location:
            lines.append(f"LOCATION:{escape_text(event.location)}")
        lines.append("END:VEVENT")

    lines.append("END:VCALENDAR")
    return CRLF.join(lines)


# --------------------------------------------------------------------------- #
# Validation                                                                  #
# --------------------------------------------------------------------------- #
def validate_ics(ics_text: str) -> bool:
    """Structural sanity check of generated calendar text. Never raises."""
    if not isinstance(ics_text, str):
        return False

    lines = ics_text.split(CRLF)
    if "BEGIN:VCALENDAR" not in lines or "END:VCALENDAR" not in lines:
        return False
    if "BEGIN:VEVENT" not in lines:
        return False

    has_version = any(line.startswith("VERSION:") for line in lines)
    has_prodid = any(line.startswith("PRODID:") for line in lines)
    return has_version and has_prodid


# --------------------------------------------------------------------------- #
# Export                                                                      #
# --------------------------------------------------------------------------- #
def derive_filename(events: Sequence[CalendarEvent], now: Optional[datetime.datetime] = None) -> str:
    """``<base>-<count>events-<YYYY-MM-DD>.ics`` with base taken from the first title."""
    today: str = (now or datetime.datetime.now(pytz.utc)).strftime("%Y-%m-%d")

    base_name: str = DEFAULT_BASENAME
    title = events[0].title if events else ""
    if title and title not in PLACEHOLDER_TITLES:
        cleaned = re.sub(r"[^a-z0-9\s-]", "", title.lower()).strip()
        cleaned = re.sub(r"\s+", "-", cleaned)[:MAX_BASENAME_LENGTH]
        base_name = cleaned or DEFAULT_BASENAME

    return f"{base_name}-{len(events)}events-{today}.ics"


def save_ics_file(
    content: bytes,
    filename: str,
    mime_type: str = ICS_MIME_TYPE,
    directory: Optional[str] = None,
) -> str:
    """Default delivery: write the calendar into *directory* (cwd by default)."""
    path = os.path.join(directory or os.getcwd(), filename)
    with open(path, "wb") as file:
        file.write(content)
    logger.info("ICS file saved as %s (%s)", path, mime_type)
    return path


def export_events(
    events: Sequence[CalendarEvent],
    filename: Optional[str] = None,
    deliver: Optional[Deliver] = None,
    now: Optional[datetime.datetime] = None,
) -> ExportResult:
    """
    Serialize, validate and deliver *events*.

    Failures are reported through the returned :class:`ExportResult`;
    nothing raised by serialization or by *deliver* escapes.
    """
    try:
        if not events:
            return ExportResult(success=False, message="No events to download")

        ics_content = generate_ics(events, now)
        if not validate_ics(ics_content):
            logger.error("Generated calendar failed validation.")
            return ExportResult(success=False, message="Generated calendar content is invalid")

        final_name = filename or derive_filename(events, now)
        (deliver or save_ics_file)(ics_content.encode("utf-8"), final_name, ICS_MIME_TYPE)

        count = len(events)
        noun = "event" if count == 1 else "events"
        return ExportResult(
            success=True,
            message=f"Downloaded {count} {noun} successfully",
            filename=final_name,
        )
    except Exception:
        logger.exception("Error exporting ICS file")
        return ExportResult(
            success=False,
            message="Failed to download calendar file. Please try again.",
        )
