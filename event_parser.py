"""
event_parser.py – turn arbitrary upstream text into a list of calendar events.

The text handed over by the OCR / AI step can be any of

* a JSON object with an ``events`` array (possibly wrapped in prose),
* iCalendar property lines (``DTSTART:...``, ``SUMMARY:...``),
* a timetable export with ``8H00``-style time markers,
* free natural-language lines.

:func:`classify_text` picks exactly one of those shapes, the matching
extractor produces :class:`CandidateEvent` records, duplicates are collapsed
and, if nothing survived, a single fallback event carrying the whole input is
returned. :func:`parse_text_for_events` never raises and never returns an
empty list.

Example
-------
>>> from event_parser import parse_text_for_events
>>> events = parse_text_for_events("Team Meeting 2025-01-15 2:00 PM")
>>> events[0].title
'Team Meeting'
"""

from __future__ import annotations

import datetime
import enum
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from calendar_models import (
    DEFAULT_TITLE,
    FALLBACK_TITLE,
    CalendarEvent,
    CandidateEvent,
)
from date_utils import (
    DEFAULT_TIME_OF_DAY,
    ISO_DATE_FORMATS,
    MONTH_NAME_FORMATS,
    US_NUMERIC_FORMATS,
    at_time,
    get_timezone,
    local_now,
    parse_date_time,
    parse_ics_datetime,
    parse_time_of_day,
    resolve_relative_date,
)
from schedule_utils import extract_schedule_events, has_time_marker
from settings import ParserSettings

__all__ = [
    "TextFormat",
    "LinePattern",
    "NATURAL_LANGUAGE_PATTERNS",
    "ICalendarLineParser",
    "classify_text",
    "find_json_events",
    "extract_candidates",
    "dedupe_events",
    "parse_text_for_events",
]

logger = logging.getLogger(__name__)

ICAL_PROPERTY_RE = re.compile(r"^(DTSTART|DTEND|DTSTAMP|SUMMARY|DESCRIPTION)[:;]")
TITLE_PREFIX_RE = re.compile(r"^(?:meeting|appointment|event)\b:?\s*", re.IGNORECASE)
ICS_ESCAPE_RE = re.compile(r"\\([\\;,nN])")

JSON_FALLBACK_DESCRIPTION = "Extracted from JSON format"
ICAL_FALLBACK_DESCRIPTION = "Extracted from iCalendar format"
FALLBACK_CONFIDENCE = 0.3
DETERMINISTIC_CONFIDENCE = 1.0


class TextFormat(enum.Enum):
    JSON_EVENTS = "json"
    ICALENDAR_PROPERTIES = "icalendar"
    SCHEDULE_TABLE = "schedule"
    NATURAL_LANGUAGE = "natural-language"


@dataclass(frozen=True)
class _ParseContext:
    settings: ParserSettings
    tz: datetime.tzinfo
    timezone_name: str
    now: datetime.datetime


# --------------------------------------------------------------------------- #
# Format sniffing                                                             #
# --------------------------------------------------------------------------- #
def _matching_brace(text: str, start: int) -> Optional[int]:
    """Index of the ``}`` closing the ``{`` at *start*, ignoring JSON strings."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return None


def _as_events_payload(blob: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(blob)
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, dict) and isinstance(parsed.get("events"), list):
        return parsed
    return None


def find_json_events(text: str) -> Optional[Dict[str, Any]]:
    """
    Return the JSON object holding an ``events`` array, or None.

    The whole text is tried first; otherwise the first balanced ``{...}``
    blob containing ``"events"`` is used, so prose around the JSON is fine.
    """
    if not isinstance(text, str) or "{" not in text:
        return None

    payload = _as_events_payload(text.strip())
    if payload is not None:
        return payload

    start = text.find("{")
    while start != -1:
        end = _matching_brace(text, start)
        if end is not None:
            blob = text[start:end + 1]
            if '"events"' in blob:
                payload = _as_events_payload(blob)
                if payload is not None:
                    return payload
        start = text.find("{", start + 1)
    return None


def classify_text(text: str) -> TextFormat:
    """Pick the input shape. JSON is checked first, natural language last."""
    if find_json_events(text) is not None:
        return TextFormat.JSON_EVENTS

    lines = [line.strip() for line in (text or "").splitlines()]
    if any(ICAL_PROPERTY_RE.match(line) for line in lines):
        return TextFormat.ICALENDAR_PROPERTIES
    if any(has_time_marker(line) for line in lines):
        return TextFormat.SCHEDULE_TABLE
    return TextFormat.NATURAL_LANGUAGE


# --------------------------------------------------------------------------- #
# JSON events                                                                 #
# --------------------------------------------------------------------------- #
def _text_field(item: Dict[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _zone_for(tzid: str, ctx: _ParseContext):
    zone = get_timezone(tzid, ctx.tz)
    return zone, getattr(zone, "zone", None) or ctx.timezone_name


def _fallback_candidate(description: str, ctx: _ParseContext, title: str = DEFAULT_TITLE) -> CandidateEvent:
    return CandidateEvent(
        title=title,
        description=description,
        start_date=ctx.now,
        end_date=ctx.now + ctx.settings.default_duration,
        timezone=ctx.timezone_name,
        confidence=FALLBACK_CONFIDENCE,
    )


def extract_json_events(payload: Dict[str, Any], ctx: _ParseContext) -> List[CandidateEvent]:
    events: List[CandidateEvent] = []
    for position, item in enumerate(payload.get("events") or []):
        if not isinstance(item, dict):
            logger.debug("Skipping JSON event #%d: not an object", position)
            continue

        zone, zone_name = _zone_for(_text_field(item, "TZID"), ctx)
        start = parse_ics_datetime(item.get("DTSTART"), zone)
        if start is None:
            logger.debug("Skipping JSON event #%d: bad DTSTART %r", position, item.get("DTSTART"))
            continue

        events.append(
            CandidateEvent(
                title=_text_field(item, "SUMMARY") or DEFAULT_TITLE,
                start_date=start,
                end_date=parse_ics_datetime(item.get("DTEND"), zone),
                description=_text_field(item, "DESCRIPTION"),
                location=_text_field(item, "LOCATION"),
                timezone=zone_name,
                confidence=DETERMINISTIC_CONFIDENCE,
            )
        )

    if not events:
        events.append(_fallback_candidate(JSON_FALLBACK_DESCRIPTION, ctx))
    return events


# --------------------------------------------------------------------------- #
# iCalendar property lines                                                    #
# --------------------------------------------------------------------------- #
def unescape_text(value: str) -> str:
    def _replace(match: "re.Match[str]") -> str:
        char = match.group(1)
        return "\n" if char in "nN" else char

    return ICS_ESCAPE_RE.sub(_replace, value)


class ICalendarLineParser:
    """
    Line-oriented state machine over ``BEGIN:VEVENT`` / ``END:VEVENT``.

    States are ``OUTSIDE`` and ``IN_EVENT``. Property lines update the
    pending record in both states, so fragments without any BEGIN/END pair
    still produce an event once the input ends.
    """

    OUTSIDE = "outside"
    IN_EVENT = "in-event"

    def __init__(self, ctx: _ParseContext) -> None:
        self.ctx = ctx
        self.state = self.OUTSIDE
        self.pending = CandidateEvent(confidence=DETERMINISTIC_CONFIDENCE)
        self.events: List[CandidateEvent] = []
        # Depth of other components (VTIMEZONE, VALARM, ...) being skipped.
        self._nested = 0

    def feed(self, raw_line: str) -> None:
        line = raw_line.strip()
        if not line:
            return
        upper = line.upper()

        if upper == "BEGIN:VEVENT":
            self._flush()
            self.state = self.IN_EVENT
            self._nested = 0
            return
        if upper == "END:VEVENT":
            self._flush()
            self.state = self.OUTSIDE
            return
        if upper.startswith("BEGIN:"):
            if upper != "BEGIN:VCALENDAR":
                self._nested += 1
            return
        if upper.startswith("END:"):
            if upper != "END:VCALENDAR" and self._nested:
                self._nested -= 1
            return
        if not self._nested:
            self._apply_property(line)

    def close(self) -> List[CandidateEvent]:
        self._flush()
        if not self.events:
            self.events.append(_fallback_candidate(ICAL_FALLBACK_DESCRIPTION, self.ctx))
        return self.events

    def _flush(self) -> None:
        if self.pending.has_start:
            self.events.append(self.pending)
        self.pending = CandidateEvent(confidence=DETERMINISTIC_CONFIDENCE)

    def _apply_property(self, line: str) -> None:
        head, sep, value = line.partition(":")
        if not sep:
            return
        name, *raw_params = head.split(";")
        name = name.strip().upper()
        params = {}
        for raw in raw_params:
            key, _, param_value = raw.partition("=")
            params[key.strip().upper()] = param_value.strip().strip('"')

        pending = self.pending
        if name == "SUMMARY":
            pending.title = unescape_text(value).strip()
        elif name == "DESCRIPTION":
            pending.description = unescape_text(value).strip()
        elif name == "LOCATION":
            pending.location = unescape_text(value).strip()
        elif name in ("DTSTART", "DTEND", "DTSTAMP"):
            zone, zone_name = _zone_for(params.get("TZID", ""), self.ctx)
            moment = parse_ics_datetime(value, zone)
            if moment is None:
                logger.debug("Ignoring unreadable %s value %r", name, value)
                return
            if name == "DTSTART":
                pending.start_date = moment
                if params.get("TZID"):
                    pending.timezone = zone_name
            elif name == "DTEND":
                pending.end_date = moment
            elif pending.start_date is None:
                pending.start_date = moment


def extract_icalendar_events(text: str, ctx: _ParseContext) -> List[CandidateEvent]:
    parser = ICalendarLineParser(ctx)
    for line in text.splitlines():
        parser.feed(line)
    return parser.close()


# --------------------------------------------------------------------------- #
# Natural language                                                            #
# --------------------------------------------------------------------------- #
_MONTH = (
    r"(?:jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
    r"aug(?:ust)?|sep(?:tember)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
)
_CLOCK = r"\d{1,2}:\d{2}(?:\s*[ap]\.?m\.?)?"


@dataclass(frozen=True)
class LinePattern:
    """
    One row of the natural-language pattern table.

    ``kind`` is ``"absolute"`` (``date`` group read with ``date_formats``),
    ``"relative"`` (``date`` group is a relative phrase) or ``"timestamp"``
    (``date`` group is a basic iCalendar timestamp). Patterns without a
    ``title`` group take the rest of the line as title.
    """

    name: str
    regex: "re.Pattern[str]"
    base_confidence: float
    kind: str = "absolute"
    date_formats: Sequence[str] = ()


NATURAL_LANGUAGE_PATTERNS: Sequence[LinePattern] = (
    LinePattern(
        "month-name",
        re.compile(
            r"^(?P<title>.*?)\s*(?:\bon\s+)?\b(?P<date>" + _MONTH + r"\s+\d{1,2},?\s+\d{4})"
            r"(?:\s+at)?\s+(?P<time>" + _CLOCK + r")",
            re.IGNORECASE,
        ),
        0.9,
        date_formats=MONTH_NAME_FORMATS,
    ),
    LinePattern(
        "us-numeric",
        re.compile(
            r"^(?P<title>.*?):?\s*\b(?P<date>\d{1,2}/\d{1,2}/\d{4})(?:\s+at)?\s+(?P<time>" + _CLOCK + r")",
            re.IGNORECASE,
        ),
        0.85,
        date_formats=US_NUMERIC_FORMATS,
    ),
    LinePattern(
        "iso-date",
        re.compile(
            r"^(?P<title>.*?)\s*\b(?P<date>\d{4}-\d{2}-\d{2})(?:\s+at)?\s+(?P<time>" + _CLOCK + r")",
            re.IGNORECASE,
        ),
        0.9,
        date_formats=ISO_DATE_FORMATS,
    ),
    LinePattern(
        "relative",
        re.compile(
            r"^(?P<title>.*?)\s*\b(?P<date>today|tonight|tomorrow|next\s+friday)\b"
            r"(?:\s+at\s+(?P<time>" + _CLOCK + r"|\d{1,2}\s*[ap]\.?m\.?))?",
            re.IGNORECASE,
        ),
        0.8,
        kind="relative",
    ),
    LinePattern(
        "ics-timestamp",
        re.compile(r"\b(?P<date>\d{8}T\d{6}Z?)\b", re.IGNORECASE),
        0.95,
        kind="timestamp",
    ),
)


def clean_title(raw: str) -> str:
    title = raw.strip().strip(":-,").strip()
    title = TITLE_PREFIX_RE.sub("", title).strip()
    if len(title) < 2:
        return DEFAULT_TITLE
    return title


def _resolve_match(pattern: LinePattern, match: "re.Match[str]", ctx: _ParseContext):
    """Return ``(start, confidence)`` for a pattern match, or None."""
    groups = match.groupdict()
    date_text = groups.get("date") or ""
    time_text = groups.get("time")

    if pattern.kind == "timestamp":
        start = parse_ics_datetime(date_text, ctx.tz)
        return (start, pattern.base_confidence) if start else None

    if pattern.kind == "relative":
        day = resolve_relative_date(date_text, ctx.now.date())
        if day is None:
            return None
        confidence = pattern.base_confidence
        clock = parse_time_of_day(time_text) if time_text else None
        if clock is None:
            clock = DEFAULT_TIME_OF_DAY
            confidence /= 2
        return at_time(day, clock, ctx.tz), confidence

    start = parse_date_time(date_text, time_text, pattern.date_formats, ctx.tz)
    return (start, pattern.base_confidence) if start else None


def extract_natural_language_events(
    text: str,
    ctx: _ParseContext,
    patterns: Sequence[LinePattern] = NATURAL_LANGUAGE_PATTERNS,
) -> List[CandidateEvent]:
    events: List[CandidateEvent] = []
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        for pattern in patterns:
            match = pattern.regex.search(line)
            if not match:
                continue
            resolved = _resolve_match(pattern, match, ctx)
            if resolved is None:
                logger.debug("Pattern %s matched %r but the date is invalid", pattern.name, line)
                continue

            start, confidence = resolved
            if "title" in pattern.regex.groupindex:
                raw_title = match.group("title") or ""
            else:
                raw_title = line[:match.start()] + " " + line[match.end():]
            events.append(
                CandidateEvent(
                    title=clean_title(raw_title),
                    start_date=start,
                    description=f"Extracted from: {line}",
                    timezone=ctx.timezone_name,
                    confidence=round(confidence, 3),
                )
            )
            break
    return events


# --------------------------------------------------------------------------- #
# Dispatch                                                                    #
# --------------------------------------------------------------------------- #
def _extract_json(text: str, ctx: _ParseContext) -> List[CandidateEvent]:
    return extract_json_events(find_json_events(text) or {"events": []}, ctx)


def _extract_schedule(text: str, ctx: _ParseContext) -> List[CandidateEvent]:
    settings = ctx.settings
    return extract_schedule_events(
        text,
        tz=ctx.tz,
        timezone_name=ctx.timezone_name,
        today=ctx.now.date(),
        known_subjects=settings.known_subjects,
        subject_matcher=settings.subject_matcher,
        duration=settings.default_duration,
    )


EXTRACTORS: Dict[TextFormat, Callable[[str, _ParseContext], List[CandidateEvent]]] = {
    TextFormat.JSON_EVENTS: _extract_json,
    TextFormat.ICALENDAR_PROPERTIES: extract_icalendar_events,
    TextFormat.SCHEDULE_TABLE: _extract_schedule,
    TextFormat.NATURAL_LANGUAGE: extract_natural_language_events,
}


def extract_candidates(text: str, text_format: TextFormat, ctx: _ParseContext) -> List[CandidateEvent]:
    return EXTRACTORS[text_format](text, ctx)


def dedupe_events(events: Iterable[CalendarEvent]) -> List[CalendarEvent]:
    """Keep the first event of every ``(title, start instant)`` pair, in order."""
    seen = set()
    unique: List[CalendarEvent] = []
    for event in events:
        key = (event.title, event.start_date)
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique


def _make_context(settings: ParserSettings, now: Optional[datetime.datetime]) -> _ParseContext:
    tz = settings.tz
    return _ParseContext(
        settings=settings,
        tz=tz,
        timezone_name=getattr(tz, "zone", settings.default_timezone),
        now=local_now(tz, now),
    )


def parse_text_for_events(
    text: str,
    settings: Optional[ParserSettings] = None,
    now: Optional[datetime.datetime] = None,
) -> List[CalendarEvent]:
    """
    Extract calendar events from *text*.

    Parameters
    ----------
    text : str
        Raw upstream text (JSON, iCalendar lines, timetable or prose).
    settings : ParserSettings, optional
        Default time-zone and timetable options. ``ParserSettings()`` if omitted.
    now : datetime.datetime, optional
        Reference instant for relative dates and fallback events.

    Returns
    -------
    list[CalendarEvent]
        Never empty.
    """
    settings = settings or ParserSettings()
    if not isinstance(text, str):
        text = ""
    ctx = _make_context(settings, now)

    events: List[CalendarEvent] = []
    try:
        text_format = classify_text(text)
        logger.info("Input classified as %s.", text_format.value)
        candidates = extract_candidates(text, text_format, ctx)
        finalized = [
            candidate.finalize(ctx.timezone_name, settings.default_duration)
            for candidate in candidates
            if candidate.has_start
        ]
        events = dedupe_events(finalized)
    except Exception:
        logger.exception("Event extraction failed; using the fallback event.")
        events = []

    if not events:
        logger.info("No events found in %d character(s) of text.", len(text))
        fallback = _fallback_candidate(text, ctx, title=FALLBACK_TITLE)
        return [fallback.finalize(ctx.timezone_name, settings.default_duration)]

    logger.info("Extracted %d event(s).", len(events))
    return events
