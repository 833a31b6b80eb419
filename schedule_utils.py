"""
schedule_utils.py – reconstruct a weekly timetable from timetable-style text.

Timetable exports (``8H00 PHYSIQUE-CHIMIE BASSE M. B714``) rarely survive OCR
with their grid intact, so the day/column a lesson belongs to is lost. The
extractor therefore only recovers *which* subjects appear and lays them out on
synthetic weekly slots: subject ``i`` lands on weekday ``i % 5`` of the
current ISO week at ``8 + (i // 5) % 8`` o'clock. It is an approximation, not
a date parse.

The subject recognition is pluggable through
:attr:`settings.ParserSettings.subject_matcher`.
"""

from __future__ import annotations

import datetime
import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from calendar_models import CandidateEvent
from date_utils import at_time, start_of_iso_week
from settings import SubjectMatcher

logger = logging.getLogger(__name__)

TIME_MARKER_RE = re.compile(r"\b\d{1,2}H\d{2}\b")
ROOM_CODE_RE = re.compile(r"\b[A-Z]{1,2}\d{2,4}[A-Z]?\b")
# Surname followed by an initial, e.g. "BASSE M." or "DUPONT-MARTIN J.-P."
TEACHER_NAME_RE = re.compile(
    r"\b(?:M(?:ME|LLE)?\.?\s+)?[A-Z][A-Z'\-]+\s+[A-Z]\.(?:-[A-Z]\.)?(?=\s|$)"
)
BRACKETED_RE = re.compile(r"\[[^\]]*\]|\([^)]*\)|\{[^}]*\}")
CAPITALIZED_TOKEN_RE = re.compile(r"^[A-Z][A-Z0-9&'./\-]*$")

NON_SUBJECT_TOKENS = frozenset({
    "LUNDI", "MARDI", "MERCREDI", "JEUDI", "VENDREDI", "SAMEDI", "DIMANCHE",
    "MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY",
    "SALLE", "ROOM", "GR", "GR.", "GROUPE", "CLASSE", "SEMAINE", "WEEK",
    "AM", "PM", "&", "-", "/",
})

SLOT_START_HOUR = 8
SLOT_HOUR_SPAN = 8
DAYS_PER_WEEK = 5

KNOWN_SUBJECT_CONFIDENCE = 0.7
HEURISTIC_SUBJECT_CONFIDENCE = 0.5


def has_time_marker(line: str) -> bool:
    return TIME_MARKER_RE.search(line) is not None


def _whole_word(subject: str) -> "re.Pattern[str]":
    # Subjects contain dots and hyphens, so \b is not enough.
    return re.compile(r"(?<![\w.\-])" + re.escape(subject) + r"(?![\w\-])", re.IGNORECASE)


def match_known_subjects(line: str, known_subjects: Sequence[str]) -> List[str]:
    """Known subjects present on *line*, longest name first on overlaps."""
    found: List[Tuple[int, str]] = []
    taken: List[Tuple[int, int]] = []
    for subject in sorted(known_subjects, key=len, reverse=True):
        for match in _whole_word(subject).finditer(line):
            span = match.span()
            if any(span[0] < end and start < span[1] for start, end in taken):
                continue
            taken.append(span)
            found.append((span[0], subject))
    return [subject for _, subject in sorted(found)]


def _strip_non_subjects(line: str) -> str:
    text = BRACKETED_RE.sub(" ", line)
    text = TIME_MARKER_RE.sub(" ", text)
    text = TEACHER_NAME_RE.sub(" ", text)
    return ROOM_CODE_RE.sub(" ", text)


def guess_subjects(line: str) -> List[str]:
    """
    Collect runs of capitalized words / abbreviations once room codes, time
    markers, teacher names and bracketed codes are removed.
    """
    subjects: List[str] = []
    run: List[str] = []
    for token in _strip_non_subjects(line).split() + [""]:
        if token and CAPITALIZED_TOKEN_RE.match(token) and token.upper() not in NON_SUBJECT_TOKENS:
            run.append(token)
            continue
        if run:
            candidate = " ".join(run).strip(" -/")
            if len(candidate) >= 3 and any(ch.isalpha() for ch in candidate):
                subjects.append(candidate)
            run = []
    return subjects


def default_subject_matcher(line: str, known_subjects: Sequence[str]) -> List[str]:
    return match_known_subjects(line, known_subjects) or guess_subjects(line)


def weekly_slot(index: int, monday: datetime.date) -> Tuple[datetime.date, datetime.time]:
    day = monday + datetime.timedelta(days=index % DAYS_PER_WEEK)
    hour = SLOT_START_HOUR + (index // DAYS_PER_WEEK) % SLOT_HOUR_SPAN
    return day, datetime.time(hour, 0)


def extract_schedule_events(
    text: str,
    tz: datetime.tzinfo,
    timezone_name: str,
    today: datetime.date,
    known_subjects: Sequence[str],
    subject_matcher: Optional[SubjectMatcher] = None,
    duration: datetime.timedelta = datetime.timedelta(hours=1),
) -> List[CandidateEvent]:
    matcher = subject_matcher or default_subject_matcher
    known = {s.upper() for s in known_subjects}

    order: List[str] = []
    first_seen: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or not has_time_marker(line):
            continue
        try:
            subjects = matcher(line, known_subjects)
        except Exception:
            logger.exception("Subject matcher failed on line %r", line)
            continue
        for subject in subjects:
            key = subject.upper()
            if key not in first_seen:
                first_seen[key] = line
                order.append(subject)

    monday = start_of_iso_week(today)
    events: List[CandidateEvent] = []
    for index, subject in enumerate(order):
        line = first_seen[subject.upper()]
        day, clock = weekly_slot(index, monday)
        start = at_time(day, clock, tz)
        room = ROOM_CODE_RE.search(line)
        events.append(
            CandidateEvent(
                title=subject,
                start_date=start,
                end_date=start + duration,
                description=f"Weekly schedule: {line}",
                location=room.group(0) if room else "",
                timezone=timezone_name,
                confidence=(
                    KNOWN_SUBJECT_CONFIDENCE
                    if subject.upper() in known
                    else HEURISTIC_SUBJECT_CONFIDENCE
                ),
            )
        )
    logger.debug("Schedule extractor found %d subject(s).", len(events))
    return events
