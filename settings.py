"""
settings.py – configuration injected into the text parser.

The default time-zone is the zone assigned to every event whose source does
not name one. It is ``Europe/Paris`` unless overridden, either explicitly or
through the environment:

``CALENDAR_DEFAULT_TIMEZONE``
    IANA name used as the default zone.
``CALENDAR_USE_LOCAL_TIMEZONE``
    When set to ``1``/``true``/``yes``, use the machine's own zone instead.
"""

from __future__ import annotations

import datetime
import logging
import os
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import pytz
from tzlocal import get_localzone

logger = logging.getLogger(__name__)

FALLBACK_TIMEZONE = "Europe/Paris"

# Subjects of the French secondary-school timetables the schedule
# extractor was tuned on.
KNOWN_SUBJECTS: Tuple[str, ...] = (
    "PHYSIQUE-CHIMIE",
    "MATHEMATIQUES",
    "MATHS",
    "FRANCAIS",
    "HISTOIRE-GEOGRAPHIE",
    "HIST.-GEO.",
    "ANGLAIS",
    "ANGLAIS LV1",
    "ESPAGNOL",
    "ESPAGNOL LV2",
    "ALLEMAND",
    "ALLEMAND LV2",
    "ITALIEN",
    "LATIN",
    "SVT",
    "SES",
    "EPS",
    "ED.PHYSIQUE & SPORT.",
    "PHILOSOPHIE",
    "SC.NUMERO.TECNOL.",
    "SNT",
    "NSI",
    "ENS. MORAL & CIVIQUE",
    "EMC",
    "ENSEIGN.SCIENTIFIQUE",
    "ARTS PLASTIQUES",
    "EDUCATION MUSICALE",
    "TECHNOLOGIE",
    "ACCOMPAGNEMT. PERSO.",
    "VIE DE CLASSE",
)

# (line, known_subjects) -> subjects found on that line
SubjectMatcher = Callable[[str, Sequence[str]], List[str]]


def _env_flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def resolve_timezone_name(name: Optional[str]) -> str:
    """Return *name* if pytz knows it, else the fallback zone."""
    if not name:
        return FALLBACK_TIMEZONE
    try:
        return pytz.timezone(name).zone
    except pytz.UnknownTimeZoneError:
        logger.warning("Unknown time-zone %r, using %s.", name, FALLBACK_TIMEZONE)
        return FALLBACK_TIMEZONE


def local_timezone_name() -> str:
    """Name of the machine's zone as reported by tzlocal."""
    local_timezone = get_localzone()
    return resolve_timezone_name(getattr(local_timezone, "key", str(local_timezone)))


@dataclass(frozen=True)
class ParserSettings:
    """
    Stateless configuration for :func:`event_parser.parse_text_for_events`.

    Parameters
    ----------
    default_timezone : str, default "Europe/Paris"
        Zone given to events whose source names none; floating times are
        read in this zone.
    default_duration : datetime.timedelta, default 1 hour
        Length of an event when no end is known.
    known_subjects : tuple[str, ...]
        Subject names the timetable extractor looks for first.
    subject_matcher : SubjectMatcher | None
        Replacement for the built-in timetable subject heuristics.
    """

    default_timezone: str = FALLBACK_TIMEZONE
    default_duration: datetime.timedelta = datetime.timedelta(hours=1)
    known_subjects: Tuple[str, ...] = KNOWN_SUBJECTS
    subject_matcher: Optional[SubjectMatcher] = None

    @property
    def tz(self) -> datetime.tzinfo:
        return pytz.timezone(resolve_timezone_name(self.default_timezone))

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ParserSettings":
        env = os.environ if environ is None else environ
        if _env_flag(env.get("CALENDAR_USE_LOCAL_TIMEZONE")):
            zone = local_timezone_name()
        else:
            zone = resolve_timezone_name(env.get("CALENDAR_DEFAULT_TIMEZONE"))
        logger.debug("Default time-zone: %s", zone)
        return cls(default_timezone=zone)
