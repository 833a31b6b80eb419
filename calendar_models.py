"""
calendar_models.py – plain data containers shared by the parser, the ICS
writer and the export helpers.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Optional

__all__ = [
    "DEFAULT_TITLE",
    "FALLBACK_TITLE",
    "PLACEHOLDER_TITLES",
    "CalendarEvent",
    "CandidateEvent",
    "ExportResult",
]

DEFAULT_TITLE = "Calendar Event"
FALLBACK_TITLE = "Extracted Text Event"
PLACEHOLDER_TITLES = frozenset({DEFAULT_TITLE, FALLBACK_TITLE})

ONE_HOUR = datetime.timedelta(hours=1)


@dataclass(frozen=True)
class CalendarEvent:
    """A finalized event, ready to be serialized or displayed."""

    title: str
    start_date: datetime.datetime
    end_date: datetime.datetime
    description: str = ""
    location: str = ""
    all_day: bool = False
    timezone: Optional[str] = None
    confidence: Optional[float] = None


@dataclass
class CandidateEvent:
    """
    Provisional event built while scanning the input.

    Only ``start_date`` is needed for promotion; everything else gets a
    default in :meth:`finalize`.
    """

    start_date: Optional[datetime.datetime] = None
    end_date: Optional[datetime.datetime] = None
    title: Optional[str] = None
    description: str = ""
    location: str = ""
    all_day: bool = False
    timezone: Optional[str] = None
    confidence: Optional[float] = None

    @property
    def has_start(self) -> bool:
        return self.start_date is not None

    def finalize(
        self,
        default_timezone: str,
        default_duration: datetime.timedelta = ONE_HOUR,
    ) -> CalendarEvent:
        if self.start_date is None:
            raise ValueError("cannot finalize an event without a start date")

        title = (self.title or "").strip() or DEFAULT_TITLE
        end = self.end_date
        # An end before the start is treated as missing.
        if end is None or end < self.start_date:
            end = self.start_date + default_duration

        return CalendarEvent(
            title=title,
            start_date=self.start_date,
            end_date=end,
            description=self.description or "",
            location=self.location or "",
            all_day=self.all_day,
            timezone=self.timezone or default_timezone,
            confidence=self.confidence,
        )


@dataclass(frozen=True)
class ExportResult:
    success: bool
    message: str
    filename: Optional[str] = None
