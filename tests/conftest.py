"""Shared fixtures: a fixed reference instant and default parser settings."""

from __future__ import annotations

import datetime

import pytest
import pytz

from calendar_models import CalendarEvent
from settings import ParserSettings

PARIS = pytz.timezone("Europe/Paris")


@pytest.fixture
def paris():
    return PARIS


@pytest.fixture
def settings() -> ParserSettings:
    return ParserSettings()


@pytest.fixture
def now() -> datetime.datetime:
    # Wednesday 15 January 2025, 10:30 in Paris.
    return PARIS.localize(datetime.datetime(2025, 1, 15, 10, 30))


@pytest.fixture
def make_event():
    def _make(title="Test Event", start=None, **kwargs) -> CalendarEvent:
        start = start or PARIS.localize(datetime.datetime(2025, 1, 15, 14, 0))
        kwargs.setdefault("end_date", start + datetime.timedelta(hours=1))
        kwargs.setdefault("timezone", "Europe/Paris")
        return CalendarEvent(title=title, start_date=start, **kwargs)

    return _make
