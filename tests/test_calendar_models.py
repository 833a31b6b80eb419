"""Tests for candidate promotion."""

from __future__ import annotations

import datetime

import pytest

from calendar_models import CandidateEvent

pytestmark = pytest.mark.unit


def test_finalize_fills_defaults(now):
    event = CandidateEvent(start_date=now, title="   ").finalize("Europe/Paris")

    assert event.title == "Calendar Event"
    assert event.end_date == now + datetime.timedelta(hours=1)
    assert event.timezone == "Europe/Paris"
    assert event.description == ""
    assert event.location == ""
    assert event.all_day is False
    assert event.confidence is None


def test_finalize_keeps_valid_end_and_zone(now):
    end = now + datetime.timedelta(minutes=30)

    event = CandidateEvent(start_date=now, end_date=end, title="Call", timezone="Asia/Tokyo").finalize("Europe/Paris")

    assert event.end_date == end
    assert event.timezone == "Asia/Tokyo"


def test_finalize_custom_duration(now):
    event = CandidateEvent(start_date=now).finalize("Europe/Paris", datetime.timedelta(minutes=45))

    assert event.end_date - event.start_date == datetime.timedelta(minutes=45)


def test_finalize_requires_start():
    with pytest.raises(ValueError):
        CandidateEvent(title="No start").finalize("Europe/Paris")
