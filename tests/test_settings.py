"""Tests for parser configuration and time-zone resolution."""

from __future__ import annotations

import datetime
from types import SimpleNamespace

import pytest

import settings as settings_module
from settings import FALLBACK_TIMEZONE, ParserSettings, resolve_timezone_name

pytestmark = pytest.mark.unit


def test_defaults():
    settings = ParserSettings()

    assert settings.default_timezone == "Europe/Paris"
    assert settings.default_duration == datetime.timedelta(hours=1)
    assert "PHYSIQUE-CHIMIE" in settings.known_subjects
    assert settings.tz.zone == "Europe/Paris"


def test_resolve_timezone_name():
    assert resolve_timezone_name("America/New_York") == "America/New_York"
    assert resolve_timezone_name("Not/AZone") == FALLBACK_TIMEZONE
    assert resolve_timezone_name(None) == FALLBACK_TIMEZONE


def test_unknown_default_zone_still_yields_a_tz():
    assert ParserSettings(default_timezone="Not/AZone").tz.zone == FALLBACK_TIMEZONE


@pytest.mark.parametrize(
    "environ, expected",
    [
        ({}, "Europe/Paris"),
        ({"CALENDAR_DEFAULT_TIMEZONE": "Asia/Tokyo"}, "Asia/Tokyo"),
        ({"CALENDAR_DEFAULT_TIMEZONE": "bogus"}, "Europe/Paris"),
    ],
)
def test_from_env(environ, expected):
    assert ParserSettings.from_env(environ).default_timezone == expected


def test_from_env_local_zone(monkeypatch):
    monkeypatch.setattr(settings_module, "get_localzone", lambda: SimpleNamespace(key="America/Chicago"))

    settings = ParserSettings.from_env({"CALENDAR_USE_LOCAL_TIMEZONE": "true", "CALENDAR_DEFAULT_TIMEZONE": "Asia/Tokyo"})

    assert settings.default_timezone == "America/Chicago"
