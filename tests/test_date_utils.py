"""Unit tests for the date / time token helpers."""

from __future__ import annotations

import datetime

import pytest
import pytz

import date_utils
from date_utils import (
    ISO_DATE_FORMATS,
    MONTH_NAME_FORMATS,
    US_NUMERIC_FORMATS,
    next_weekday,
    parse_date_time,
    parse_ics_datetime,
    parse_time_of_day,
    resolve_relative_date,
    start_of_iso_week,
)

pytestmark = pytest.mark.unit


def test_ics_datetime_with_z_is_utc(paris):
    value = parse_ics_datetime("20250915T080000Z", paris)

    assert value == pytz.utc.localize(datetime.datetime(2025, 9, 15, 8, 0))
    assert value.utcoffset() == datetime.timedelta(0)


def test_ics_datetime_without_z_is_read_in_given_zone(paris):
    value = parse_ics_datetime("20231003T120000", paris)

    assert (value.hour, value.minute) == (12, 0)
    # October 3rd is still summer time in Paris.
    assert value.utcoffset() == datetime.timedelta(hours=2)


def test_ics_date_only_is_midnight(paris):
    value = parse_ics_datetime("20250915", paris)

    assert value == paris.localize(datetime.datetime(2025, 9, 15))


@pytest.mark.parametrize(
    "token",
    ["invalid-date", "20251345T000000", "2025-09-15T08:00:00Z", "", None, 20250915],
)
def test_ics_datetime_rejects_other_shapes(paris, token):
    assert parse_ics_datetime(token, paris) is None


@pytest.mark.parametrize(
    "text, expected",
    [
        ("2:00 PM", datetime.time(14, 0)),
        ("2:00pm", datetime.time(14, 0)),
        ("10:30 a.m.", datetime.time(10, 30)),
        ("12:15 AM", datetime.time(0, 15)),
        ("2 PM", datetime.time(14, 0)),
        ("14:00", datetime.time(14, 0)),
        ("9:05", datetime.time(9, 5)),
    ],
)
def test_parse_time_of_day(text, expected):
    assert parse_time_of_day(text) == expected


@pytest.mark.parametrize("text", ["", None, "25:00", "noon"])
def test_parse_time_of_day_invalid(text):
    assert parse_time_of_day(text) is None


def test_parse_date_time_month_name(paris):
    value = parse_date_time("December 25, 2024", "10:30 AM", MONTH_NAME_FORMATS, paris)

    assert value == paris.localize(datetime.datetime(2024, 12, 25, 10, 30))


def test_parse_date_time_abbreviated_month(paris):
    value = parse_date_time("Jan 5 2025", "9:00", MONTH_NAME_FORMATS, paris)

    assert value == paris.localize(datetime.datetime(2025, 1, 5, 9, 0))


def test_parse_date_time_numeric_formats(paris):
    assert parse_date_time("01/15/2025", "14:00", US_NUMERIC_FORMATS, paris) == paris.localize(
        datetime.datetime(2025, 1, 15, 14, 0)
    )
    assert parse_date_time("2025-01-15", "2:00 PM", ISO_DATE_FORMATS, paris) == paris.localize(
        datetime.datetime(2025, 1, 15, 14, 0)
    )


def test_parse_date_time_invalid_date_or_time(paris):
    assert parse_date_time("2025-13-45", "10:00", ISO_DATE_FORMATS, paris) is None
    assert parse_date_time("2025-01-15", "99:99", ISO_DATE_FORMATS, paris) is None


def test_parse_date_time_without_time_is_midnight(paris):
    value = parse_date_time("2025-01-15", None, ISO_DATE_FORMATS, paris)

    assert value == paris.localize(datetime.datetime(2025, 1, 15))


def test_next_weekday_is_strictly_after_today():
    wednesday = datetime.date(2025, 1, 15)
    friday = datetime.date(2025, 1, 17)

    assert next_weekday(wednesday, 4) == friday
    assert next_weekday(friday, 4) == datetime.date(2025, 1, 24)


@pytest.mark.parametrize(
    "phrase, expected",
    [
        ("today", datetime.date(2025, 1, 15)),
        ("tonight", datetime.date(2025, 1, 15)),
        ("Tomorrow", datetime.date(2025, 1, 16)),
        ("next friday", datetime.date(2025, 1, 17)),
        ("next   Friday", datetime.date(2025, 1, 17)),
        ("yesterday", None),
    ],
)
def test_resolve_relative_date(phrase, expected):
    assert resolve_relative_date(phrase, datetime.date(2025, 1, 15)) == expected


def test_start_of_iso_week():
    monday = datetime.date(2025, 1, 13)

    assert start_of_iso_week(datetime.date(2025, 1, 15)) == monday
    assert start_of_iso_week(datetime.date(2025, 1, 19)) == monday
    assert start_of_iso_week(monday) == monday


def test_local_now_converts_and_localizes(paris):
    utc_now = pytz.utc.localize(datetime.datetime(2025, 1, 15, 9, 30))

    assert date_utils.local_now(paris, utc_now).hour == 10
    assert date_utils.local_now(paris, datetime.datetime(2025, 1, 15, 9, 30)).tzinfo is not None


def test_get_timezone_falls_back_on_unknown_name(paris):
    assert date_utils.get_timezone("Mars/Olympus", paris) is paris
    assert date_utils.get_timezone("", paris) is paris
    assert date_utils.get_timezone("UTC", paris).zone == "UTC"
