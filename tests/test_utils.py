"""Tests for the shared distance / business hours helpers."""

from datetime import datetime, timedelta

import pytest

from models import LatLng, Place
from utils import (
    TTLCache,
    build_window,
    dedupe,
    distance_km,
    distance_m,
    local_now,
    restaurant_status,
    sort_by_distance,
    status_label,
)

# 2024-01-01 is a Monday, 2024-01-05 a Friday
MONDAY = (2024, 1, 1)
FRIDAY = (2024, 1, 5)

WEEK = [
    "Monday: 9:00 AM – 5:00 PM",
    "Tuesday: 9:00 AM – 5:00 PM",
    "Wednesday: 9:00 AM – 5:00 PM",
    "Thursday: 9:00 AM – 5:00 PM",
    "Friday: 6:00 PM – 2:00 AM",
    "Saturday: Closed",
    "Sunday: Closed",
]


def at(day, hour, minute=0):
    return datetime(*day, hour, minute)


def place(pid, lat, lng):
    return Place(id=pid, name=pid, location=LatLng(lat=lat, lng=lng))


class TestDistance:
    def test_same_point_is_zero(self):
        assert distance_km(52.52, 13.405, 52.52, 13.405) == 0

    def test_symmetric(self):
        a = (40.7128, -74.0060)
        b = (34.0522, -118.2437)
        assert distance_km(*a, *b) == pytest.approx(distance_km(*b, *a))

    def test_quarter_great_circle(self):
        assert distance_km(0, 0, 0, 90) == pytest.approx(10007.5, abs=0.1)

    def test_known_city_pair(self):
        # London -> Paris is roughly 344 km
        assert distance_km(51.5074, -0.1278, 48.8566, 2.3522) == pytest.approx(343.5, abs=1.0)

    def test_grows_with_separation(self):
        near = distance_km(0, 0, 0, 1)
        far = distance_km(0, 0, 0, 2)
        assert 0 < near < far

    def test_meters(self):
        assert distance_m(0, 0, 0, 1) == pytest.approx(distance_km(0, 0, 0, 1) * 1000)


class TestSortByDistance:
    def test_nearest_first_and_annotated(self):
        origin = (52.52, 13.405)
        items = [place("far", 52.60, 13.50), place("here", 52.52, 13.405), place("mid", 52.53, 13.41)]

        out = sort_by_distance(items, origin)

        assert [p.id for p in out] == ["here", "mid", "far"]
        assert out[0].distanceKm == 0
        distances = [p.distanceKm for p in out]
        assert distances == sorted(distances)

    def test_ties_keep_input_order(self):
        origin = (0.0, 0.0)
        items = [place("a", 0, 1), place("b", 1, 0), place("c", 0, -1), place("d", 0, 0.5)]

        out = sort_by_distance(items, origin)

        assert [p.id for p in out] == ["d", "a", "b", "c"]

    def test_items_without_location_go_last(self):
        origin = (0.0, 0.0)
        nowhere = Place(id="x", name="x")
        out = sort_by_distance([nowhere, place("a", 0, 1)], origin)
        assert [p.id for p in out] == ["a", "x"]
        assert out[1].distanceKm is None


class TestRestaurantStatus:
    def test_closes_soon(self):
        status = restaurant_status(WEEK, now=at(MONDAY, 16, 30))
        assert status.isOpen is True
        assert status.closesSoon is True
        assert status.opensSoon is False
        assert status.nextCloseTime == "5:00 PM"
        assert status.nextOpenTime == "9:00 AM"

    def test_open_not_soon(self):
        status = restaurant_status(WEEK, now=at(MONDAY, 12, 0))
        assert status.isOpen is True
        assert status.closesSoon is False

    def test_opens_soon(self):
        status = restaurant_status(WEEK, now=at(MONDAY, 8, 15))
        assert status.isOpen is False
        assert status.opensSoon is True

    def test_opens_later(self):
        status = restaurant_status(WEEK, now=at(MONDAY, 7, 30))
        assert status.isOpen is False
        assert status.opensSoon is False

    def test_at_closing_minute_is_still_open(self):
        status = restaurant_status(WEEK, now=at(MONDAY, 17, 0))
        assert status.isOpen is True
        assert status.closesSoon is False

    def test_after_closing(self):
        status = restaurant_status(WEEK, now=at(MONDAY, 17, 1))
        assert status.isOpen is False
        assert status.opensSoon is False

    def test_closed_day(self):
        status = restaurant_status(["Monday: Closed"] + WEEK[1:], now=at(MONDAY, 12, 0))
        assert status.model_dump(exclude_none=True) == {"isOpen": False}

    def test_unparseable_line(self):
        hours = ["Monday: By appointment"] + WEEK[1:]
        status = restaurant_status(hours, now=at(MONDAY, 12, 0))
        assert status.model_dump(exclude_none=True) == {"isOpen": False}

    def test_missing_day(self):
        status = restaurant_status(WEEK[1:], now=at(MONDAY, 12, 0))
        assert status.model_dump(exclude_none=True) == {"isOpen": False}

    @pytest.mark.parametrize("hours", [None, []])
    def test_no_hours(self, hours):
        assert restaurant_status(hours).isOpen is False

    def test_noon_and_midnight_conversion(self):
        hours = ["Monday: 12:00 AM – 12:00 PM"]
        assert restaurant_status(hours, now=at(MONDAY, 0, 10)).isOpen is True
        assert restaurant_status(hours, now=at(MONDAY, 11, 30)).closesSoon is True
        assert restaurant_status(hours, now=at(MONDAY, 12, 30)).isOpen is False

    def test_google_narrow_spaces(self):
        hours = ["Monday: 9:00\u202fAM \u2013 5:00\u202fPM"]
        status = restaurant_status(hours, now=at(MONDAY, 16, 30))
        assert status.isOpen is True
        assert status.closesSoon is True


class TestOvernightHours:
    def test_open_before_midnight(self):
        status = restaurant_status(WEEK, now=at(FRIDAY, 23, 30))
        assert status.isOpen is True
        assert status.closesSoon is False

    def test_open_after_midnight(self):
        status = restaurant_status(WEEK, now=at(FRIDAY, 1, 0))
        assert status.isOpen is True
        assert status.closesSoon is True

    def test_early_after_midnight_not_soon(self):
        status = restaurant_status(WEEK, now=at(FRIDAY, 0, 30))
        assert status.isOpen is True
        assert status.closesSoon is False

    def test_closed_between_close_and_open(self):
        status = restaurant_status(WEEK, now=at(FRIDAY, 2, 30))
        assert status.isOpen is False
        assert status.opensSoon is False

    def test_opens_soon_before_evening(self):
        status = restaurant_status(WEEK, now=at(FRIDAY, 17, 30))
        assert status.isOpen is False
        assert status.opensSoon is True

    def test_close_delta_crosses_midnight_in_minutes(self):
        # 11:30 PM -> 12:30 AM is 60 minutes, not 2330 -> 30 packed
        hours = ["Friday: 6:00 PM – 12:30 AM"]
        status = restaurant_status(hours, now=at(FRIDAY, 23, 30))
        assert status.isOpen is True
        assert status.closesSoon is True


class TestStatusLabel:
    def test_priority(self):
        hours = ["Monday: 9:00 AM – 5:00 PM"]
        assert status_label(restaurant_status(hours, now=at(MONDAY, 16, 30))) == "Closes soon (5:00 PM)"
        assert status_label(restaurant_status(hours, now=at(MONDAY, 8, 30))) == "Opens soon (9:00 AM)"
        assert status_label(restaurant_status(hours, now=at(MONDAY, 12, 0))) == "Open now"
        assert status_label(restaurant_status(hours, now=at(MONDAY, 20, 0))) == "Closed now"

    def test_none(self):
        assert status_label(None) is None


class TestHelpers:
    def test_build_window_day(self):
        start, end = build_window("2024-01-03", "day")
        assert start == datetime(2024, 1, 3, 0, 0, 0)
        assert end == datetime(2024, 1, 3, 23, 59, 59)

    def test_build_window_weekend(self):
        start, end = build_window("2024-01-03", "weekend")
        assert start == datetime(2024, 1, 6)
        assert end == datetime(2024, 1, 7, 23, 59, 59)

    def test_build_window_week(self):
        start, end = build_window("2024-01-03", "week")
        assert start == datetime(2024, 1, 1)
        assert end == datetime(2024, 1, 7, 23, 59, 59)

    def test_dedupe(self):
        items = [place("a", 1.0, 1.0), place("a", 1.00001, 1.0), place("b", 1.0, 1.0)]
        assert [p.id for p in dedupe(items)] == ["a", "b"]

    def test_ttl_cache_expiry(self, monkeypatch):
        import utils

        clock = {"t": 1000.0}
        monkeypatch.setattr(utils.time, "time", lambda: clock["t"])
        cache = TTLCache(ttl_seconds=10)
        cache.set("k", {"v": 1})
        assert cache.get("k") == {"v": 1}
        clock["t"] += 11
        assert cache.get("k") is None

    def test_ttl_cache_drops_stale_entries_on_write(self, monkeypatch):
        import utils

        clock = {"t": 1000.0}
        monkeypatch.setattr(utils.time, "time", lambda: clock["t"])
        cache = TTLCache(ttl_seconds=10)
        cache.set("40.71,-74.00", {"v": 1})
        clock["t"] += 11
        cache.set("40.72,-74.01", {"v": 2})
        assert len(cache) == 1
        assert cache.get("40.72,-74.01") == {"v": 2}


class TestLocalNow:
    def test_uses_place_offset(self):
        now = local_now(-300)
        assert now.utcoffset() == timedelta(minutes=-300)

    def test_falls_back_to_server_clock(self):
        assert local_now(None).tzinfo is None
