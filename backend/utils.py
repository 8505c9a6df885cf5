# utils.py
# Shared helpers: geo distance + proximity sort, business hours status,
# event time windows, dedupe, simple in-memory TTL cache

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, TypeVar
from datetime import datetime, timedelta, timezone
from models import HoursStatus
import math
import re
import time

EARTH_RADIUS_KM = 6371.0

T = TypeVar("T")


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle (haversine) distance in kilometres. Spherical earth, no validation."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def distance_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    return distance_km(lat1, lon1, lat2, lon2) * 1000


def sort_by_distance(items: Iterable[T], origin: tuple[float, float]) -> List[T]:
    """
    Fill in distanceKm for every item with a location and return the items
    nearest first. Python's sort is stable so ties keep their input order;
    items without coordinates go last.
    """
    lat, lng = origin
    out = list(items)
    for it in out:
        loc = getattr(it, "location", None)
        it.distanceKm = round(distance_km(lat, lng, loc.lat, loc.lng), 3) if loc else None
    out.sort(key=lambda it: it.distanceKm if it.distanceKm is not None else math.inf)
    return out


# --- business hours ---------------------------------------------------------

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
# "8:30 AM – 5:30 PM" (en dash). \s also covers the narrow no-break spaces google sends
HOURS_RE = re.compile(r"(\d{1,2}):(\d{2})\s*(AM|PM)\s*–\s*(\d{1,2}):(\d{2})\s*(AM|PM)")
SOON_MINUTES = 60
MINUTES_PER_DAY = 1440


def to_hhmm(hour: str, minute: str, period: str) -> int:
    """12h clock parts -> packed 24h int (hour*100 + minute)."""
    h = int(hour)
    m = int(minute)
    if period == "PM" and h != 12:
        h += 12
    elif period == "AM" and h == 12:
        h = 0
    return h * 100 + m


def hhmm_to_minutes(value: int) -> int:
    return (value // 100) * 60 + value % 100


def restaurant_status(hours_text: Optional[Sequence[str]], now: Optional[datetime] = None) -> HoursStatus:
    """
    Classify today's status from a Places-style weekly listing, e.g.
    ["Monday: 9:00 AM – 5:00 PM", "Tuesday: Closed", ...].

    Missing or unparseable data always means closed; this never raises.
    Same-day comparisons use HHMM packed ints, but every delta goes through
    minutes since midnight (2330 -> 0030 is 60 minutes, not 2300).
    """
    if not hours_text:
        return HoursStatus(isOpen=False)

    now = now or datetime.now()
    # datetime.weekday(): Mon=0..Sun=6
    day_name = DAY_NAMES[(now.weekday() + 1) % 7]
    today = next((line for line in hours_text if isinstance(line, str) and line.startswith(day_name)), None)
    if not today or "Closed" in today:
        return HoursStatus(isOpen=False)

    match = HOURS_RE.search(today)
    if not match:
        return HoursStatus(isOpen=False)

    open_hour, open_min, open_period, close_hour, close_min, close_period = match.groups()
    open_time = to_hhmm(open_hour, open_min, open_period)
    close_time = to_hhmm(close_hour, close_min, close_period)
    current_time = now.hour * 100 + now.minute

    open_m = hhmm_to_minutes(open_time)
    close_m = hhmm_to_minutes(close_time)
    now_m = now.hour * 60 + now.minute

    closes_soon = False
    opens_soon = False

    if close_time < open_time:
        # closes after midnight
        is_open = current_time >= open_time or current_time <= close_time
        if is_open:
            if current_time >= open_time:
                until_close = (MINUTES_PER_DAY - now_m) + close_m
            else:
                until_close = close_m - now_m
            closes_soon = 0 < until_close <= SOON_MINUTES
        else:
            until_open = open_m - now_m
            opens_soon = 0 < until_open <= SOON_MINUTES
    else:
        is_open = open_time <= current_time <= close_time
        if is_open:
            until_close = close_m - now_m
            closes_soon = 0 < until_close <= SOON_MINUTES
        elif current_time < open_time:
            until_open = open_m - now_m
            opens_soon = 0 < until_open <= SOON_MINUTES

    return HoursStatus(
        isOpen=is_open,
        closesSoon=closes_soon,
        opensSoon=opens_soon,
        nextOpenTime=f"{int(open_hour)}:{open_min} {open_period}",
        nextCloseTime=f"{int(close_hour)}:{close_min} {close_period}",
    )


def local_now(utc_offset_minutes: Optional[int] = None) -> datetime:
    """Wall clock at the place (google's utc_offset); server local time when unknown."""
    if utc_offset_minutes is None:
        return datetime.now()
    return datetime.now(timezone(timedelta(minutes=utc_offset_minutes)))


def status_label(status: Optional[HoursStatus]) -> Optional[str]:
    """Badge text. Priority: closes soon > opens soon > open > closed."""
    if status is None:
        return None
    if status.closesSoon:
        return f"Closes soon ({status.nextCloseTime})"
    if status.opensSoon:
        return f"Opens soon ({status.nextOpenTime})"
    if status.isOpen:
        return "Open now"
    return "Closed now"


# --- events -----------------------------------------------------------------

def iso_no_ms(dt: datetime) -> str:
    """
    Ticketmaster requires ISO8601 *without* fractional seconds and in UTC.
    Example: 2025-10-25T04:00:00Z
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_window(date_iso: str, timeframe: str) -> tuple[datetime, datetime]:
    """Start/end of the day, the coming weekend, or the Mon..Sun week around date_iso."""
    base = datetime.fromisoformat(date_iso)
    day_start = base.replace(hour=0, minute=0, second=0, microsecond=0)
    day_end = base.replace(hour=23, minute=59, second=59, microsecond=0)

    if timeframe == "weekend":
        days_to_sat = (5 - base.weekday()) % 7
        sat = day_start + timedelta(days=days_to_sat)
        sun_end = (sat + timedelta(days=1)).replace(hour=23, minute=59, second=59)
        return (sat, sun_end)

    if timeframe == "week":
        monday = day_start - timedelta(days=base.weekday())
        sunday_end = (monday + timedelta(days=6)).replace(hour=23, minute=59, second=59)
        return (monday, sunday_end)

    return (day_start, day_end)


def dedupe(items: List[T]) -> List[T]:
    """Deduplicate by (name + approx coords)."""
    seen = set()
    out: List[T] = []
    for it in items:
        loc = getattr(it, "location", None)
        k = f"{it.name.lower()}|{loc.lat:.4f}|{loc.lng:.4f}" if loc else f"{it.name.lower()}|{it.id}"
        if k not in seen:
            seen.add(k)
            out.append(it)
    return out


@dataclass
class CacheEntry:
    expires: float
    data: dict


class TTLCache:
    """Simple in-memory TTL cache (per-process)."""

    def __init__(self, ttl_seconds: int = 600):
        self.ttl = ttl_seconds
        self._store: dict[str, CacheEntry] = {}

    def get(self, key: str) -> dict | None:
        entry = self._store.get(key)
        if not entry:
            return None
        if entry.expires < time.time():
            self._store.pop(key, None)
            return None
        return entry.data

    def set(self, key: str, value: dict) -> None:
        now = time.time()
        # keys carry raw coordinates, so drop stale entries on write
        for k in [k for k, e in self._store.items() if e.expires < now]:
            del self._store[k]
        self._store[key] = CacheEntry(expires=now + self.ttl, data=value)

    def __len__(self) -> int:
        return len(self._store)

    def clear(self) -> None:
        self._store.clear()
