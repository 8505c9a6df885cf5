# providers/ticketmaster.py
# Ticketmaster Discovery read-only provider with micro-cache + 429 backoff.

import asyncio
import logging
import time
import httpx
from typing import List, Optional, Tuple
from datetime import datetime
from urllib.parse import quote
from models import Event, LatLng
from utils import iso_no_ms

log = logging.getLogger(__name__)

EVENTS_URL = "https://app.ticketmaster.com/discovery/v2/events.json"
EVENT_URL = "https://app.ticketmaster.com/discovery/v2/events"

HEADERS = {
    "User-Agent": "NearbyFinder/0.1",
    "Accept": "application/json",
}

# --- Micro-cache to avoid duplicate calls within a short window (double-submits)
_TM_CACHE: dict[Tuple, Tuple[float, List[Event]]] = {}
_TM_CACHE_TTL = 30.0  # seconds


def to_event(ev: dict) -> Event:
    venue = (((ev or {}).get("_embedded") or {}).get("venues") or [None])[0] or {}
    loc = venue.get("location") or {}
    try:
        location = LatLng(lat=float(loc["latitude"]), lng=float(loc["longitude"]))
    except (KeyError, TypeError, ValueError):
        location = None
    start = (ev.get("dates") or {}).get("start") or {}
    classification = (ev.get("classifications") or [{}])[0] or {}
    return Event(
        id=ev.get("id") or "",
        name=ev.get("name") or "Event",
        url=ev.get("url"),
        image=((ev.get("images") or [{}])[0] or {}).get("url"),
        date=start.get("localDate"),
        time=start.get("localTime"),
        venue=venue.get("name"),
        address=(venue.get("address") or {}).get("line1"),
        city=(venue.get("city") or {}).get("name"),
        country=(venue.get("country") or {}).get("name"),
        category=(classification.get("segment") or {}).get("name"),
        location=location,
    )


def _cache_put(key: Tuple, events: List[Event]) -> None:
    now = time.time()
    for k in [k for k, (ts, _) in _TM_CACHE.items() if now - ts >= _TM_CACHE_TTL]:
        del _TM_CACHE[k]
    _TM_CACHE[key] = (now, events)


async def fetch_events(center: tuple[float, float], radius_km: int, api_key: str,
                       keyword: Optional[str] = None,
                       window: Optional[tuple[datetime, datetime]] = None,
                       segment_id: Optional[str] = None) -> List[Event]:
    if not api_key:
        return []

    lat, lng = center
    keyword = (keyword or "").strip()
    start_str, end_str = (iso_no_ms(window[0]), iso_no_ms(window[1])) if window else ("", "")
    cache_key = (round(lat, 5), round(lng, 5), radius_km, start_str, end_str, keyword, segment_id or "")

    now = time.time()
    cached = _TM_CACHE.get(cache_key)
    if cached and (now - cached[0]) < _TM_CACHE_TTL:
        return cached[1]

    params = {
        "apikey": api_key,
        "latlong": f"{lat},{lng}",
        "radius": str(radius_km),
        "unit": "km",
        "sort": "date,asc",
        "size": "20",
    }
    if keyword:
        params["keyword"] = keyword
    if segment_id:
        params["segmentId"] = segment_id
    if window:
        params["startDateTime"] = start_str
        params["endDateTime"] = end_str

    async with httpx.AsyncClient(timeout=20.0, headers=HEADERS) as client:
        # Up to 3 tries with gentle backoff on 429
        backoff = 1.2  # seconds, TM burst is ~1 rps
        for attempt in range(3):
            r = await client.get(EVENTS_URL, params=params)
            if r.status_code == 200:
                try:
                    js = r.json()
                except ValueError:
                    log.warning("ticketmaster sent non-json: %s", r.text[:200])
                    return []
                events = (((js or {}).get("_embedded") or {}).get("events") or [])
                out = [to_event(ev) for ev in events if ev]
                _cache_put(cache_key, out)
                return out

            if r.status_code == 429:
                # spike arrest: wait then retry
                await asyncio.sleep(backoff)
                backoff *= 1.5
                continue

            # Non-200 and not 429 -> give up quietly
            log.warning("ticketmaster status %s: %s", r.status_code, r.text[:400])
            return []

    log.warning("ticketmaster still rate limited after retries")
    return []


async def fetch_event(event_id: str, api_key: str) -> Optional[Event]:
    """Single event by id. None when ticketmaster does not know it."""
    url = f"{EVENT_URL}/{quote(event_id, safe='')}.json"
    async with httpx.AsyncClient(timeout=20.0, headers=HEADERS) as client:
        r = await client.get(url, params={"apikey": api_key})
    if r.status_code == 404:
        return None
    # anything else non-200 surfaces as httpx.HTTPStatusError
    r.raise_for_status()
    return to_event(r.json() or {})
