# providers/google_places.py
# Google Places (legacy web service) nearby search, details, autocomplete,
# geocoding and a directions lookup for travel time.

import logging
import httpx
from typing import List, Optional
from models import LatLng, Place, PlaceDetails, Suggestion

log = logging.getLogger(__name__)

PLACES_BASE = "https://maps.googleapis.com/maps/api/place"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"

HEADERS = {
    "User-Agent": "NearbyFinder/0.1",
    "Accept": "application/json",
}

DETAIL_FIELDS = ("place_id,name,formatted_address,geometry,rating,user_ratings_total,price_level,"
                 "types,photos,opening_hours,formatted_phone_number,website,reviews,utc_offset")


class PlacesError(Exception):
    """Google answered with a status other than OK / ZERO_RESULTS."""

    def __init__(self, status: str, message: str = ""):
        super().__init__(f"{status}: {message}" if message else status)
        self.status = status


def photo_url(ref: str, api_key: str, max_width: int = 400) -> str:
    return f"{PLACES_BASE}/photo?maxwidth={max_width}&photoreference={ref}&key={api_key}"


def _location(raw: dict) -> Optional[LatLng]:
    loc = ((raw or {}).get("geometry") or {}).get("location") or {}
    try:
        return LatLng(lat=float(loc["lat"]), lng=float(loc["lng"]))
    except (KeyError, TypeError, ValueError):
        return None


def to_place(raw: dict, api_key: str, max_photos: int = 3) -> Place:
    """Nearby-search result -> Place."""
    return Place(
        id=raw.get("place_id") or "",
        name=raw.get("name") or "Place",
        address=raw.get("vicinity") or raw.get("formatted_address"),
        location=_location(raw),
        rating=raw.get("rating"),
        totalRatings=raw.get("user_ratings_total"),
        priceLevel=raw.get("price_level"),
        types=raw.get("types") or [],
        photos=[photo_url(p["photo_reference"], api_key)
                for p in (raw.get("photos") or [])[:max_photos] if p.get("photo_reference")],
        openNow=(raw.get("opening_hours") or {}).get("open_now"),
    )


def to_details(raw: dict, api_key: str) -> PlaceDetails:
    hours = raw.get("opening_hours") or {}
    base = to_place(raw, api_key, max_photos=10).model_dump()
    base["address"] = raw.get("formatted_address") or base["address"]
    base["photos"] = [photo_url(p["photo_reference"], api_key, max_width=800)
                      for p in (raw.get("photos") or []) if p.get("photo_reference")]
    base["phone"] = raw.get("formatted_phone_number")
    return PlaceDetails(
        **base,
        website=raw.get("website"),
        utcOffset=raw.get("utc_offset"),
        openingHoursText=hours.get("weekday_text") or [],
        reviews=(raw.get("reviews") or [])[:5],
    )


async def _get(path_or_url: str, params: dict, api_key: str) -> dict:
    url = path_or_url if path_or_url.startswith("http") else f"{PLACES_BASE}{path_or_url}"
    async with httpx.AsyncClient(timeout=20.0, headers=HEADERS) as client:
        r = await client.get(url, params={**params, "key": api_key})
        if r.status_code != 200:
            raise PlacesError(f"HTTP_{r.status_code}")
        try:
            return r.json() or {}
        except ValueError:
            raise PlacesError("INVALID_JSON", r.text[:200])


def _check(js: dict, allowed=("OK", "ZERO_RESULTS")) -> None:
    status = js.get("status", "UNKNOWN_ERROR")
    if status not in allowed:
        log.warning("google places status %s: %s", status, js.get("error_message"))
        raise PlacesError(status, js.get("error_message") or "")


async def nearby_search(center: tuple[float, float], radius: int, place_type: str, api_key: str,
                        keyword: Optional[str] = None, open_now: bool = False) -> List[Place]:
    lat, lng = center
    params = {"location": f"{lat},{lng}", "radius": radius, "type": place_type}
    if keyword:
        params["keyword"] = keyword
    if open_now:
        params["opennow"] = "true"
    js = await _get("/nearbysearch/json", params, api_key)
    _check(js)
    return [to_place(r, api_key) for r in js.get("results") or []]


async def text_search(query: str, place_type: str, api_key: str, open_now: bool = False) -> List[Place]:
    """Keyword search without a reference point."""
    params = {"query": query, "type": place_type}
    if open_now:
        params["opennow"] = "true"
    js = await _get("/textsearch/json", params, api_key)
    _check(js)
    return [to_place(r, api_key) for r in js.get("results") or []]


async def place_details(place_id: str, api_key: str) -> Optional[PlaceDetails]:
    """None when google does not know the id."""
    js = await _get("/details/json", {"place_id": place_id, "fields": DETAIL_FIELDS}, api_key)
    if js.get("status") in ("NOT_FOUND", "INVALID_REQUEST"):
        return None
    _check(js, allowed=("OK",))
    return to_details(js.get("result") or {}, api_key)


async def autocomplete(text: str, api_key: str) -> List[Suggestion]:
    js = await _get("/autocomplete/json", {"input": text}, api_key)
    _check(js)
    return [Suggestion(placeId=p.get("place_id", ""), description=p.get("description", ""))
            for p in js.get("predictions") or []]


async def geocode(api_key: str, address: Optional[str] = None,
                  place_id: Optional[str] = None) -> Optional[tuple[LatLng, Optional[str]]]:
    """Address or place id -> (coords, formatted address). None when nothing matches."""
    params = {"place_id": place_id} if place_id else {"address": address}
    js = await _get(GEOCODE_URL, params, api_key)
    _check(js)
    results = js.get("results") or []
    if not results:
        return None
    loc = _location(results[0])
    if loc is None:
        return None
    return loc, results[0].get("formatted_address")


async def travel_time(origin: tuple[float, float], destination: tuple[float, float], api_key: str) -> Optional[str]:
    """Driving duration text ("12 mins"), or None. Never raises."""
    params = {
        "origin": f"{origin[0]},{origin[1]}",
        "destination": f"{destination[0]},{destination[1]}",
        "mode": "driving",
    }
    try:
        js = await _get(DIRECTIONS_URL, params, api_key)
    except (PlacesError, httpx.HTTPError) as e:
        log.warning("directions lookup failed: %s", e)
        return None
    routes = js.get("routes") or []
    if not routes:
        return None
    legs = routes[0].get("legs") or [{}]
    return ((legs[0] or {}).get("duration") or {}).get("text")
