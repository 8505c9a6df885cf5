# main.py
# FastAPI app: nearby restaurants / hotels / events, sorted by distance,
# plus place details with an open/closed status badge

import os
import json
import logging
import asyncio
from datetime import date as date_cls
from typing import Literal, Optional
import httpx
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from models import (
    EventDetailResponse, EventsResponse, GeocodeResponse, HotelDetailResponse, HotelsResponse,
    PlaceDetails, RestaurantDetailResponse, RestaurantsResponse, SuggestionsResponse,
)
from utils import (
    TTLCache, build_window, dedupe, distance_km, local_now, restaurant_status, sort_by_distance, status_label,
)
from providers.google_places import (
    PlacesError, autocomplete, geocode, nearby_search, place_details, text_search, travel_time,
)
from providers.yelp import enrich_with_yelp
from providers.ticketmaster import fetch_event, fetch_events

load_dotenv()

app = FastAPI(title="Nearby Finder API", version="0.1.0")
# CORS origins
FRONTEND_LOCAL = "http://localhost:3000"
FRONTEND_PROD = os.getenv("FRONTEND_PROD", "")

origins = [FRONTEND_LOCAL]
if FRONTEND_PROD:
    origins.append(FRONTEND_PROD)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# logging
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
log = logging.getLogger("nearby-finder")

# config / env
GOOGLE_PLACES_API_KEY = os.getenv("GOOGLE_PLACES_API_KEY", "")
YELP_API_KEY = os.getenv("YELP_API_KEY", "")
TICKETMASTER_API_KEY = os.getenv("TICKETMASTER_API_KEY", "")

# provider timeout (seconds)
PROVIDER_TIMEOUT_S = int(os.getenv("PROVIDER_TIMEOUT_S", "12"))
# gap between sequential yelp calls
YELP_DELAY_MS = int(os.getenv("YELP_DELAY_MS", "200"))

# per process cache (10 mins)
cache = TTLCache(ttl_seconds=int(os.getenv("CACHE_TTL_S", "600")))

# global JSON error handling
# - HTTPException -> { "error": <detail> }
# - any other exception -> { "error": "Server error" }
@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    log.warning("HTTP %s: %s", exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # log stack once. do not leak details to client
    log.exception("Unhandled exception")
    return JSONResponse(status_code=500, content={"error": "Server error"})

# timeout wrapper for providers
# maps provider failures to HTTP errors with a short message
async def run_with_timeout(coro, seconds: int, label: str, failure: str):
    try:
        return await asyncio.wait_for(coro, timeout=seconds)
    except asyncio.TimeoutError:
        log.warning("%s timed out after %ss", label, seconds)
        raise HTTPException(status_code=504, detail=f"{failure} (timed out)")
    except PlacesError as e:
        log.warning("%s error: %s", label, e)
        raise HTTPException(status_code=502, detail=failure)
    except (httpx.HTTPError, ValueError) as e:
        log.warning("%s transport error: %s", label, e)
        raise HTTPException(status_code=502, detail=failure)


def require_google_key() -> str:
    if not GOOGLE_PLACES_API_KEY:
        log.error("GOOGLE_PLACES_API_KEY is not set")
        raise HTTPException(status_code=500, detail="Google Places API key is not configured")
    return GOOGLE_PLACES_API_KEY


def require_center(lat: Optional[float], lng: Optional[float]) -> tuple[float, float]:
    if lat is None or lng is None:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")
    return (lat, lng)


def parse_origin(origin: Optional[str]) -> Optional[tuple[float, float]]:
    """'lat,lng' -> tuple. Anything unparseable is ignored."""
    if not origin:
        return None
    try:
        lat, lng = (float(p) for p in origin.split(","))
    except ValueError:
        return None
    return (lat, lng)


def cache_key(name: str, **params) -> str:
    return json.dumps({"route": name, **params}, sort_keys=True)


@app.get("/health")
def health():
    return {"ok": True}


@app.get("/api/restaurants/nearby", response_model=RestaurantsResponse)
async def nearby_restaurants(lat: Optional[float] = None, lng: Optional[float] = None, radius: int = 1500):
    """Google nearby restaurants, filled in from yelp, nearest first."""
    center = require_center(lat, lng)
    key = cache_key("restaurants", lat=lat, lng=lng, radius=radius)
    hit = cache.get(key)
    if hit:
        return hit

    api_key = require_google_key()
    places = await run_with_timeout(
        nearby_search(center, radius, "restaurant", api_key, keyword="restaurant"),
        PROVIDER_TIMEOUT_S, "google", "Failed to fetch restaurants")
    places = await enrich_with_yelp(places, YELP_API_KEY, YELP_DELAY_MS / 1000, budget_s=PROVIDER_TIMEOUT_S)
    places = sort_by_distance(dedupe(places), center)
    log.info("restaurants near %s,%s: %d", lat, lng, len(places))

    resp = RestaurantsResponse(restaurants=places, count=len(places)).model_dump()
    cache.set(key, resp)
    return resp


@app.get("/api/restaurants/search", response_model=RestaurantsResponse)
async def search_restaurants(
    query: Optional[str] = None,
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius: int = 1500,
    minRating: Optional[float] = None,
    maxPrice: Optional[int] = None,
    openNow: bool = False,
    cuisine: Optional[str] = None,
):
    if not query and lat is None:
        raise HTTPException(status_code=400, detail="Query or location is required")
    api_key = require_google_key()

    if lat is not None and lng is not None:
        center = (lat, lng)
        coro = nearby_search(center, radius, "restaurant", api_key, keyword=query, open_now=openNow)
    elif query:
        center = None
        coro = text_search(query, "restaurant", api_key, open_now=openNow)
    else:
        raise HTTPException(status_code=400, detail="Latitude and longitude are required")

    places = await run_with_timeout(coro, PROVIDER_TIMEOUT_S, "google", "Failed to search restaurants")

    if minRating is not None:
        places = [p for p in places if p.rating is not None and p.rating >= minRating]
    if maxPrice is not None:
        places = [p for p in places if isinstance(p.priceLevel, int) and p.priceLevel <= maxPrice]
    if cuisine:
        needle = cuisine.lower()
        places = [p for p in places if any(needle in t.lower() for t in p.types)]

    places = await enrich_with_yelp(places, YELP_API_KEY, YELP_DELAY_MS / 1000, budget_s=PROVIDER_TIMEOUT_S)
    places = dedupe(places)
    if center:
        places = sort_by_distance(places, center)
    return RestaurantsResponse(restaurants=places, count=len(places)).model_dump()


@app.get("/api/restaurants/autocomplete", response_model=SuggestionsResponse)
async def address_suggestions(input: Optional[str] = None):
    if not input:
        raise HTTPException(status_code=400, detail="Input is required")
    api_key = require_google_key()
    suggestions = await run_with_timeout(
        autocomplete(input, api_key), PROVIDER_TIMEOUT_S, "autocomplete", "Failed to fetch suggestions")
    return SuggestionsResponse(suggestions=suggestions).model_dump()


@app.get("/api/restaurants/geocode", response_model=GeocodeResponse)
async def geocode_location(address: Optional[str] = None, placeId: Optional[str] = None):
    if not address and not placeId:
        raise HTTPException(status_code=400, detail="Address or placeId is required")
    api_key = require_google_key()
    found = await run_with_timeout(
        geocode(api_key, address=address, place_id=placeId), PROVIDER_TIMEOUT_S, "geocode", "Geocoding failed")
    if not found:
        raise HTTPException(status_code=404, detail="Location not found")
    location, formatted = found
    return GeocodeResponse(location=location, formattedAddress=formatted).model_dump()


async def load_details(place_id: str, origin: Optional[str], failure: str, missing: str) -> PlaceDetails:
    """Shared by restaurant and hotel detail pages."""
    api_key = require_google_key()
    details = await run_with_timeout(place_details(place_id, api_key), PROVIDER_TIMEOUT_S, "google", failure)
    if details is None:
        raise HTTPException(status_code=404, detail=missing)

    if details.openingHoursText:
        details.status = restaurant_status(details.openingHoursText, now=local_now(details.utcOffset))
        details.statusLabel = status_label(details.status)

    start = parse_origin(origin)
    if start and details.location:
        dest = (details.location.lat, details.location.lng)
        details.distanceKm = round(distance_km(start[0], start[1], dest[0], dest[1]), 3)
        details.travelTime = await travel_time(start, dest, api_key)
    return details


@app.get("/api/restaurants/{place_id}", response_model=RestaurantDetailResponse, response_model_exclude_none=True)
async def restaurant_details(place_id: str, origin: Optional[str] = None):
    details = await load_details(place_id, origin, "Failed to fetch restaurant details", "Restaurant not found")
    return RestaurantDetailResponse(restaurant=details)


@app.get("/api/hotels/nearby", response_model=HotelsResponse)
async def nearby_hotels(lat: Optional[float] = None, lng: Optional[float] = None, radius: int = 5000):
    center = require_center(lat, lng)
    key = cache_key("hotels", lat=lat, lng=lng, radius=radius)
    hit = cache.get(key)
    if hit:
        return hit

    api_key = require_google_key()
    hotels = await run_with_timeout(
        nearby_search(center, radius, "lodging", api_key), PROVIDER_TIMEOUT_S, "google", "Failed to fetch hotels")
    hotels = sort_by_distance(dedupe(hotels), center)
    log.info("hotels near %s,%s: %d", lat, lng, len(hotels))

    resp = HotelsResponse(hotels=hotels, count=len(hotels)).model_dump()
    cache.set(key, resp)
    return resp


@app.get("/api/hotels/{place_id}", response_model=HotelDetailResponse, response_model_exclude_none=True)
async def hotel_details(place_id: str, origin: Optional[str] = None):
    details = await load_details(place_id, origin, "Failed to fetch hotel details", "Hotel not found")
    return HotelDetailResponse(hotel=details)


@app.get("/api/events/nearby", response_model=EventsResponse)
async def nearby_events(
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    radius: int = 10,
    keyword: Optional[str] = None,
    date: Optional[str] = None,
    timeframe: Literal["day", "weekend", "week"] = "day",
    segmentId: Optional[str] = None,
):
    center = require_center(lat, lng)
    if not TICKETMASTER_API_KEY:
        raise HTTPException(status_code=500, detail="Ticketmaster API key is not configured")

    window = None
    if date:
        try:
            window = build_window(date, timeframe)
        except ValueError:
            raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")

    key = cache_key("events", lat=lat, lng=lng, radius=radius, keyword=keyword or "",
                    date=date or date_cls.today().isoformat(), timeframe=timeframe, segmentId=segmentId or "")
    hit = cache.get(key)
    if hit:
        return hit

    events = await run_with_timeout(
        fetch_events(center, radius, TICKETMASTER_API_KEY, keyword=keyword, window=window, segment_id=segmentId),
        PROVIDER_TIMEOUT_S, "ticketmaster", "Failed to fetch events from Ticketmaster")
    events = sort_by_distance(events, center)

    resp = EventsResponse(events=events, count=len(events)).model_dump()
    cache.set(key, resp)
    return resp


@app.get("/api/events/{event_id}", response_model=EventDetailResponse, response_model_exclude_none=True)
async def event_details(event_id: str, origin: Optional[str] = None):
    if not TICKETMASTER_API_KEY:
        raise HTTPException(status_code=500, detail="Ticketmaster API key is not configured")
    event = await run_with_timeout(
        fetch_event(event_id, TICKETMASTER_API_KEY), PROVIDER_TIMEOUT_S, "ticketmaster",
        "Failed to fetch event details")
    if event is None:
        raise HTTPException(status_code=404, detail="Event not found")

    start = parse_origin(origin)
    if start and event.location:
        event.distanceKm = round(distance_km(start[0], start[1], event.location.lat, event.location.lng), 3)
    return EventDetailResponse(event=event)
