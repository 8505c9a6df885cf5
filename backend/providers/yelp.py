# providers/yelp.py
# Yelp Fusion best-match enrichment for google places.
# Calls go out one at a time with a fixed gap; Yelp rejects bursts.

import asyncio
import logging
import time
import httpx
from typing import List, Optional
from models import Place

log = logging.getLogger(__name__)

SEARCH_URL = "https://api.yelp.com/v3/businesses/search"
MATCH_RADIUS_M = 100


def merge_business(place: Place, b: dict) -> Place:
    """Fill gaps in a google place with a yelp business; google values win."""
    return place.model_copy(update={
        "rating": place.rating if place.rating is not None else b.get("rating"),
        "totalRatings": place.totalRatings if place.totalRatings is not None else b.get("review_count"),
        "priceLevel": place.priceLevel if place.priceLevel is not None else b.get("price"),
        "yelpUrl": b.get("url"),
        "phone": place.phone or b.get("phone") or None,
        "categories": [c.get("title") for c in (b.get("categories") or []) if c.get("title")],
    })


async def match_business(client: httpx.AsyncClient, place: Place) -> Optional[dict]:
    if place.location is None:
        return None
    params = {
        "term": place.name,
        "latitude": place.location.lat,
        "longitude": place.location.lng,
        "radius": MATCH_RADIUS_M,
        "limit": 1,
    }
    r = await client.get(SEARCH_URL, params=params)
    if r.status_code != 200:
        log.warning("yelp status %s for %r", r.status_code, place.name)
        return None
    businesses = (r.json() or {}).get("businesses") or []
    return businesses[0] if businesses else None


async def enrich_with_yelp(places: List[Place], api_key: str, delay_s: float = 0.2,
                           budget_s: Optional[float] = None) -> List[Place]:
    """
    Best-effort: every place comes back, enriched when yelp has a match.
    A failed lookup keeps the google data for that place. Once budget_s is
    spent the remaining places are returned as they are.
    """
    if not api_key or not places:
        return places

    headers = {
        "Authorization": f"Bearer {api_key}",
        "User-Agent": "NearbyFinder/0.1",
        "Accept": "application/json",
    }
    deadline = time.monotonic() + budget_s if budget_s is not None else None

    out: List[Place] = []
    async with httpx.AsyncClient(timeout=20.0, headers=headers) as client:
        for i, place in enumerate(places):
            if deadline is not None and time.monotonic() >= deadline:
                log.warning("yelp budget spent, %d places left unenriched", len(places) - i)
                out.extend(places[i:])
                break
            if i and delay_s > 0:
                await asyncio.sleep(delay_s)
            try:
                lookup = match_business(client, place)
                if deadline is not None:
                    b = await asyncio.wait_for(lookup, max(deadline - time.monotonic(), 0))
                else:
                    b = await lookup
            except asyncio.TimeoutError:
                log.warning("yelp lookup timed out for %r", place.name)
                b = None
            except (httpx.HTTPError, ValueError) as e:
                # ValueError: a 200 that is not json (maintenance pages)
                log.warning("yelp lookup failed for %r: %s", place.name, e)
                b = None
            out.append(merge_business(place, b) if b else place)
    return out
