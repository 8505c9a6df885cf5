# models.py
# typed response models shared by providers, utils and routes

from pydantic import BaseModel, Field
from typing import List, Optional, Union

class LatLng(BaseModel):
    lat: float
    lng: float


class HoursStatus(BaseModel):
    isOpen: bool = False
    # only set once today's hours were parsed
    closesSoon: Optional[bool] = None
    opensSoon: Optional[bool] = None
    nextOpenTime: Optional[str] = None
    nextCloseTime: Optional[str] = None


class Place(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    location: Optional[LatLng] = None
    rating: Optional[float] = None
    totalRatings: Optional[int] = None
    # google gives 0..4, yelp gives "$$"
    priceLevel: Optional[Union[int, str]] = None
    types: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    openNow: Optional[bool] = None
    yelpUrl: Optional[str] = None
    phone: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    distanceKm: Optional[float] = None


class PlaceDetails(Place):
    website: Optional[str] = None
    # minutes from UTC at the place, for evaluating its hours
    utcOffset: Optional[int] = None
    openingHoursText: List[str] = Field(default_factory=list)
    status: Optional[HoursStatus] = None
    statusLabel: Optional[str] = None
    reviews: List[dict] = Field(default_factory=list)
    travelTime: Optional[str] = None


class Event(BaseModel):
    id: str
    name: str
    url: Optional[str] = None
    image: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    venue: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    category: Optional[str] = None
    location: Optional[LatLng] = None
    distanceKm: Optional[float] = None


class Suggestion(BaseModel):
    placeId: str
    description: str


class RestaurantsResponse(BaseModel):
    success: bool = True
    restaurants: List[Place]
    count: int


class HotelsResponse(BaseModel):
    success: bool = True
    hotels: List[Place]
    count: int


class RestaurantDetailResponse(BaseModel):
    success: bool = True
    restaurant: PlaceDetails


class HotelDetailResponse(BaseModel):
    success: bool = True
    hotel: PlaceDetails


class EventDetailResponse(BaseModel):
    success: bool = True
    event: Event


class EventsResponse(BaseModel):
    success: bool = True
    events: List[Event]
    count: int


class SuggestionsResponse(BaseModel):
    success: bool = True
    suggestions: List[Suggestion]


class GeocodeResponse(BaseModel):
    success: bool = True
    location: LatLng = Field(..., description="{'lat': number, 'lng': number}")
    formattedAddress: Optional[str] = None
