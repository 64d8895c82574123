from pydantic import BaseModel, Field, model_validator
from typing import List, Optional

from app.schemas.itinerary import Itinerary, RequestedWaypoint


class LocationInput(BaseModel):
    city: Optional[str] = Field(None, description="City name from the static table, e.g. 'Douala'")
    lat: Optional[float] = Field(None, ge=-90.0, le=90.0)
    lng: Optional[float] = Field(None, ge=-180.0, le=180.0)
    name: Optional[str] = Field(None, description="Label shown for this stop")
    poi_id: Optional[int] = None

    @model_validator(mode="after")
    def city_or_coordinates(self):
        has_coords = self.lat is not None and self.lng is not None
        if not has_coords and not (self.city and self.city.strip()):
            raise ValueError("Either 'city' or both 'lat' and 'lng' are required")
        if (self.lat is None) != (self.lng is None):
            raise ValueError("'lat' and 'lng' must be given together")
        return self


class ItineraryRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    origin: LocationInput
    destination: LocationInput
    waypoints: List[LocationInput] = Field(default_factory=list, description="Intermediate stops, in order")


class ItineraryResponse(Itinerary):
    formatted_time: str = ""
    segment_count: int = 0
    instructions: List[str] = []
    stops: List[RequestedWaypoint] = Field(default_factory=list, description="Requested stops, in request order")
