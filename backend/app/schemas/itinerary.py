from datetime import datetime
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PointRole(str, Enum):
    START = "start"
    END = "end"
    WAYPOINT = "waypoint"


class RoadType(str, Enum):
    MOTORWAY = "motorway"
    TRUNK = "trunk"
    PRIMARY = "primary"
    SECONDARY = "secondary"
    TERTIARY = "tertiary"
    RESIDENTIAL = "residential"
    SERVICE = "service"
    TRACK = "track"
    UNKNOWN = "unknown"


class RoutePoint(BaseModel):
    """A geographic point of an itinerary. `role` is None for internal step boundaries."""

    model_config = ConfigDict(frozen=True)

    node_id: Optional[str] = None
    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    name: Optional[str] = None
    role: Optional[PointRole] = None


class RouteSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    segment_number: int = Field(..., ge=1)
    edge_id: Optional[int] = None
    street_name: Optional[str] = None
    road_type: RoadType = RoadType.UNKNOWN
    distance_km: float = Field(..., ge=0)
    time_seconds: int = Field(..., ge=0)
    max_speed_kmh: Optional[float] = None
    start_point: RoutePoint
    end_point: RoutePoint
    instruction: str = Field(..., min_length=1)


class RequestedWaypoint(BaseModel):
    """A stop the user asked for, in request order (origin first, destination last)."""

    latitude: float = Field(..., ge=-90.0, le=90.0)
    longitude: float = Field(..., ge=-180.0, le=180.0)
    name: Optional[str] = None
    poi_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def blank_name_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class Itinerary(BaseModel):
    id: Optional[UUID] = None
    name: str
    user_id: Optional[UUID] = None
    origin_location: str
    destination_location: str
    waypoints_json: str = "[]"
    geometry_encoded: Optional[str] = None
    distance_meters: float = 0.0
    duration_seconds: int = 0
    segments: List[RouteSegment] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def is_new(self) -> bool:
        return self.id is None
