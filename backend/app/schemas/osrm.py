from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional

# OSRM success sentinel for the `code` field.
OSRM_OK = "Ok"


class OsrmModel(BaseModel):
    # The engine adds fields freely (weight, intersections, ...); keep them.
    model_config = ConfigDict(extra="allow")


class OsrmManeuver(OsrmModel):
    type: str = ""
    modifier: Optional[str] = None
    location: List[float] = []   # [lng, lat], OSRM order
    exit: Optional[int] = None


class OsrmIntersection(OsrmModel):
    location: List[float] = []
    classes: List[str] = []


class OsrmStep(OsrmModel):
    distance: float = 0.0   # meters
    duration: float = 0.0   # seconds
    name: str = ""
    ref: Optional[str] = None
    mode: Optional[str] = None
    geometry: Optional[Any] = None
    maneuver: Optional[OsrmManeuver] = None
    intersections: List[OsrmIntersection] = []
    # Not part of stock OSRM; custom profiles and graph-backed engines set these.
    road_class: Optional[str] = None
    edge_id: Optional[int] = None


class OsrmLeg(OsrmModel):
    distance: float = 0.0
    duration: float = 0.0
    summary: str = ""
    steps: List[OsrmStep] = []


class OsrmRoute(OsrmModel):
    geometry: Optional[str] = None
    legs: List[OsrmLeg] = []
    distance: float = 0.0
    duration: float = 0.0


class OsrmWaypoint(OsrmModel):
    location: List[float] = Field(default_factory=list)   # [lng, lat]
    name: Optional[str] = None
    hint: Optional[str] = None
    distance: Optional[float] = None


class OsrmResponse(OsrmModel):
    code: str = ""
    message: Optional[str] = None
    routes: List[OsrmRoute] = []
    waypoints: List[OsrmWaypoint] = []

    @property
    def ok(self) -> bool:
        return self.code == OSRM_OK

    @classmethod
    def parse(cls, payload: Any) -> "OsrmResponse":
        if isinstance(payload, cls):
            return payload
        if not isinstance(payload, dict):
            return cls(code="InvalidResponse", message=f"Unexpected payload type {type(payload).__name__}")
        return cls.model_validate(payload)
