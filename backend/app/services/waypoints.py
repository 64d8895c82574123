"""Matching and serialization of the stops a user asked for."""

import json
from typing import List, Optional, Sequence

from app.schemas.itinerary import RequestedWaypoint, RoutePoint
from app.utils.geo import format_coordinates, haversine_m


def nearest_requested(
    lat: float,
    lon: float,
    requested: Sequence[RequestedWaypoint],
    tolerance_m: float,
) -> Optional[RequestedWaypoint]:
    """Closest requested stop within `tolerance_m`, or None."""
    best: Optional[RequestedWaypoint] = None
    best_d = tolerance_m
    for wp in requested:
        d = haversine_m(lat, lon, wp.latitude, wp.longitude)
        if d <= best_d:
            best, best_d = wp, d
    return best


def prefer_requested_name(point: RoutePoint, match: Optional[RequestedWaypoint]) -> RoutePoint:
    """A name the user typed beats whatever the resolver came up with."""
    if match is None or not match.name or match.name == point.name:
        return point
    return point.model_copy(update={"name": match.name})


def describe(wp: RequestedWaypoint) -> str:
    return wp.name or format_coordinates(wp.latitude, wp.longitude)


def serialize_waypoints(requested: Sequence[RequestedWaypoint]) -> str:
    """JSON array of the requested stops, in request order."""
    return json.dumps(
        [wp.model_dump(exclude_none=True) for wp in requested],
        ensure_ascii=False,
        separators=(",", ":"),
    )


def deserialize_waypoints(blob: Optional[str]) -> List[RequestedWaypoint]:
    if not blob:
        return []
    return [RequestedWaypoint.model_validate(item) for item in json.loads(blob)]
