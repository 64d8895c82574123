"""
Node resolver: turns a coordinate into a RoutePoint.

Policy, in order:
    1. trust a node id hinted by the engine's own waypoint matching,
    2. ask the road/POI graph for the nearest node within the search radius,
    3. fall back to the raw coordinate with no id.

`resolve` never raises. Lookup misses, errors and timeouts all land on step 3,
so a flaky graph service lowers enrichment quality without aborting a build.
Coordinates outside WGS84 bounds are clamped onto them with a warning.

Stock OSRM waypoint hints are opaque base64 snapping blobs, not graph node
ids: a node_id taken from one will not join against a road graph. Engines
that return real node ids in `hint` are the case step 1 is meant for.
"""

import asyncio
import logging
from typing import Optional, Protocol, Tuple

import httpx
from pydantic import BaseModel

from app.schemas.itinerary import PointRole, RoutePoint
from app.utils.geo import format_coordinates

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]


class NodeMatch(BaseModel):
    node_id: str
    name: Optional[str] = None


class NodeLookup(Protocol):
    async def resolve_nearest(
        self, lat: float, lon: float, radius_m: float
    ) -> Optional[NodeMatch]:
        ...


class NullNodeLookup:
    """Lookup used when no graph service is configured: always a miss."""

    async def resolve_nearest(
        self, lat: float, lon: float, radius_m: float
    ) -> Optional[NodeMatch]:
        return None


class HttpNodeLookup:
    """
    Nearest-node lookup against the graph service:

        GET {base_url}/nodes/nearest?lat=..&lon=..&radius=..
        200 -> {"nodeId": ..., "name": ...}     404 -> no node in radius
    """

    def __init__(self, base_url: str, timeout: float = 2.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def resolve_nearest(
        self, lat: float, lon: float, radius_m: float
    ) -> Optional[NodeMatch]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.get(
                f"{self.base_url}/nodes/nearest",
                params={"lat": lat, "lon": lon, "radius": radius_m},
            )
            if resp.status_code == 404:
                return None
            resp.raise_for_status()
            data = resp.json()

        if not data or data.get("nodeId") is None:
            return None
        return NodeMatch(node_id=str(data["nodeId"]), name=data.get("name") or None)


def _bounded(point: LatLon) -> LatLon:
    lat, lon = point
    bounded = (min(90.0, max(-90.0, lat)), min(180.0, max(-180.0, lon)))
    if bounded != (lat, lon):
        logger.warning("Coordinate (%s, %s) outside WGS84 bounds, clamped to %s", lat, lon, bounded)
    return bounded


class NodeResolver:
    def __init__(
        self,
        lookup: Optional[NodeLookup] = None,
        *,
        radius_m: float = 50.0,
        timeout: float = 2.0,
    ):
        self.lookup = lookup or NullNodeLookup()
        self.radius_m = radius_m
        self.timeout = timeout

    async def resolve(
        self,
        point: LatLon,
        hint_node_id: Optional[str] = None,
        hint_name: Optional[str] = None,
        role: Optional[PointRole] = None,
    ) -> RoutePoint:
        lat, lon = _bounded(point)
        hint_name = (hint_name or "").strip() or None

        if hint_node_id:
            return RoutePoint(
                node_id=hint_node_id,
                latitude=lat,
                longitude=lon,
                name=hint_name or format_coordinates(lat, lon),
                role=role,
            )

        match: Optional[NodeMatch] = None
        try:
            match = await asyncio.wait_for(
                self.lookup.resolve_nearest(lat, lon, self.radius_m),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Node lookup timed out after %.1fs for (%.5f, %.5f)", self.timeout, lat, lon
            )
        except Exception as exc:
            logger.warning("Node lookup failed for (%.5f, %.5f): %s", lat, lon, exc)

        if match is not None:
            return RoutePoint(
                node_id=match.node_id,
                latitude=lat,
                longitude=lon,
                name=match.name or hint_name or format_coordinates(lat, lon),
                role=role,
            )

        return RoutePoint(
            node_id=None,
            latitude=lat,
            longitude=lon,
            name=hint_name or format_coordinates(lat, lon),
            role=role,
        )


def build_node_resolver(settings) -> NodeResolver:
    lookup: NodeLookup
    if settings.NODE_LOOKUP_URL:
        lookup = HttpNodeLookup(settings.NODE_LOOKUP_URL, timeout=settings.NODE_LOOKUP_TIMEOUT_S)
    else:
        lookup = NullNodeLookup()
    return NodeResolver(
        lookup,
        radius_m=settings.NODE_SEARCH_RADIUS_M,
        timeout=settings.NODE_LOOKUP_TIMEOUT_S,
    )
