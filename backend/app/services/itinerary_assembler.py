"""
Itinerary assembler: engine response + requested stops → Itinerary.

Pipeline:
    1. check the engine status (anything but "Ok" → UpstreamRouteFailure)
    2. decode the route geometry and check its ends against the engine's
       snapped waypoints (→ MalformedGeometry)
    3. build segments (→ EmptyRoute), resolving boundaries and merging user names
    4. totals = sums over the produced segments, never the engine's own totals
    5. hand the id-less Itinerary to the store (optional)

Nothing here assigns ids or timestamps; that belongs to the store.
"""

import logging
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from pydantic import ValidationError

from app.core.exceptions import EmptyRoute, UpstreamRouteFailure
from app.schemas.itinerary import Itinerary, RequestedWaypoint, RouteSegment
from app.schemas.osrm import OsrmResponse
from app.services import polyline
from app.services.instructions import DEFAULT_LOCALE
from app.services.itinerary_store import ItineraryStore
from app.services.node_resolver import NodeResolver
from app.services.segment_builder import SegmentBuilder
from app.services.waypoints import describe, serialize_waypoints

logger = logging.getLogger(__name__)


def segment_totals(segments: Sequence[RouteSegment]) -> Tuple[float, int]:
    """(distance in meters, duration in seconds) summed in segment order."""
    distance_m = sum(s.distance_km * 1000 for s in segments)
    duration_s = sum(s.time_seconds for s in segments)
    return distance_m, duration_s


def parse_engine_response(engine_response: Any) -> OsrmResponse:
    try:
        response = OsrmResponse.parse(engine_response)
    except ValidationError as exc:
        raise UpstreamRouteFailure("InvalidResponse", str(exc)) from exc
    if not response.ok:
        raise UpstreamRouteFailure(response.code or "Unknown", response.message)
    if not response.routes:
        raise EmptyRoute("Routing engine returned no routes")
    return response


class ItineraryAssembler:
    def __init__(
        self,
        resolver: NodeResolver,
        store: Optional[ItineraryStore] = None,
        *,
        locale: str = DEFAULT_LOCALE,
        match_tolerance_m: float = 10.0,
        concurrency: int = 4,
    ):
        self.store = store
        self.builder = SegmentBuilder(
            resolver,
            locale=locale,
            match_tolerance_m=match_tolerance_m,
            concurrency=concurrency,
        )

    async def build(
        self,
        engine_response: Any,
        requested_waypoints: Sequence[RequestedWaypoint],
        user_id: Optional[UUID],
        name: Optional[str] = None,
    ) -> Itinerary:
        """Build the Itinerary without persisting it."""
        response = parse_engine_response(engine_response)
        route = response.routes[0]
        requested: List[RequestedWaypoint] = list(requested_waypoints)

        # Decoded only to place boundaries; stored exactly as received.
        geometry = polyline.decode(route.geometry) if route.geometry else []

        segments = await self.builder.build(
            route,
            geometry,
            requested=requested,
            engine_waypoints=response.waypoints,
        )
        distance_m, duration_s = segment_totals(segments)

        first, last = segments[0].start_point, segments[-1].end_point
        origin = describe(requested[0]) if requested else (first.name or "")
        destination = describe(requested[-1]) if requested else (last.name or "")

        if abs(distance_m - route.distance) > 1.0 or abs(duration_s - route.duration) > 1.0:
            logger.debug(
                "Engine totals (%.1f m, %.1f s) differ from segment sums (%.1f m, %d s)",
                route.distance, route.duration, distance_m, duration_s,
            )

        return Itinerary(
            name=name or f"{origin} → {destination}",
            user_id=user_id,
            origin_location=origin,
            destination_location=destination,
            waypoints_json=serialize_waypoints(requested),
            geometry_encoded=route.geometry,
            distance_meters=distance_m,
            duration_seconds=duration_s,
            segments=segments,
        )

    async def assemble(
        self,
        engine_response: Any,
        requested_waypoints: Sequence[RequestedWaypoint],
        user_id: Optional[UUID],
        name: Optional[str] = None,
    ) -> Itinerary:
        """Build, then hand to the store. Returns the stored value (with id) when a store is set."""
        itinerary = await self.build(engine_response, requested_waypoints, user_id, name=name)
        if self.store is None:
            return itinerary
        saved = await self.store.save(itinerary)
        logger.info(
            "Saved itinerary %s: %d segments, %.0f m, %d s",
            saved.id, len(saved.segments), saved.distance_meters, saved.duration_seconds,
        )
        return saved


def build_assembler(settings, resolver: NodeResolver, store: Optional[ItineraryStore]) -> ItineraryAssembler:
    return ItineraryAssembler(
        resolver,
        store,
        locale=settings.INSTRUCTION_LOCALE,
        match_tolerance_m=settings.WAYPOINT_MATCH_TOLERANCE_M,
        concurrency=settings.RESOLVER_CONCURRENCY,
    )
