"""
Route planning service: static geocoding → OSRM → itinerary assembly → store.

This is the entry point the HTTP layer calls. Every fatal pipeline error
propagates untouched so the router can map it to a response.
"""

import logging
from typing import List, Optional, Tuple
from uuid import UUID

from app.core.exceptions import StorageError
from app.schemas.itinerary import Itinerary, RequestedWaypoint
from app.schemas.route import ItineraryRequest, ItineraryResponse, LocationInput
from app.services.geocoding import lookup_city
from app.services.instructions import format_duration
from app.services.itinerary_assembler import ItineraryAssembler, build_assembler
from app.services.itinerary_store import InMemoryItineraryStore, ItineraryStore
from app.services.node_resolver import build_node_resolver
from app.services.routing_client import OsrmClient
from app.services.waypoints import deserialize_waypoints

logger = logging.getLogger(__name__)


class UnknownLocation(ValueError):
    """A city name that is not in the static table."""


def to_requested(location: LocationInput) -> RequestedWaypoint:
    if location.lat is not None and location.lng is not None:
        return RequestedWaypoint(
            latitude=location.lat,
            longitude=location.lng,
            name=location.name or location.city,
            poi_id=location.poi_id,
        )
    found = lookup_city(location.city)
    if found is None:
        raise UnknownLocation(f"Could not geocode '{location.city}'. Please check the city name.")
    city, (lat, lng) = found
    return RequestedWaypoint(
        latitude=lat,
        longitude=lng,
        name=location.name or city,
        poi_id=location.poi_id,
    )


def to_response(itinerary: Itinerary) -> ItineraryResponse:
    return ItineraryResponse(
        **itinerary.model_dump(),
        formatted_time=format_duration(itinerary.duration_seconds),
        segment_count=len(itinerary.segments),
        instructions=[s.instruction for s in itinerary.segments],
        stops=deserialize_waypoints(itinerary.waypoints_json),
    )


class RoutePlanner:
    def __init__(self, client: OsrmClient, assembler: ItineraryAssembler, store: ItineraryStore):
        self.client = client
        self.assembler = assembler
        self.store = store

    async def plan(self, request: ItineraryRequest, user_id: Optional[UUID]) -> Itinerary:
        stops: List[RequestedWaypoint] = [
            to_requested(loc)
            for loc in [request.origin, *request.waypoints, request.destination]
        ]
        coords: List[Tuple[float, float]] = [(s.latitude, s.longitude) for s in stops]

        raw = await self.client.fetch_route(coords)
        return await self.assembler.assemble(raw, stops, user_id, name=request.name)

    async def get(self, itinerary_id: UUID) -> Optional[Itinerary]:
        return await self.store.get(itinerary_id)

    async def list_for_user(self, user_id: UUID) -> List[Itinerary]:
        return await self.store.list_for_user(user_id)

    async def delete(self, itinerary_id: UUID) -> bool:
        return await self.store.delete(itinerary_id)

    async def rename(self, itinerary_id: UUID, name: str) -> Optional[Itinerary]:
        itinerary = await self.store.get(itinerary_id)
        if itinerary is None:
            return None
        try:
            return await self.store.save(itinerary.model_copy(update={"name": name}))
        except StorageError:
            logger.error("Failed to rename itinerary %s", itinerary_id)
            raise


def build_planner(settings, store: Optional[ItineraryStore] = None) -> RoutePlanner:
    store = store or InMemoryItineraryStore()
    client = OsrmClient(settings.OSRM_URL, profile=settings.OSRM_PROFILE, timeout=settings.ROUTING_TIMEOUT_S)
    assembler = build_assembler(settings, build_node_resolver(settings), store)
    return RoutePlanner(client, assembler, store)
