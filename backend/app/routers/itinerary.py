import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import BaseModel, Field

from app.core.exceptions import (
    EmptyRoute,
    MalformedGeometry,
    StorageError,
    UpstreamRouteFailure,
    UpstreamTimeout,
)
from app.schemas.route import ItineraryRequest, ItineraryResponse
from app.services.route_service import RoutePlanner, UnknownLocation, to_response

logger = logging.getLogger(__name__)

router = APIRouter()


class RenameRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)


def get_planner(request: Request) -> RoutePlanner:
    return request.app.state.planner


def current_user(x_user_id: Optional[str] = Header(None)) -> Optional[UUID]:
    if not x_user_id:
        return None
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="X-User-Id must be a UUID.")


@router.post("/itineraries", response_model=ItineraryResponse, status_code=201)
async def create_itinerary(
    request: ItineraryRequest,
    planner: RoutePlanner = Depends(get_planner),
    user_id: Optional[UUID] = Depends(current_user),
):
    """
    Compute a driving route through the requested stops and save it as an itinerary.
    Stops are given as a city from the static table or as coordinates.
    """
    try:
        itinerary = await planner.plan(request, user_id)
    except UnknownLocation as e:
        raise HTTPException(status_code=422, detail=str(e))
    except (UpstreamRouteFailure, EmptyRoute) as e:
        logger.info("No route: %s", e)
        raise HTTPException(status_code=404, detail=f"Route not found: {e}")
    except UpstreamTimeout as e:
        logger.warning("Routing engine timeout: %s", e)
        raise HTTPException(status_code=503, detail="Routing engine timed out, please try again.",
                            headers={"Retry-After": "5"})
    except MalformedGeometry as e:
        logger.warning("Malformed geometry from routing engine: %s", e)
        raise HTTPException(status_code=502, detail=f"Invalid route geometry: {e}")
    except StorageError as e:
        logger.error("Could not save itinerary: %s", e)
        raise HTTPException(status_code=500, detail="Could not save itinerary.")
    return to_response(itinerary)


@router.get("/itineraries", response_model=List[ItineraryResponse])
async def list_itineraries(
    planner: RoutePlanner = Depends(get_planner),
    user_id: Optional[UUID] = Depends(current_user),
):
    if user_id is None:
        raise HTTPException(status_code=401, detail="X-User-Id header is required.")
    return [to_response(i) for i in await planner.list_for_user(user_id)]


@router.get("/itineraries/{itinerary_id}", response_model=ItineraryResponse)
async def get_itinerary(itinerary_id: UUID, planner: RoutePlanner = Depends(get_planner)):
    itinerary = await planner.get(itinerary_id)
    if itinerary is None:
        raise HTTPException(status_code=404, detail="Itinerary not found.")
    return to_response(itinerary)


@router.patch("/itineraries/{itinerary_id}", response_model=ItineraryResponse)
async def rename_itinerary(
    itinerary_id: UUID,
    body: RenameRequest,
    planner: RoutePlanner = Depends(get_planner),
):
    try:
        itinerary = await planner.rename(itinerary_id, body.name)
    except StorageError:
        raise HTTPException(status_code=500, detail="Could not save itinerary.")
    if itinerary is None:
        raise HTTPException(status_code=404, detail="Itinerary not found.")
    return to_response(itinerary)


@router.delete("/itineraries/{itinerary_id}", status_code=204)
async def delete_itinerary(itinerary_id: UUID, planner: RoutePlanner = Depends(get_planner)):
    if not await planner.delete(itinerary_id):
        raise HTTPException(status_code=404, detail="Itinerary not found.")
    return Response(status_code=204)
