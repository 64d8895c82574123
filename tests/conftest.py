"""Shared fakes and OSRM payload builders."""

import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from app.services import polyline
from app.services.itinerary_store import InMemoryItineraryStore
from app.services.node_resolver import NodeMatch, NodeResolver

# Douala → a bit north-east; (lat, lon)
PATH = [(4.0435, 9.7022), (4.0600, 9.7200), (4.0800, 9.7500), (4.1000, 9.7700)]


def make_step(
    distance: float,
    duration: float,
    name: str = "",
    location: Optional[Tuple[float, float]] = None,
    maneuver_type: str = "continue",
    modifier: Optional[str] = None,
    road_class: Optional[str] = None,
) -> Dict:
    step: Dict = {"distance": distance, "duration": duration, "name": name}
    if location is not None or maneuver_type:
        maneuver: Dict = {"type": maneuver_type}
        if location is not None:
            maneuver["location"] = [location[1], location[0]]
        if modifier:
            maneuver["modifier"] = modifier
        step["maneuver"] = maneuver
    if road_class:
        step["road_class"] = road_class
    return step


def make_response(
    legs: List[List[Dict]],
    path: List[Tuple[float, float]] = PATH,
    code: str = "Ok",
    waypoints: Optional[List[Dict]] = None,
) -> Dict:
    leg_dicts = [
        {
            "distance": sum(s["distance"] for s in steps),
            "duration": sum(s["duration"] for s in steps),
            "summary": "",
            "steps": steps,
        }
        for steps in legs
    ]
    if waypoints is None:
        waypoints = [{"location": [path[0][1], path[0][0]], "name": ""},
                     {"location": [path[-1][1], path[-1][0]], "name": ""}]
    return {
        "code": code,
        "routes": [
            {
                "geometry": polyline.encode(path),
                "legs": leg_dicts,
                "distance": sum(l["distance"] for l in leg_dicts),
                "duration": sum(l["duration"] for l in leg_dicts),
            }
        ],
        "waypoints": waypoints,
    }


def scenario_a_response() -> Dict:
    """One leg, two steps: Avenue Kennedy (primary) then an unnamed road."""
    return make_response([[
        make_step(5200, 300, "Avenue Kennedy", PATH[0], "depart", road_class="primary"),
        make_step(1800, 150, "", PATH[2], "continue"),
    ]])


class DictLookup:
    """Graph lookup backed by a dict of exact coordinates."""

    def __init__(self, nodes: Dict[Tuple[float, float], NodeMatch], delays: Optional[Dict] = None):
        self.nodes = nodes
        self.delays = delays or {}
        self.calls: List[Tuple[float, float, float]] = []

    async def resolve_nearest(self, lat, lon, radius_m):
        self.calls.append((lat, lon, radius_m))
        delay = self.delays.get((lat, lon))
        if delay:
            await asyncio.sleep(delay)
        return self.nodes.get((lat, lon))


class FailingLookup:
    async def resolve_nearest(self, lat, lon, radius_m):
        raise ConnectionError("graph service down")


class SlowLookup:
    async def resolve_nearest(self, lat, lon, radius_m):
        await asyncio.sleep(5)
        return NodeMatch(node_id="too-late")


class RecordingStore(InMemoryItineraryStore):
    def __init__(self):
        super().__init__()
        self.saved = []

    async def save(self, itinerary):
        self.saved.append(itinerary)
        return await super().save(itinerary)


@pytest.fixture
def resolver():
    return NodeResolver()


@pytest.fixture
def store():
    return RecordingStore()
