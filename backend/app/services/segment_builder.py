"""
Segment builder: engine legs/steps → ordered RouteSegment list.

One step becomes one segment. Steps are flattened across legs in engine
order and numbered 1..N. The N+1 boundary points are computed first,
resolved concurrently (bounded), put back in order, and only then stitched
into segments, so segment i's end point is the very object used as segment
i+1's start point.

Boundary roles:
    index 0         → start
    index N         → end
    leg boundaries  → waypoint (a leg ends at a user stop by definition)
    arrive starts   → the stop that closes the leg, same as any boundary at
                      a stop's snapped location
    other interior  → waypoint only when within tolerance of a requested
                      intermediate stop, otherwise no role
"""

import asyncio
import bisect
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.exceptions import EmptyRoute, MalformedGeometry
from app.schemas.itinerary import (
    PointRole,
    RequestedWaypoint,
    RoadType,
    RoutePoint,
    RouteSegment,
)
from app.schemas.osrm import OsrmRoute, OsrmStep, OsrmWaypoint
from app.services.instructions import DEFAULT_LOCALE, generate_instruction
from app.services.node_resolver import NodeResolver
from app.services.waypoints import nearest_requested, prefer_requested_name
from app.utils.geo import cumulative_lengths_m, haversine_m

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]

MAX_PLAUSIBLE_SPEED_KMH = 200.0

# Snapped engine locations sit on the path; a wrong-precision decode lands hundreds of km away.
GEOMETRY_ALIGNMENT_TOLERANCE_M = 1000.0

# Engine / OSM highway classes → fixed vocabulary.
ROAD_CLASS_TABLE: Dict[str, RoadType] = {
    "motorway": RoadType.MOTORWAY,
    "motorway_link": RoadType.MOTORWAY,
    "trunk": RoadType.TRUNK,
    "trunk_link": RoadType.TRUNK,
    "primary": RoadType.PRIMARY,
    "primary_link": RoadType.PRIMARY,
    "secondary": RoadType.SECONDARY,
    "secondary_link": RoadType.SECONDARY,
    "tertiary": RoadType.TERTIARY,
    "tertiary_link": RoadType.TERTIARY,
    "residential": RoadType.RESIDENTIAL,
    "living_street": RoadType.RESIDENTIAL,
    "unclassified": RoadType.RESIDENTIAL,
    "service": RoadType.SERVICE,
    "track": RoadType.TRACK,
}


# ─── Step-level helpers ──────────────────────────────────────────

def normalize_road_type(raw: Optional[str]) -> RoadType:
    if not raw:
        return RoadType.UNKNOWN
    return ROAD_CLASS_TABLE.get(raw.strip().lower(), RoadType.UNKNOWN)


def _step_road_type(step: OsrmStep) -> RoadType:
    if step.road_class:
        return normalize_road_type(step.road_class)
    # Stock OSRM only tags a few classes (motorway, toll, ferry...) per intersection.
    for intersection in step.intersections[:1]:
        for cls in intersection.classes:
            road_type = normalize_road_type(cls)
            if road_type is not RoadType.UNKNOWN:
                return road_type
    return RoadType.UNKNOWN


def to_time_seconds(duration_s: float) -> int:
    """Nearest whole second, halves rounded up."""
    return max(0, int(math.floor(float(duration_s) + 0.5)))


def derive_max_speed(distance_km: float, time_seconds: int) -> Optional[float]:
    """Average speed over the step; a heuristic, not a posted limit."""
    if distance_km <= 0 or time_seconds <= 0:
        return None
    speed = distance_km / (time_seconds / 3600.0)
    if speed >= MAX_PLAUSIBLE_SPEED_KMH:
        return None
    return round(speed, 1)


def _latlon(location: Sequence[float]) -> Optional[LatLon]:
    # OSRM locations are [lon, lat].
    if location is None or len(location) < 2:
        return None
    lat, lon = float(location[1]), float(location[0])
    if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
        raise MalformedGeometry(f"Engine location {list(location)} is outside WGS84 bounds")
    return (lat, lon)


def flatten_steps(route: OsrmRoute) -> List[Tuple[int, OsrmStep]]:
    """(leg_index, step) in engine order. Raises EmptyRoute on any empty leg."""
    if not route.legs:
        raise EmptyRoute("Routing engine returned a route without legs")
    flat: List[Tuple[int, OsrmStep]] = []
    for leg_index, leg in enumerate(route.legs):
        if not leg.steps:
            raise EmptyRoute(f"Leg {leg_index} has no steps")
        flat.extend((leg_index, step) for step in leg.steps)
    return flat


# ─── Boundary geometry ───────────────────────────────────────────

class _PathLocator:
    """Places step boundaries on the decoded path when the engine omits maneuver locations."""

    def __init__(self, geometry: List[LatLon], steps: List[OsrmStep]):
        self.geometry = geometry
        self.cum = cumulative_lengths_m(geometry)
        engine_total = sum(max(0.0, s.distance) for s in steps)
        path_total = self.cum[-1] if self.cum else 0.0
        self.scale = path_total / engine_total if engine_total > 0 else 0.0

    def at(self, engine_distance_m: float) -> Optional[LatLon]:
        if not self.geometry:
            return None
        target = engine_distance_m * self.scale
        idx = bisect.bisect_left(self.cum, target)
        if idx >= len(self.geometry):
            idx = len(self.geometry) - 1
        elif idx > 0 and (target - self.cum[idx - 1]) < (self.cum[idx] - target):
            idx -= 1
        return self.geometry[idx]


def boundary_coordinates(
    steps: List[OsrmStep],
    geometry: List[LatLon],
    engine_waypoints: Sequence[OsrmWaypoint] = (),
) -> List[LatLon]:
    """N+1 points: route start, the start of each following step, route end."""
    locator = _PathLocator(geometry, steps)

    first = steps[0]
    start = (
        (_latlon(first.maneuver.location) if first.maneuver else None)
        or (geometry[0] if geometry else None)
        or (_latlon(engine_waypoints[0].location) if engine_waypoints else None)
    )

    last = steps[-1]
    end = (
        (geometry[-1] if geometry else None)
        or (_latlon(engine_waypoints[-1].location) if engine_waypoints else None)
        or (
            _latlon(last.maneuver.location)
            if last.maneuver and last.maneuver.type == "arrive"
            else None
        )
    )
    if start is None or end is None:
        raise MalformedGeometry("Route has no geometry to place its start and end points")

    points: List[LatLon] = [start]
    travelled = 0.0
    for prev, step in zip(steps, steps[1:]):
        travelled += max(0.0, prev.distance)
        location = _latlon(step.maneuver.location) if step.maneuver else None
        if location is None:
            location = locator.at(travelled)
        if location is None:
            raise MalformedGeometry("Cannot locate a step boundary: no maneuver location and no geometry")
        points.append(location)
    points.append(end)
    return points


def check_geometry_alignment(
    geometry: List[LatLon],
    steps: List[OsrmStep],
    engine_waypoints: Sequence[OsrmWaypoint] = (),
    tolerance_m: float = GEOMETRY_ALIGNMENT_TOLERANCE_M,
) -> None:
    """
    Raise MalformedGeometry when the decoded path does not start and end where
    the engine says the route does.

    Bounds checks alone miss a precision mismatch near the equator (a 1e6
    polyline read at 1e5 is still a valid coordinate below 9° / 18°), so the
    path ends are compared with the snapped waypoints, or with the first and
    arrive maneuver locations when the engine sent no waypoints.
    """
    if not geometry or not steps:
        return

    first, last = steps[0], steps[-1]
    if engine_waypoints:
        expected_start = _latlon(engine_waypoints[0].location)
        expected_end = _latlon(engine_waypoints[-1].location)
    else:
        expected_start = _latlon(first.maneuver.location) if first.maneuver else None
        expected_end = (
            _latlon(last.maneuver.location)
            if last.maneuver and last.maneuver.type == "arrive"
            else None
        )

    for label, actual, expected in (
        ("start", geometry[0], expected_start),
        ("end", geometry[-1], expected_end),
    ):
        if expected is None:
            continue
        offset = haversine_m(actual[0], actual[1], expected[0], expected[1])
        if offset > tolerance_m:
            raise MalformedGeometry(
                f"Decoded path {label} {actual} is {offset / 1000:.1f} km from the engine's "
                f"{label} {expected}; polyline precision mismatch?"
            )


# ─── Builder ─────────────────────────────────────────────────────

class SegmentBuilder:
    def __init__(
        self,
        resolver: NodeResolver,
        *,
        locale: str = DEFAULT_LOCALE,
        match_tolerance_m: float = 10.0,
        concurrency: int = 4,
    ):
        self.resolver = resolver
        self.locale = locale
        self.match_tolerance_m = match_tolerance_m
        self.concurrency = max(1, concurrency)

    async def build(
        self,
        route: OsrmRoute,
        geometry: List[LatLon],
        requested: Sequence[RequestedWaypoint] = (),
        engine_waypoints: Sequence[OsrmWaypoint] = (),
    ) -> List[RouteSegment]:
        flat = flatten_steps(route)
        steps = [step for _, step in flat]
        check_geometry_alignment(geometry, steps, engine_waypoints)
        coords = boundary_coordinates(steps, geometry, engine_waypoints)

        # boundary index → leg index, for the first step of every leg and the route end
        leg_starts: Dict[int, int] = {}
        for index, (leg_index, _) in enumerate(flat):
            leg_starts.setdefault(leg_index, index)
        leg_boundaries = {index: leg for leg, index in leg_starts.items()}
        leg_boundaries[len(steps)] = len(route.legs)

        stops = dict(leg_boundaries)
        # An arrive step starts on the stop that closes its leg.
        for index, (leg_index, step) in enumerate(flat):
            if step.maneuver is not None and step.maneuver.type == "arrive":
                stops.setdefault(index, leg_index + 1)
        # Same snapped location as a stop: the same stop.
        stop_at = {coords[index]: stop for index, stop in leg_boundaries.items()}
        for index, coord in enumerate(coords):
            if index not in stops and coord in stop_at:
                stops[index] = stop_at[coord]

        points = await self._resolve_boundaries(
            coords, stops, len(route.legs) + 1, requested, engine_waypoints
        )

        segments: List[RouteSegment] = []
        for i, step in enumerate(steps):
            distance_km = max(0.0, step.distance) / 1000.0
            time_seconds = to_time_seconds(step.duration)
            road_type = _step_road_type(step)
            street = (step.name or step.ref or "").strip() or None
            maneuver = step.maneuver
            segments.append(
                RouteSegment(
                    segment_number=i + 1,
                    edge_id=step.edge_id,
                    street_name=street,
                    road_type=road_type,
                    distance_km=distance_km,
                    time_seconds=time_seconds,
                    max_speed_kmh=derive_max_speed(distance_km, time_seconds),
                    start_point=points[i],
                    end_point=points[i + 1],
                    instruction=generate_instruction(
                        street,
                        road_type,
                        distance_km,
                        maneuver_type=maneuver.type if maneuver else None,
                        maneuver_modifier=maneuver.modifier if maneuver else None,
                        roundabout_exit=maneuver.exit if maneuver else None,
                        locale=self.locale,
                    ),
                )
            )

        logger.debug("Built %d segments from %d legs", len(segments), len(route.legs))
        return segments

    async def _resolve_boundaries(
        self,
        coords: List[LatLon],
        stops: Dict[int, int],
        stop_count: int,
        requested: Sequence[RequestedWaypoint],
        engine_waypoints: Sequence[OsrmWaypoint],
    ) -> List[RoutePoint]:
        """`stops` maps a boundary index to the stop (0..stop_count-1) it sits on."""
        last = len(coords) - 1
        # Engine waypoints and user stops line up with legs only when counts agree.
        hints_aligned = len(engine_waypoints) == stop_count
        requested_aligned = len(requested) == stop_count
        intermediate = list(requested[1:-1]) if len(requested) > 2 else []

        jobs = []
        for index, coord in enumerate(coords):
            stop = stops.get(index)
            hint_id: Optional[str] = None
            hint_name: Optional[str] = None
            if stop is not None and hints_aligned:
                hint_id = engine_waypoints[stop].hint or None
                hint_name = engine_waypoints[stop].name or None

            match: Optional[RequestedWaypoint] = None
            if stop is not None and requested_aligned:
                match = requested[stop]
            else:
                match = nearest_requested(coord[0], coord[1], requested, self.match_tolerance_m)

            if index == 0:
                role: Optional[PointRole] = PointRole.START
            elif index == last:
                role = PointRole.END
            elif stop is not None:
                role = PointRole.WAYPOINT
            elif nearest_requested(coord[0], coord[1], intermediate, self.match_tolerance_m):
                role = PointRole.WAYPOINT
            else:
                role = None
            jobs.append((coord, hint_id, hint_name, role, match))

        semaphore = asyncio.Semaphore(self.concurrency)
        # Consecutive steps often share a boundary (leg arrive/depart); look each up once.
        pending: Dict[Tuple[LatLon, Optional[str], Optional[str]], asyncio.Task] = {}

        async def _lookup(coord: LatLon, hint_id: Optional[str], hint_name: Optional[str]) -> RoutePoint:
            async with semaphore:
                return await self.resolver.resolve(coord, hint_node_id=hint_id, hint_name=hint_name)

        for coord, hint_id, hint_name, _, _ in jobs:
            key = (coord, hint_id, hint_name)
            if key not in pending:
                pending[key] = asyncio.ensure_future(_lookup(coord, hint_id, hint_name))

        await asyncio.gather(*pending.values())

        points: List[RoutePoint] = []
        for coord, hint_id, hint_name, role, match in jobs:
            resolved = pending[(coord, hint_id, hint_name)].result()
            point = resolved.model_copy(update={"role": role})
            points.append(prefer_requested_name(point, match))
        return points
