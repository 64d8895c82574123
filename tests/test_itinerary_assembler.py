import asyncio
import json
import uuid

import pytest

from app.core.exceptions import EmptyRoute, MalformedGeometry, UpstreamRouteFailure
from app.schemas.itinerary import PointRole, RequestedWaypoint
from app.services import polyline
from app.services.itinerary_assembler import ItineraryAssembler, segment_totals
from app.services.node_resolver import NodeMatch, NodeResolver
from app.services.waypoints import deserialize_waypoints

from conftest import PATH, DictLookup, make_response, make_step, scenario_a_response

USER = uuid.UUID("6f1c2a7e-3b0d-4f7e-9a55-0c1d2e3f4a5b")


def run(coro):
    return asyncio.run(coro)


def test_scenario_a_totals_and_instructions(resolver, store):
    assembler = ItineraryAssembler(resolver, store)
    itinerary = run(assembler.build(scenario_a_response(), [], USER))

    assert len(itinerary.segments) == 2
    first, second = itinerary.segments
    assert "Avenue Kennedy" in first.instruction and "5.2" in first.instruction
    assert second.instruction == "Continuez pendant 1.8 km"
    assert itinerary.distance_meters == 7000
    assert itinerary.duration_seconds == 450
    assert itinerary.user_id == USER
    assert itinerary.id is None and itinerary.created_at is None
    # build() does not touch the store
    assert store.saved == []


def test_totals_come_from_segments_not_engine(resolver):
    payload = scenario_a_response()
    payload["routes"][0]["distance"] = 123456.0
    payload["routes"][0]["duration"] = 1.0
    itinerary = run(ItineraryAssembler(resolver).build(payload, [], USER))
    assert itinerary.distance_meters == sum(s.distance_km * 1000 for s in itinerary.segments)
    assert itinerary.duration_seconds == sum(s.time_seconds for s in itinerary.segments)
    assert (itinerary.distance_meters, itinerary.duration_seconds) == segment_totals(itinerary.segments)


def test_consistency_with_fractional_metrics(resolver):
    steps = [make_step(1234.5 + i * 0.1, 61.5 + i * 0.3, f"Rue {i}", PATH[i % 4]) for i in range(7)]
    itinerary = run(ItineraryAssembler(resolver).build(make_response([steps]), [], USER))
    assert itinerary.distance_meters == sum(s.distance_km * 1000 for s in itinerary.segments)
    assert itinerary.duration_seconds == sum(s.time_seconds for s in itinerary.segments)
    assert [s.segment_number for s in itinerary.segments] == list(range(1, 8))


def test_scenario_b_engine_failure(resolver, store):
    payload = {"code": "NoRoute", "message": "Impossible route between points", "routes": []}
    with pytest.raises(UpstreamRouteFailure) as info:
        run(ItineraryAssembler(resolver, store).assemble(payload, [], USER))
    assert info.value.status == "NoRoute"
    assert "Impossible route" in str(info.value)
    assert store.saved == []


def test_unparseable_engine_payload(resolver):
    with pytest.raises(UpstreamRouteFailure):
        run(ItineraryAssembler(resolver).build({"code": "Ok", "routes": [{"legs": "nope"}]}, [], USER))
    with pytest.raises(UpstreamRouteFailure):
        run(ItineraryAssembler(resolver).build(["not", "a", "dict"], [], USER))


def test_scenario_c_zero_legs(resolver, store):
    with pytest.raises(EmptyRoute):
        run(ItineraryAssembler(resolver, store).assemble(make_response([]), [], USER))
    assert store.saved == []


def test_ok_without_routes_is_empty(resolver):
    with pytest.raises(EmptyRoute):
        run(ItineraryAssembler(resolver).build({"code": "Ok", "routes": []}, [], USER))


def test_malformed_geometry(resolver):
    payload = scenario_a_response()
    payload["routes"][0]["geometry"] = "_p~iF~ps|U_ulLnnqC_mqNvxq`"
    with pytest.raises(MalformedGeometry):
        run(ItineraryAssembler(resolver).build(payload, [], USER))


def test_scenario_d_requested_name_wins(store):
    boundary = PATH[2]
    # Graph knows an unnamed junction right at the step boundary.
    lookup = DictLookup({boundary: NodeMatch(node_id="junction-17")})
    requested = [
        RequestedWaypoint(latitude=PATH[0][0], longitude=PATH[0][1], name="Akwa"),
        RequestedWaypoint(latitude=boundary[0] + 0.00005, longitude=boundary[1], name="Central Market"),
        RequestedWaypoint(latitude=PATH[-1][0], longitude=PATH[-1][1], name="Bonapriso"),
    ]
    assembler = ItineraryAssembler(NodeResolver(lookup), store)
    itinerary = run(assembler.build(scenario_a_response(), requested, USER))

    point = itinerary.segments[0].end_point
    assert point.name == "Central Market"
    assert point.node_id == "junction-17"
    assert point.role is PointRole.WAYPOINT
    assert itinerary.segments[1].start_point == point


def test_waypoints_serialized_in_request_order(resolver):
    requested = [
        RequestedWaypoint(latitude=PATH[0][0], longitude=PATH[0][1], name="Akwa"),
        RequestedWaypoint(latitude=3.9, longitude=9.8, poi_id=42),
        RequestedWaypoint(latitude=PATH[-1][0], longitude=PATH[-1][1], name="Bonapriso"),
    ]
    itinerary = run(ItineraryAssembler(resolver).build(scenario_a_response(), requested, USER, name="Tour"))
    stored = json.loads(itinerary.waypoints_json)
    assert [w.get("name") for w in stored] == ["Akwa", None, "Bonapriso"]
    assert stored[1]["poi_id"] == 42
    assert itinerary.origin_location == "Akwa"
    assert itinerary.destination_location == "Bonapriso"
    assert itinerary.name == "Tour"


def test_geometry_stored_as_received(resolver):
    payload = scenario_a_response()
    itinerary = run(ItineraryAssembler(resolver).build(payload, [], USER))
    assert itinerary.geometry_encoded == payload["routes"][0]["geometry"]


def test_assemble_hands_id_less_itinerary_to_store(resolver, store):
    saved = run(ItineraryAssembler(resolver, store).assemble(scenario_a_response(), [], USER))
    assert len(store.saved) == 1
    assert store.saved[0].id is None
    assert saved.id is not None
    assert saved.created_at is not None and saved.updated_at is not None


def test_read_back_reproduces_segments(resolver, store):
    saved = run(ItineraryAssembler(resolver, store).assemble(scenario_a_response(), [], USER))
    loaded = run(store.get(saved.id))
    assert loaded.segments == saved.segments
    assert loaded.distance_meters == saved.distance_meters


def test_rebuild_is_deterministic(resolver):
    assembler = ItineraryAssembler(resolver)
    a = run(assembler.build(scenario_a_response(), [], USER))
    b = run(assembler.build(scenario_a_response(), [], USER))
    assert a.segments == b.segments
    assert (a.distance_meters, a.duration_seconds) == (b.distance_meters, b.duration_seconds)


DOUALA = (4.0435, 9.7022)
YAOUNDE = (3.848, 11.5021)


def test_precision6_polyline_near_equator_is_rejected(resolver):
    # Read at 1e5, a 1e6 polyline of Douala → Yaoundé decodes to (40.4, 97.0) → (38.5, 115.0):
    # inside WGS84 bounds, but thousands of km from the snapped waypoints.
    payload = make_response([[
        make_step(240000, 12000, "N3", DOUALA, "depart"),
        make_step(0, 0, "", YAOUNDE, "arrive"),
    ]], path=[DOUALA, YAOUNDE])
    payload["routes"][0]["geometry"] = polyline.encode([(lat * 10, lon * 10) for lat, lon in [DOUALA, YAOUNDE]])
    with pytest.raises(MalformedGeometry):
        run(ItineraryAssembler(resolver).build(payload, [], USER))


def test_precision_check_uses_maneuvers_without_waypoints(resolver):
    payload = make_response([[
        make_step(240000, 12000, "N3", DOUALA, "depart"),
        make_step(0, 0, "", YAOUNDE, "arrive"),
    ]], path=[DOUALA, YAOUNDE], waypoints=[])
    payload["routes"][0]["geometry"] = polyline.encode([(lat * 10, lon * 10) for lat, lon in [DOUALA, YAOUNDE]])
    with pytest.raises(MalformedGeometry):
        run(ItineraryAssembler(resolver).build(payload, [], USER))


def test_engine_location_out_of_bounds_is_malformed(resolver, store):
    payload = make_response([[
        make_step(1000, 60, "Rue A", PATH[0], "depart"),
        make_step(1000, 60, "Rue B", (95.0, 9.72), "turn", "left"),
    ]])
    with pytest.raises(MalformedGeometry):
        run(ItineraryAssembler(resolver, store).assemble(payload, [], USER))
    assert store.saved == []


def test_stored_waypoints_read_back(resolver):
    requested = [
        RequestedWaypoint(latitude=PATH[0][0], longitude=PATH[0][1], name="Akwa"),
        RequestedWaypoint(latitude=3.9, longitude=9.8, poi_id=42),
        RequestedWaypoint(latitude=PATH[-1][0], longitude=PATH[-1][1], name="Bonapriso"),
    ]
    itinerary = run(ItineraryAssembler(resolver).build(scenario_a_response(), requested, USER))
    assert deserialize_waypoints(itinerary.waypoints_json) == requested
    assert deserialize_waypoints("") == []
