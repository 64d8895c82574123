from typing import List, Tuple
import math

EARTH_RADIUS_M = 6371000.0


def haversine_m(a_lat: float, a_lon: float, b_lat: float, b_lon: float) -> float:
    phi1 = math.radians(a_lat)
    phi2 = math.radians(b_lat)
    dphi = math.radians(b_lat - a_lat)
    dlmb = math.radians(b_lon - a_lon)

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, s)))


def cumulative_lengths_m(points_latlon: List[Tuple[float, float]]) -> List[float]:
    """Distance from the first point to each point along the polyline."""
    out = [0.0] if points_latlon else []
    for i in range(1, len(points_latlon)):
        a_lat, a_lon = points_latlon[i - 1]
        b_lat, b_lon = points_latlon[i]
        out.append(out[-1] + haversine_m(a_lat, a_lon, b_lat, b_lon))
    return out


def format_coordinates(lat: float, lon: float) -> str:
    return f"{lat:.5f}, {lon:.5f}"
