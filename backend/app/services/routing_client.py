"""
OSRM client: one /route request per itinerary build.

The raw JSON body is returned as-is, failure codes included; judging the
`code` field is the assembler's job. Only transport problems are translated
here: a deadline miss becomes UpstreamTimeout, a non-JSON error page becomes
UpstreamRouteFailure.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from app.core.exceptions import UpstreamRouteFailure, UpstreamTimeout

logger = logging.getLogger(__name__)

LatLon = Tuple[float, float]


def format_coordinates(coords: Sequence[LatLon]) -> str:
    """(lat, lon) pairs → OSRM 'lon,lat;lon,lat;...'."""
    return ";".join(f"{lon},{lat}" for lat, lon in coords)


class OsrmClient:
    def __init__(
        self,
        base_url: str,
        profile: str = "driving",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not base_url:
            raise ValueError("OSRM base URL is not configured (OSRM_URL)")
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout = timeout
        self.transport = transport

    def route_url(self, coords: Sequence[LatLon]) -> str:
        return f"{self.base_url}/route/v1/{self.profile}/{format_coordinates(coords)}"

    async def fetch_route(self, coords: List[LatLon]) -> Dict[str, Any]:
        """Route through `coords` (start, intermediate stops, end) with full polyline geometry and steps."""
        if len(coords) < 2:
            raise ValueError("At least two coordinates are required to compute a route.")

        url = self.route_url(coords)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "true",
        }
        logger.debug("Calling OSRM: %s", url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeout(
                f"Routing engine did not answer within {self.timeout:.1f}s"
            ) from exc
        except httpx.TransportError as exc:
            raise UpstreamRouteFailure("Unreachable", str(exc)) from exc

        try:
            data = resp.json()
        except ValueError:
            raise UpstreamRouteFailure(
                f"HTTP {resp.status_code}", resp.text[:200] or None
            ) from None

        if not isinstance(data, dict):
            raise UpstreamRouteFailure(f"HTTP {resp.status_code}", "Unexpected response body")
        if resp.is_error and "code" not in data:
            raise UpstreamRouteFailure(f"HTTP {resp.status_code}", data.get("message"))
        return data
