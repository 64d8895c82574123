"""
Geometry codec for the compact path encoding emitted by the routing engine.

This is the Google polyline algorithm at 5 decimal digits: each coordinate is
scaled by 1e5, delta-encoded against the previous point, zig-zag signed and
written as 5-bit chunks offset by 63.

Decoding validates as it goes. Truncated input, characters outside the
alphabet, a latitude without its longitude, or values that land outside
WGS84 bounds all raise MalformedGeometry. The bounds check catches a
precision mismatch (a 1e6 polyline read at 1e5 overshoots by 10x) only away
from the equator; the segment builder also compares the decoded path ends
with the engine's snapped waypoints, which catches it everywhere.
"""

from typing import Iterable, List, Tuple

from app.core.exceptions import MalformedGeometry

LatLon = Tuple[float, float]

PRECISION = 5
_FACTOR = 10 ** PRECISION

_CHUNK_BITS = 5
_CONTINUATION = 0x20
_CHUNK_MASK = 0x1F
_OFFSET = 63

# |delta| <= 360 * 1e5 fits in 27 bits once zig-zagged, i.e. 6 chunks.
_MAX_SHIFT = 30


def _read_value(encoded: str, index: int) -> Tuple[int, int]:
    """Read one signed varint starting at `index`; return (value, next_index)."""
    shift = 0
    result = 0
    while True:
        if index >= len(encoded):
            raise MalformedGeometry(f"Truncated polyline at offset {index}")
        b = ord(encoded[index]) - _OFFSET
        if b < 0 or b > 0x3F:
            raise MalformedGeometry(
                f"Invalid polyline character {encoded[index]!r} at offset {index}"
            )
        index += 1
        result |= (b & _CHUNK_MASK) << shift
        shift += _CHUNK_BITS
        if b < _CONTINUATION:
            break
        if shift > _MAX_SHIFT:
            raise MalformedGeometry(f"Delta out of range at offset {index}")
    value = ~(result >> 1) if (result & 1) else (result >> 1)
    return value, index


def decode(encoded: str) -> List[LatLon]:
    """Decode a polyline string into an ordered list of (lat, lon) pairs."""
    if encoded is None:
        raise MalformedGeometry("Missing polyline")

    points: List[LatLon] = []
    index = 0
    lat = 0
    lon = 0
    length = len(encoded)

    while index < length:
        dlat, index = _read_value(encoded, index)
        if index >= length:
            raise MalformedGeometry("Polyline ends with a latitude but no longitude")
        dlon, index = _read_value(encoded, index)
        lat += dlat
        lon += dlon

        point = (lat / _FACTOR, lon / _FACTOR)
        if not (-90.0 <= point[0] <= 90.0) or not (-180.0 <= point[1] <= 180.0):
            raise MalformedGeometry(
                f"Decoded point {point} is outside WGS84 bounds "
                f"(expected precision {PRECISION})"
            )
        points.append(point)

    return points


def _write_value(value: int, out: List[str]) -> None:
    value = ~(value << 1) if value < 0 else (value << 1)
    while value >= _CONTINUATION:
        out.append(chr((_CONTINUATION | (value & _CHUNK_MASK)) + _OFFSET))
        value >>= _CHUNK_BITS
    out.append(chr(value + _OFFSET))


def encode(points: Iterable[LatLon]) -> str:
    """Encode (lat, lon) pairs; `decode(encode(p))` returns p within 1e-5 degrees."""
    out: List[str] = []
    prev_lat = 0
    prev_lon = 0

    for lat, lon in points:
        if not (-90.0 <= lat <= 90.0) or not (-180.0 <= lon <= 180.0):
            raise ValueError(f"Coordinate out of range: ({lat}, {lon})")
        lat_i = int(round(lat * _FACTOR))
        lon_i = int(round(lon * _FACTOR))
        _write_value(lat_i - prev_lat, out)
        _write_value(lon_i - prev_lon, out)
        prev_lat, prev_lon = lat_i, lon_i

    return "".join(out)
