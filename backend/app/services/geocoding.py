"""
Static city → coordinate lookup.

A fixed table, no network calls. Matching ignores case, surrounding
whitespace and accents ("yaounde" finds Yaoundé).
"""

import unicodedata
from typing import Dict, Optional, Tuple

# (lat, lng)
CITY_COORDINATES: Dict[str, Tuple[float, float]] = {
    "Douala": (4.0435, 9.7022),
    "Yaoundé": (3.8480, 11.5021),
    "Bafoussam": (5.4771, 10.4176),
    "Bamenda": (5.9631, 10.1591),
    "Garoua": (9.3034, 13.3924),
    "Maroua": (10.5916, 14.3311),
    "Ngaoundéré": (7.3276, 13.5786),
    "Kribi": (2.9506, 9.9077),
    "Limbe": (4.0121, 9.2140),
    "Buea": (4.1521, 9.2314),
}


def _key(name: str) -> str:
    folded = unicodedata.normalize("NFKD", name.strip().lower())
    return "".join(c for c in folded if not unicodedata.combining(c))


_INDEX: Dict[str, Tuple[str, Tuple[float, float]]] = {
    _key(city): (city, coords) for city, coords in CITY_COORDINATES.items()
}


def lookup_city(name: Optional[str]) -> Optional[Tuple[str, Tuple[float, float]]]:
    """(canonical name, (lat, lng)) or None."""
    if not name or not name.strip():
        return None
    return _INDEX.get(_key(name))
