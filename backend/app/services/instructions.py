"""
Instruction generator: deterministic, locale-table driven.

The base sentence is chosen by two things only: whether the street name is
known, and whether the road is a major one (motorway / trunk). When the engine
supplies a maneuver (type + modifier) a localized prefix is prepended; with no
maneuver the base sentence is used as-is. Turn geometry is never inferred.

Adding a locale is a new entry in LOCALES, nothing else.
"""

from typing import Dict, Optional

from app.schemas.itinerary import RoadType

DEFAULT_LOCALE = "fr"

MAJOR_ROAD_TYPES = {RoadType.MOTORWAY, RoadType.TRUNK}

LOCALES: Dict[str, Dict[str, object]] = {
    "fr": {
        "follow": "Suivez {street} pendant {distance} km",
        "follow_major": "Restez sur {street} pendant {distance} km",
        "continue": "Continuez pendant {distance} km",
        "continue_major": "Continuez sur la voie rapide pendant {distance} km",
        "arrive": "Vous êtes arrivé à destination",
        "arrive_named": "Vous êtes arrivé : {street}",
        "joiner": "{prefix}, puis {sentence}",
        "roundabout": "Au rond-point, prenez la sortie {exit}",
        "roundabout_no_exit": "Au rond-point",
        "modifiers": {
            "left": "Tournez à gauche",
            "right": "Tournez à droite",
            "slight left": "Serrez à gauche",
            "slight right": "Serrez à droite",
            "sharp left": "Tournez franchement à gauche",
            "sharp right": "Tournez franchement à droite",
            "uturn": "Faites demi-tour",
        },
    },
    "en": {
        "follow": "Follow {street} for {distance} km",
        "follow_major": "Stay on {street} for {distance} km",
        "continue": "Continue for {distance} km",
        "continue_major": "Continue on the highway for {distance} km",
        "arrive": "You have arrived at your destination",
        "arrive_named": "You have arrived: {street}",
        "joiner": "{prefix}, then {sentence}",
        "roundabout": "At the roundabout, take exit {exit}",
        "roundabout_no_exit": "At the roundabout",
        "modifiers": {
            "left": "Turn left",
            "right": "Turn right",
            "slight left": "Keep left",
            "slight right": "Keep right",
            "sharp left": "Turn sharp left",
            "sharp right": "Turn sharp right",
            "uturn": "Make a U-turn",
        },
    },
}

# Maneuver types for which the modifier describes an actual turn.
_TURNING_TYPES = {"turn", "end of road", "fork", "on ramp", "off ramp", "merge", "continue", "new name"}
_ROUNDABOUT_TYPES = {"roundabout", "rotary", "roundabout turn", "exit roundabout", "exit rotary"}


def format_distance(distance_km: float) -> str:
    return f"{distance_km:.1f}"


def format_duration(total_seconds: Optional[int]) -> str:
    """'2h 30min' or '45min'."""
    if total_seconds is None:
        return ""
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    if hours > 0:
        return f"{hours}h {minutes}min"
    return f"{minutes}min"


def _lower_first(text: str) -> str:
    return text[:1].lower() + text[1:] if text else text


def _table(locale: str) -> Dict[str, object]:
    try:
        return LOCALES[locale]
    except KeyError:
        raise ValueError(f"Unsupported instruction locale '{locale}'") from None


def generate_instruction(
    street_name: Optional[str],
    road_type: RoadType,
    distance_km: float,
    maneuver_type: Optional[str] = None,
    maneuver_modifier: Optional[str] = None,
    roundabout_exit: Optional[int] = None,
    locale: str = DEFAULT_LOCALE,
) -> str:
    table = _table(locale)
    street = (street_name or "").strip()
    major = RoadType(road_type) in MAJOR_ROAD_TYPES
    distance = format_distance(distance_km)

    if maneuver_type == "arrive":
        if street:
            return str(table["arrive_named"]).format(street=street)
        return str(table["arrive"])

    if street:
        key = "follow_major" if major else "follow"
    else:
        key = "continue_major" if major else "continue"
    sentence = str(table[key]).format(street=street, distance=distance)

    prefix: Optional[str] = None
    if maneuver_type in _ROUNDABOUT_TYPES:
        if roundabout_exit:
            prefix = str(table["roundabout"]).format(exit=roundabout_exit)
        else:
            prefix = str(table["roundabout_no_exit"])
    elif maneuver_type in _TURNING_TYPES and maneuver_modifier:
        modifiers: Dict[str, str] = table["modifiers"]  # type: ignore[assignment]
        prefix = modifiers.get(maneuver_modifier)

    if prefix:
        return str(table["joiner"]).format(prefix=prefix, sentence=_lower_first(sentence))
    return sentence
