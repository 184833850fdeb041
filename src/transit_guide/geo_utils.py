# geo_utils.py
# Pure mathematical / geographic helper functions.
# No side effects, no imports from other project modules except models.

import math
import re
from typing import List, Optional, Sequence

import numpy as np

from .models import Coord


EARTH_RADIUS_M = 6_371_000.0

_SEPARATORS = re.compile(r"[\s,]+")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in metres.

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Distance in metres.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def distance(a: Coord, b: Coord) -> float:
    """haversine_distance() for two Coord objects."""
    return haversine_distance(a.lat, a.lon, b.lat, b.lon)


def calculate_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Forward azimuth (bearing) from point 1 to point 2 in degrees [0, 360).

    Args:
        lat1, lon1: Origin in decimal degrees.
        lat2, lon2: Destination in decimal degrees.

    Returns:
        Bearing in degrees.
    """
    rlat1, rlon1 = math.radians(lat1), math.radians(lon1)
    rlat2, rlon2 = math.radians(lat2), math.radians(lon2)
    d_lon = rlon2 - rlon1
    y = math.sin(d_lon) * math.cos(rlat2)
    x = math.cos(rlat1) * math.sin(rlat2) - math.sin(rlat1) * math.cos(rlat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def parse_linestring(text: Optional[str]) -> List[Coord]:
    """
    Parse a provider linestring into coordinates.

    The provider sends "lon,lat lon,lat ..."; a flat "lon lat lon lat"
    sequence is accepted as well.

    Args:
        text: Encoded polyline, may be None.

    Returns:
        Ordered coordinates. Empty when the text is blank or malformed,
        which callers must read as "no geometry available".
    """
    if not text or not text.strip():
        return []

    parts = [p for p in _SEPARATORS.split(text.strip()) if p]
    if len(parts) % 2 != 0:
        return []

    try:
        values = [float(p) for p in parts]
    except ValueError:
        return []
    if not all(math.isfinite(v) for v in values):
        return []

    return [Coord(lat=values[i + 1], lon=values[i]) for i in range(0, len(values), 2)]


def polyline_length(points: Sequence[Coord]) -> float:
    """Sum of great-circle lengths of consecutive point pairs, in metres."""
    total = 0.0
    for a, b in zip(points, points[1:]):
        total += distance(a, b)
    return total


def median(values: Sequence[float]) -> Optional[float]:
    """Order-statistic median, or None for an empty sequence."""
    if len(values) == 0:
        return None
    return float(np.median(np.asarray(values, dtype=float)))
