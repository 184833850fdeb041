# polyline_snapper.py
# Projects a GPS position onto route geometry.
# Every arrival decision is built on snap_to_polyline().

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from .geo_utils import EARTH_RADIUS_M, distance
from .models import Coord


_M_PER_RAD = EARTH_RADIUS_M


@dataclass(frozen=True)
class SnapResult:
    meters_from_start: float   # along-path distance to the projection
    snapped: Coord             # closest point on the polyline
    segment_index: int         # segment holding the projection
    offset_m: float            # query point to projection, local planar metres


def _to_local(points: np.ndarray, origin: Coord) -> np.ndarray:
    """Equirectangular metres around origin. Columns are (x east, y north)."""
    k = math.cos(math.radians(origin.lat))
    x = np.radians(points[:, 1] - origin.lon) * k * _M_PER_RAD
    y = np.radians(points[:, 0] - origin.lat) * _M_PER_RAD
    return np.column_stack((x, y))


def snap_to_polyline(point: Coord, polyline: Sequence[Coord]) -> SnapResult:
    """
    Project point onto the nearest segment of polyline.

    Each segment is parameterised in a local metric frame centred on the
    query point with t clamped to [0, 1], so vertices are valid
    projections and nothing is extrapolated past either end. The closest
    segment wins; on equal distance the lowest index wins.

    Args:
        point:    Query position.
        polyline: Ordered vertices, at least one.

    Returns:
        SnapResult whose meters_from_start is the great-circle length of
        all preceding segments plus the partial length up to the projection.

    Raises:
        ValueError: polyline is empty.
    """
    if not polyline:
        raise ValueError("cannot snap to an empty polyline")

    first = polyline[0]
    if len(polyline) == 1:
        return SnapResult(0.0, first, 0, distance(point, first))

    deg = np.array([(c.lat, c.lon) for c in polyline], dtype=float)
    local = _to_local(deg, point)
    a = local[:-1]
    d = local[1:] - a

    len2 = np.einsum("ij,ij->i", d, d)
    with np.errstate(divide="ignore", invalid="ignore"):
        t = np.where(len2 > 0, -np.einsum("ij,ij->i", a, d) / len2, 0.0)
    t = np.clip(t, 0.0, 1.0)

    proj = a + d * t[:, None]
    offsets = np.hypot(proj[:, 0], proj[:, 1])
    i = int(np.argmin(offsets))

    start, end = polyline[i], polyline[i + 1]
    ti = float(t[i])
    snapped = Coord(
        lat=start.lat + ti * (end.lat - start.lat),
        lon=start.lon + ti * (end.lon - start.lon),
    )

    preceding = sum(distance(polyline[k], polyline[k + 1]) for k in range(i))
    return SnapResult(
        meters_from_start=preceding + distance(start, snapped),
        snapped=snapped,
        segment_index=i,
        offset_m=float(offsets[i]),
    )
