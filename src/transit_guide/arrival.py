# arrival.py
# Decides whether the traveler reached the end of the current step or leg.
# WALK legs are judged per step, BUS / SUBWAY legs against the whole route shape.

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from .geo_utils import distance, parse_linestring, polyline_length
from .models import Coord, Itinerary, Leg, TravelMode
from .polyline_snapper import snap_to_polyline

logger = logging.getLogger(__name__)

ROUTE_NOT_FOUND_TEXT = "Route not found."
GO_STRAIGHT_TEXT     = "Go straight."
EN_ROUTE_TEXT        = "Moving along the route."


# ---------------------------------------------------------------------------
# Request / result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ArrivalRequest:
    lat: float
    lon: float
    itinerary_index: int
    leg_index: int
    step_index: Optional[int]
    arrive_radius_m: float
    look_ahead_m: Optional[float] = None

    @property
    def position(self) -> Coord:
        return Coord(self.lat, self.lon)


@dataclass(frozen=True)
class ArrivalResult:
    """Outcome of one arrival evaluation."""
    arrived: bool
    remaining_meters: float                     # NaN when undeterminable
    current_instruction: str
    next_instruction: Optional[str] = None
    next_leg_index: Optional[int] = None        # set only when arrival advances the leg
    next_step_index: Optional[int] = None       # set only when arrival advances the step
    current_station_index: Optional[int] = None
    stops_left: Optional[int] = None

    @property
    def found(self) -> bool:
        return not math.isnan(self.remaining_meters)

    @staticmethod
    def not_found() -> "ArrivalResult":
        return ArrivalResult(
            arrived=False,
            remaining_meters=math.nan,
            current_instruction=ROUTE_NOT_FOUND_TEXT,
        )


def _safe_get(items, index: Optional[int]):
    if items is None or index is None or index < 0 or index >= len(items):
        return None
    return items[index]


def _remaining(position: Coord, points: List[Coord]) -> float:
    total = polyline_length(points)
    snap = snap_to_polyline(position, points)
    return max(0.0, total - snap.meters_from_start)


# ---------------------------------------------------------------------------
# Evaluators
# ---------------------------------------------------------------------------

class ArrivalEvaluator(ABC):
    """Common interface: judge arrival for one leg of an itinerary."""

    @abstractmethod
    def evaluate(self, itinerary: Itinerary, request: ArrivalRequest) -> ArrivalResult:
        ...


class WalkArrivalEvaluator(ArrivalEvaluator):
    """
    Walking legs.

    Uses the current step's linestring when there is one and falls back to
    the whole-leg shape. With a look-ahead distance set, the next step's
    instruction is previewed shortly before the step ends.
    """

    def evaluate(self, itinerary: Itinerary, request: ArrivalRequest) -> ArrivalResult:
        leg = itinerary.leg(request.leg_index)
        if leg is None:
            return ArrivalResult.not_found()

        current_inst: Optional[str] = None
        line: Optional[str] = None

        # 1. Step geometry first
        step = _safe_get(leg.steps, request.step_index)
        if step is not None:
            current_inst = step.description
            line = step.linestring

        # 2. Whole-leg shape as fallback
        if not line or not line.strip():
            line = leg.shape

        points = parse_linestring(line)
        if not points:
            return ArrivalResult.not_found()

        # 3. Remaining distance / arrival
        remaining = _remaining(request.position, points)
        arrived = remaining <= request.arrive_radius_m

        # 4. What comes next
        next_inst: Optional[str] = None
        next_leg: Optional[int] = None
        next_step: Optional[int] = None
        following = self._following_step(leg, request.step_index)

        if arrived:
            if following is not None:
                next_step = request.step_index + 1
                next_inst = following.description
            else:
                next_leg = request.leg_index + 1
        elif request.look_ahead_m is not None and remaining <= request.look_ahead_m:
            # Preview only, indices stay put
            if following is not None:
                next_inst = following.description

        if not current_inst or not current_inst.strip():
            current_inst = GO_STRAIGHT_TEXT

        return ArrivalResult(
            arrived=arrived,
            remaining_meters=remaining,
            current_instruction=current_inst,
            next_instruction=next_inst,
            next_leg_index=next_leg,
            next_step_index=next_step,
        )

    @staticmethod
    def _following_step(leg: Leg, step_index: Optional[int]):
        if step_index is None or not leg.steps:
            return None
        return _safe_get(leg.steps, step_index + 1)


class TransitArrivalEvaluator(ArrivalEvaluator):
    """
    Bus and subway legs.

    Judged against the leg's route shape; steps are ignored. When the leg
    lists its stations, the nearest one gives station progress with the
    last station taken as the alighting stop.
    """

    def evaluate(self, itinerary: Itinerary, request: ArrivalRequest) -> ArrivalResult:
        leg = itinerary.leg(request.leg_index)
        if leg is None:
            return ArrivalResult.not_found()

        points = parse_linestring(leg.shape)
        if not points:
            return ArrivalResult.not_found()

        remaining = _remaining(request.position, points)
        arrived = remaining <= request.arrive_radius_m

        current = f"{leg.start.name} → {leg.end.name}"
        if not leg.start.name.strip() and not leg.end.name.strip():
            current = EN_ROUTE_TEXT

        station_index = nearest_station_index(leg, request.position)
        stops_left = None
        if station_index is not None:
            stops_left = max(0, len(leg.stations) - 1 - station_index)

        return ArrivalResult(
            arrived=arrived,
            remaining_meters=remaining,
            current_instruction=current,
            next_leg_index=request.leg_index + 1 if arrived else None,
            current_station_index=station_index,
            stops_left=stops_left,
        )


def nearest_station_index(leg: Leg, position: Coord) -> Optional[int]:
    """Index of the closest parsable station, or None if there is none."""
    best_index = None
    min_dist = float("inf")
    for i, station in enumerate(leg.stations):
        coord = station.coord()
        if coord is None:
            continue
        d = distance(position, coord)
        if d < min_dist:
            min_dist = d
            best_index = i
    return best_index


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

_WALK    = WalkArrivalEvaluator()
_TRANSIT = TransitArrivalEvaluator()

_EVALUATORS = {
    TravelMode.WALK.value:   _WALK,
    TravelMode.BUS.value:    _TRANSIT,
    TravelMode.SUBWAY.value: _TRANSIT,
}


def evaluator_for(mode: str) -> ArrivalEvaluator:
    """Evaluator for a leg mode tag. Unknown modes are walked."""
    evaluator = _EVALUATORS.get(mode)
    if evaluator is None:
        logger.warning(f"Unknown leg mode '{mode}', evaluating as WALK.")
        return _WALK
    return evaluator


def is_transit(mode: str) -> bool:
    return _EVALUATORS.get(mode) is _TRANSIT
