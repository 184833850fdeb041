# models.py
# Route plan data structures shared across all modules.
# A RoutePlan is parsed once from the route provider's JSON and never mutated.

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from .nav_config import WALK_MODE


# ---------------------------------------------------------------------------
# Coordinate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Coord:
    """Immutable geographic coordinate."""
    lat: float
    lon: float


# ---------------------------------------------------------------------------
# Travel mode
# ---------------------------------------------------------------------------

class TravelMode(Enum):
    WALK   = "WALK"
    BUS    = "BUS"
    SUBWAY = "SUBWAY"


def _float_or_none(value) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ---------------------------------------------------------------------------
# Places, steps and stations
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Place:
    """Named start or end point of a leg."""
    name: str = ""
    lat: Optional[float] = None
    lon: Optional[float] = None

    @staticmethod
    def from_dict(d: Optional[dict]) -> "Place":
        if not d:
            return Place()
        return Place(
            name=d.get("name") or "",
            lat=_float_or_none(d.get("lat")),
            lon=_float_or_none(d.get("lon")),
        )


@dataclass(frozen=True)
class WalkStep:
    """A sub-segment of a WALK leg with its own instruction and geometry."""
    description: str
    linestring: Optional[str] = None
    street_name: Optional[str] = None
    distance: Optional[int] = None

    @staticmethod
    def from_dict(d: dict) -> "WalkStep":
        return WalkStep(
            description=d.get("description") or "",
            linestring=d.get("linestring"),
            street_name=d.get("streetName"),
            distance=d.get("distance"),
        )


@dataclass(frozen=True)
class Station:
    """A stop on a transit leg. Coordinates arrive as text from the provider."""
    index: Optional[int]
    name: str
    lon: Optional[str]
    lat: Optional[str]
    station_id: Optional[str] = None

    def coord(self) -> Optional[Coord]:
        """Parsed coordinate, or None when either component is unusable."""
        lat = _float_or_none(self.lat)
        lon = _float_or_none(self.lon)
        if lat is None or lon is None:
            return None
        return Coord(lat, lon)

    @staticmethod
    def from_dict(d: dict) -> "Station":
        return Station(
            index=d.get("index"),
            name=d.get("stationName") or "",
            lon=d.get("lon"),
            lat=d.get("lat"),
            station_id=d.get("stationID"),
        )


# ---------------------------------------------------------------------------
# Legs and itineraries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Leg:
    """One mode-homogeneous segment of an itinerary."""
    mode: Optional[str]
    start: Place = field(default_factory=Place)
    end: Place = field(default_factory=Place)
    steps: Tuple[WalkStep, ...] = ()        # WALK legs only
    stations: Tuple[Station, ...] = ()      # BUS / SUBWAY legs only
    shape: Optional[str] = None             # whole-leg linestring
    route: Optional[str] = None
    section_time: Optional[int] = None
    distance: Optional[int] = None

    @property
    def mode_tag(self) -> str:
        """Upper-cased mode; legs without a mode are walked."""
        return (self.mode or WALK_MODE).upper()

    @staticmethod
    def from_dict(d: dict) -> "Leg":
        pass_stops = d.get("passStopList") or {}
        pass_shape = d.get("passShape") or {}
        return Leg(
            mode=d.get("mode"),
            start=Place.from_dict(d.get("start")),
            end=Place.from_dict(d.get("end")),
            steps=tuple(WalkStep.from_dict(s) for s in d.get("steps") or []),
            stations=tuple(Station.from_dict(s) for s in pass_stops.get("stations") or []),
            shape=pass_shape.get("linestring"),
            route=d.get("route"),
            section_time=d.get("sectionTime"),
            distance=d.get("distance"),
        )


@dataclass(frozen=True)
class Itinerary:
    """One end-to-end route option."""
    legs: Tuple[Leg, ...]
    total_time: Optional[int] = None
    total_distance: Optional[int] = None
    transfer_count: Optional[int] = None
    path_type: Optional[int] = None

    def leg(self, index: int) -> Optional[Leg]:
        if 0 <= index < len(self.legs):
            return self.legs[index]
        return None

    @staticmethod
    def from_dict(d: dict) -> "Itinerary":
        return Itinerary(
            legs=tuple(Leg.from_dict(leg) for leg in d.get("legs") or []),
            total_time=d.get("totalTime"),
            total_distance=d.get("totalDistance"),
            transfer_count=d.get("transferCount"),
            path_type=d.get("pathType"),
        )


@dataclass(frozen=True)
class RoutePlan:
    """Ordered candidate itineraries produced by the route provider."""
    itineraries: Tuple[Itinerary, ...]

    @staticmethod
    def from_dict(d: dict) -> "RoutePlan":
        """
        Build a plan from provider JSON.

        Accepts the full response root ({"metaData": {"plan": ...}}),
        the metaData object, or the bare plan object.
        """
        if "metaData" in d:
            d = d["metaData"]
        if "plan" in d:
            d = d["plan"]
        if "itineraries" not in d:
            raise KeyError("itineraries")
        return RoutePlan(
            itineraries=tuple(Itinerary.from_dict(i) for i in d["itineraries"] or []),
        )

    def to_dict(self) -> dict:
        return {"itineraries": [_itinerary_to_dict(i) for i in self.itineraries]}


def _place_to_dict(p: Place) -> dict:
    return {"name": p.name, "lat": p.lat, "lon": p.lon}


def _leg_to_dict(leg: Leg) -> dict:
    return {
        "mode": leg.mode,
        "route": leg.route,
        "sectionTime": leg.section_time,
        "distance": leg.distance,
        "start": _place_to_dict(leg.start),
        "end": _place_to_dict(leg.end),
        "steps": [
            {
                "description": s.description,
                "linestring": s.linestring,
                "streetName": s.street_name,
                "distance": s.distance,
            }
            for s in leg.steps
        ],
        "passStopList": {
            "stations": [
                {
                    "index": st.index,
                    "stationName": st.name,
                    "lon": st.lon,
                    "lat": st.lat,
                    "stationID": st.station_id,
                }
                for st in leg.stations
            ],
        },
        "passShape": {"linestring": leg.shape},
    }


def _itinerary_to_dict(itin: Itinerary) -> dict:
    return {
        "totalTime": itin.total_time,
        "totalDistance": itin.total_distance,
        "transferCount": itin.transfer_count,
        "pathType": itin.path_type,
        "legs": [_leg_to_dict(leg) for leg in itin.legs],
    }


def modes_of(itinerary: Itinerary) -> List[str]:
    """Mode tags of every leg, in order."""
    return [leg.mode_tag for leg in itinerary.legs]
