# trip_state.py
# Per-trip mutable record and the explicit trip-event state machine.

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Optional

from .geo_utils import median


# ---------------------------------------------------------------------------
# Phase / events
# ---------------------------------------------------------------------------

class TripPhase(Enum):
    WALKING   = "WALKING"
    ONBOARD   = "ONBOARD"
    TRANSFER  = "TRANSFER"
    ARRIVED   = "ARRIVED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (TripPhase.ARRIVED, TripPhase.CANCELLED)


class TripEvent(Enum):
    BOARD              = "BOARD"
    ALIGHT             = "ALIGHT"
    TRANSFER_CONFIRMED = "TRANSFER_CONFIRMED"
    ARRIVED            = "ARRIVED"
    CANCEL             = "CANCEL"


EVENT_TRANSITIONS = {
    TripEvent.BOARD:              TripPhase.ONBOARD,
    TripEvent.ALIGHT:             TripPhase.TRANSFER,
    TripEvent.TRANSFER_CONFIRMED: TripPhase.WALKING,
    TripEvent.ARRIVED:            TripPhase.ARRIVED,
    TripEvent.CANCEL:             TripPhase.CANCELLED,
}


# ---------------------------------------------------------------------------
# Trip state
# ---------------------------------------------------------------------------

DEFAULT_WINDOW = 5


@dataclass
class TripState:
    """
    Progress of one traveler along one route plan.

    The two coordinate buffers always hold the same number of samples and
    never more than the smoothing window; the oldest sample drops out first.
    """
    trip_id: str
    itinerary_index: int = 0
    leg_index: int = 0
    step_index: Optional[int] = None
    phase: TripPhase = TripPhase.WALKING
    window: int = DEFAULT_WINDOW
    lat_buffer: Deque[float] = None
    lon_buffer: Deque[float] = None
    arrival_streak: int = 0
    last_lat: Optional[float] = None
    last_lon: Optional[float] = None
    last_timestamp_ms: Optional[int] = None
    last_speed_mps: Optional[float] = None

    def __post_init__(self) -> None:
        if self.window < 1:
            raise ValueError(f"smoothing window must be positive, got {self.window}")
        self.lat_buffer = deque(self.lat_buffer or (), maxlen=self.window)
        self.lon_buffer = deque(self.lon_buffer or (), maxlen=self.window)

    # ------------------------------------------------------------------
    # Smoothing
    # ------------------------------------------------------------------

    def resize(self, window: int) -> None:
        """Rebuild both buffers with a new capacity, keeping the newest samples."""
        if window < 1:
            raise ValueError(f"smoothing window must be positive, got {window}")
        if window == self.window:
            return
        self.window = window
        self.lat_buffer = deque(self.lat_buffer, maxlen=window)
        self.lon_buffer = deque(self.lon_buffer, maxlen=window)

    def push_sample(self, lat: float, lon: float) -> None:
        self.lat_buffer.append(lat)
        self.lon_buffer.append(lon)

    def smoothed(self):
        """(lat, lon) medians of the buffers, or None while they are empty."""
        lat = median(self.lat_buffer)
        lon = median(self.lon_buffer)
        if lat is None or lon is None:
            return None
        return lat, lon

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "trip_id": self.trip_id,
            "itinerary_index": self.itinerary_index,
            "leg_index": self.leg_index,
            "step_index": self.step_index,
            "phase": self.phase.value,
            "lat_buffer": list(self.lat_buffer),
            "lon_buffer": list(self.lon_buffer),
            "arrival_streak": self.arrival_streak,
            "last_lat": self.last_lat,
            "last_lon": self.last_lon,
            "last_timestamp_ms": self.last_timestamp_ms,
            "last_speed_mps": self.last_speed_mps,
        }

    @staticmethod
    def from_dict(d: dict, window: int = DEFAULT_WINDOW) -> "TripState":
        return TripState(
            trip_id=d["trip_id"],
            itinerary_index=d.get("itinerary_index", 0),
            leg_index=d.get("leg_index", 0),
            step_index=d.get("step_index"),
            phase=TripPhase(d.get("phase", TripPhase.WALKING.value)),
            window=window,
            lat_buffer=d.get("lat_buffer") or [],
            lon_buffer=d.get("lon_buffer") or [],
            arrival_streak=d.get("arrival_streak", 0),
            last_lat=d.get("last_lat"),
            last_lon=d.get("last_lon"),
            last_timestamp_ms=d.get("last_timestamp_ms"),
            last_speed_mps=d.get("last_speed_mps"),
        )


def parse_event(event_type: Optional[str]) -> Optional[TripEvent]:
    if not event_type:
        return None
    try:
        return TripEvent(event_type.strip().upper())
    except ValueError:
        return None


def apply_event(state: TripState, event_type: Optional[str]) -> bool:
    """
    Apply an explicit trip event to state.

    Returns:
        True if the event was recognized and applied, False for an unknown one
        (which leaves state untouched).
    """
    event = parse_event(event_type)
    if event is None:
        return False
    state.phase = EVENT_TRANSITIONS[event]
    return True
