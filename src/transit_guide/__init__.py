"""transit_guide - spoken progress guidance along walk / bus / subway routes."""

from .nav_config import NavConfig
from .models import Coord, Itinerary, Leg, RoutePlan, Station, TravelMode, WalkStep
from .arrival import ArrivalRequest, ArrivalResult, TransitArrivalEvaluator, WalkArrivalEvaluator
from .trip_state import TripEvent, TripPhase, TripState
from .trip_store import InMemoryTripStore, TripStore
from .errors import NavigationError, ProgressPersistenceError, TripBusyError, TripStoreError
from .progress_coordinator import GuidanceResponse, ProgressCoordinator, ProgressUpdate
from .destination_tracker import DestinationTracker
from .navigator import NavigationSystem

__all__ = [
    "NavConfig",
    "Coord",
    "Itinerary",
    "Leg",
    "RoutePlan",
    "Station",
    "TravelMode",
    "WalkStep",
    "ArrivalRequest",
    "ArrivalResult",
    "TransitArrivalEvaluator",
    "WalkArrivalEvaluator",
    "TripEvent",
    "TripPhase",
    "TripState",
    "InMemoryTripStore",
    "TripStore",
    "NavigationError",
    "ProgressPersistenceError",
    "TripBusyError",
    "TripStoreError",
    "GuidanceResponse",
    "ProgressCoordinator",
    "ProgressUpdate",
    "DestinationTracker",
    "NavigationSystem",
]
