# navigator.py
# Public entry point for the guidance system.
# Owns no business logic, delegates everything to specialist modules.

import logging
import uuid
from typing import Optional

from .destination_tracker import DestinationTracker, DestinationTrackResult
from .errors import ProgressPersistenceError
from .models import Coord, RoutePlan, modes_of
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .progress_coordinator import GuidanceResponse, ProgressCoordinator, ProgressUpdate
from .trip_state import TripPhase, TripState
from .trip_store import InMemoryTripStore, TripStore

logger = logging.getLogger(__name__)


class NavigationSystem:
    """
    High-level guidance facade.

    Typical lifecycle:
        nav = NavigationSystem()
        trip_id = nav.start_trip(plan)

        # GPS loop:
        response = nav.update(trip_id, plan, ProgressUpdate(lat, lon))

        # Explicit confirmations from the device:
        nav.push_event(trip_id, "BOARD")

    Args:
        config: Optional NavConfig; defaults to NavConfig().
        store:  Optional TripStore; defaults to an InMemoryTripStore.
    """

    def __init__(
        self,
        config: Optional[NavConfig] = None,
        store: Optional[TripStore] = None,
    ) -> None:
        self.config = config or NavConfig()
        self._store = store if store is not None else InMemoryTripStore(
            ttl_s=self.config.trip_ttl_s,
            window=self.config.median_window,
        )

        # Specialist modules
        self._coordinator = ProgressCoordinator(self._store, self.config)
        self._logger      = NavLogger(self.config)
        self._tracker     = DestinationTracker(self.config)

    # ------------------------------------------------------------------
    # Trip control
    # ------------------------------------------------------------------

    def start_trip(self, plan: RoutePlan) -> str:
        """
        Issue a trip id for a freshly planned route and start tracking it.

        Args:
            plan: Route plan returned by the route provider.

        Returns:
            The new trip id.
        """
        trip_id = str(uuid.uuid4())
        self._store.init(trip_id, 0, 0, 0, TripPhase.WALKING)
        self._logger.save_route(trip_id, plan)

        if plan.itineraries:
            logger.info(f"Trip {trip_id} started: {' → '.join(modes_of(plan.itineraries[0]))}")
        else:
            logger.warning(f"Trip {trip_id} started with an empty route plan.")
        return trip_id

    def push_event(self, trip_id: str, event_type: str) -> bool:
        """
        Apply an explicit trip event.

        Returns:
            False if the trip is unknown or expired.
        """
        accepted = self._coordinator.push_event(trip_id, event_type)
        self._logger.log_trip_event(trip_id, event_type, accepted)
        return accepted

    def stop_trip(self, trip_id: str) -> bool:
        """Forcibly end guidance for a trip."""
        return self.push_event(trip_id, "CANCEL")

    def get_trip(self, trip_id: str) -> Optional[TripState]:
        """Current state of a trip, or None if unknown / expired."""
        return self._store.load(trip_id)

    # ------------------------------------------------------------------
    # GPS update, call this on every position fix
    # ------------------------------------------------------------------

    def update(self, trip_id: str, plan: RoutePlan, update: ProgressUpdate) -> GuidanceResponse:
        """
        Process a new GPS position and return the guidance to speak.

        Args:
            trip_id: Trip identifier from start_trip().
            plan:    The trip's route plan.
            update:  GPS sample.

        Returns:
            GuidanceResponse with phase, indices and guidance text.

        Raises:
            ProgressPersistenceError: the update could not be saved. The
                                      event is still logged before re-raising.
        """
        try:
            response = self._coordinator.update_progress(trip_id, plan, update)
        except ProgressPersistenceError as e:
            self._logger.log_event(e.response, update)
            raise
        self._logger.log_event(response, update)
        return response

    # ------------------------------------------------------------------
    # Straight-line tracking
    # ------------------------------------------------------------------

    def track_destination(
        self,
        current: Coord,
        destination: Coord,
        threshold_m: Optional[float] = None,
    ) -> DestinationTrackResult:
        return self._tracker.check(current, destination, threshold_m)
