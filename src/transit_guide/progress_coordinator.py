# progress_coordinator.py
# Orchestrates one progress update:
#   load state -> smooth sample -> evaluate arrival -> hysteresis
#   -> advance indices / phase -> save -> guidance text.
# Updates for the same trip are serialized; different trips run in parallel.

import logging
import math
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, List, Optional

from .arrival import (
    ArrivalRequest,
    ArrivalResult,
    TransitArrivalEvaluator,
    WalkArrivalEvaluator,
    evaluator_for,
    is_transit,
)
from .errors import ProgressPersistenceError, TripBusyError, TripStoreError
from .guidance_text import guidance_text, terminal_text
from .models import Itinerary, RoutePlan
from .nav_config import NavConfig
from .trip_state import TripPhase, TripState, apply_event
from .trip_store import TripStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Input / output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProgressUpdate:
    """One GPS sample from the traveler's device."""
    lat: float
    lon: float
    speed_mps: Optional[float] = None
    timestamp_ms: Optional[int] = None
    arrive_radius_m: Optional[float] = None   # overrides the mode default
    look_ahead_m: Optional[float] = None      # overrides the mode default


@dataclass(frozen=True)
class GuidanceResponse:
    trip_id: str
    itinerary_index: int
    leg_index: int
    step_index: Optional[int]
    phase: TripPhase
    guidance_text: str
    remaining_meters: float                   # never negative
    arrived: bool = False                     # this update's raw signal
    arrival_confirmed: bool = False           # hysteresis passed, indices advanced
    next_instruction: Optional[str] = None
    stops_left: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "trip_id": self.trip_id,
            "itinerary_index": self.itinerary_index,
            "leg_index": self.leg_index,
            "step_index": self.step_index,
            "phase": self.phase.value,
            "guidance_text": self.guidance_text,
            "remaining_meters": self.remaining_meters,
            "arrived": self.arrived,
            "arrival_confirmed": self.arrival_confirmed,
            "next_instruction": self.next_instruction,
            "stops_left": self.stops_left,
        }


def _clamp(value: int, count: int) -> int:
    return min(max(value, 0), count - 1)


# ---------------------------------------------------------------------------
# Per-trip locks
# ---------------------------------------------------------------------------

class _TripLocks:
    """Lock table keyed by trip id. Entries disappear once nobody holds them."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}   # trip_id -> [lock, users]

    @contextmanager
    def hold(self, trip_id: str, timeout_s: float):
        with self._guard:
            entry = self._locks.setdefault(trip_id, [threading.Lock(), 0])
            entry[1] += 1
        lock = entry[0]
        acquired = lock.acquire(timeout=timeout_s)
        try:
            if not acquired:
                raise TripBusyError(trip_id, timeout_s)
            yield
        finally:
            if acquired:
                lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[trip_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class ProgressCoordinator:
    """
    Turns raw GPS samples into trip progress and a phrase to speak.

    Args:
        store:  TripStore holding every trip's state.
        config: NavConfig with radii, smoothing and hysteresis settings.
    """

    def __init__(self, store: TripStore, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        self.store = store
        self._locks = _TripLocks()
        self._walk = WalkArrivalEvaluator()
        self._transit = TransitArrivalEvaluator()

    # ------------------------------------------------------------------
    # Single evaluations (no state)
    # ------------------------------------------------------------------

    def check_walk_step(self, itinerary: Itinerary, request: ArrivalRequest) -> ArrivalResult:
        return self._walk.evaluate(itinerary, request)

    def check_transit_leg(self, itinerary: Itinerary, request: ArrivalRequest) -> ArrivalResult:
        return self._transit.evaluate(itinerary, request)

    # ------------------------------------------------------------------
    # Explicit events
    # ------------------------------------------------------------------

    def push_event(self, trip_id: str, event_type: str) -> bool:
        """
        Apply BOARD / ALIGHT / TRANSFER_CONFIRMED / ARRIVED / CANCEL.

        Returns:
            False if the trip does not exist (or expired), True otherwise.
            Unrecognized event types are accepted as no-ops.
        """
        with self._locks.hold(trip_id, self.config.lock_timeout_s):
            state = self.store.load(trip_id)
            if state is None:
                logger.warning(f"Event {event_type} for unknown trip {trip_id}.")
                return False

            if not apply_event(state, event_type):
                logger.info(f"Ignoring unknown event '{event_type}' for trip {trip_id}.")
                return True

            self.store.save(trip_id, state)
            logger.info(f"Trip {trip_id}: {event_type} -> {state.phase.value}")
            return True

    # ------------------------------------------------------------------
    # Core method, call on every GPS update
    # ------------------------------------------------------------------

    def update_progress(
        self,
        trip_id: str,
        plan: RoutePlan,
        update: ProgressUpdate,
    ) -> GuidanceResponse:
        """
        Process one GPS sample for a trip.

        Args:
            trip_id: Trip identifier; unknown trips start fresh.
            plan:    Route plan the trip follows, shared and read-only.
            update:  Raw sample and optional per-call overrides.

        Returns:
            GuidanceResponse for the device.

        Raises:
            TripBusyError:            the trip lock could not be taken in time.
            TripStoreError:           the state could not be loaded.
            ProgressPersistenceError: the state could not be saved; carries
                                      the computed response.
        """
        with self._locks.hold(trip_id, self.config.lock_timeout_s):
            return self._update_locked(trip_id, plan, update)

    def _update_locked(
        self,
        trip_id: str,
        plan: RoutePlan,
        update: ProgressUpdate,
    ) -> GuidanceResponse:
        cfg = self.config

        # 1. Load or create state
        state = self.store.load(trip_id)
        if state is None:
            logger.info(f"Trip {trip_id} not found, starting fresh.")
            state = TripState(trip_id=trip_id, step_index=0, window=cfg.median_window)
        # The configured window wins over whatever the store rebuilt
        state.resize(cfg.median_window)

        # Terminal phases are sticky: no evaluation, no phase write
        if state.phase.is_terminal:
            self._record_sample(state, update)
            response = GuidanceResponse(
                trip_id=trip_id,
                itinerary_index=state.itinerary_index,
                leg_index=state.leg_index,
                step_index=state.step_index,
                phase=state.phase,
                guidance_text=terminal_text(state.phase),
                remaining_meters=0.0,
            )
            self._save(trip_id, state, response)
            return response

        if not plan.itineraries:
            logger.warning(f"Trip {trip_id}: route plan has no itineraries.")
            return self._not_found(state)

        # 2. Buffer the raw sample
        state.push_sample(update.lat, update.lon)
        if update.speed_mps is not None and update.speed_mps < cfg.min_speed_mps:
            logger.debug(f"Trip {trip_id}: standing still ({update.speed_mps:.2f} m/s).")

        # 3. Median-smoothed position (raw sample as fallback)
        smoothed = state.smoothed()
        lat, lon = smoothed if smoothed is not None else (update.lat, update.lon)

        # 4. Clamp indices into the plan
        if not 0 <= state.itinerary_index < len(plan.itineraries):
            fixed = _clamp(state.itinerary_index, len(plan.itineraries))
            logger.warning(f"Trip {trip_id}: itinerary index {state.itinerary_index} -> {fixed}")
            state.itinerary_index = fixed
        itinerary = plan.itineraries[state.itinerary_index]

        if not itinerary.legs:
            logger.warning(f"Trip {trip_id}: itinerary {state.itinerary_index} has no legs.")
            return self._not_found(state)

        if not 0 <= state.leg_index < len(itinerary.legs):
            fixed = _clamp(state.leg_index, len(itinerary.legs))
            logger.warning(f"Trip {trip_id}: leg index {state.leg_index} -> {fixed}")
            state.leg_index = fixed
        current_leg = itinerary.legs[state.leg_index]

        # 5. Mode-specific parameters, caller overrides win
        mode = current_leg.mode_tag
        transit = is_transit(mode)
        arrive_radius = cfg.arrive_radius_for(mode)
        look_ahead = cfg.look_ahead_for(mode)
        if update.arrive_radius_m is not None:
            arrive_radius = update.arrive_radius_m
        if update.look_ahead_m is not None:
            look_ahead = update.look_ahead_m

        # 6. Evaluate arrival on the smoothed position
        request = ArrivalRequest(
            lat=lat,
            lon=lon,
            itinerary_index=state.itinerary_index,
            leg_index=state.leg_index,
            step_index=state.step_index,
            arrive_radius_m=arrive_radius,
            look_ahead_m=look_ahead,
        )
        result = evaluator_for(mode).evaluate(itinerary, request)
        if not result.found:
            logger.warning(f"Trip {trip_id}: no geometry for leg {state.leg_index} step {state.step_index}.")

        # 7. Hysteresis: N consecutive arrivals before anything advances
        state.arrival_streak = state.arrival_streak + 1 if result.arrived else 0
        confirmed = state.arrival_streak >= cfg.arrival_hysteresis_n

        # 8. Apply the advance
        if confirmed:
            if result.next_leg_index is not None:
                new_leg = _clamp(result.next_leg_index, len(itinerary.legs))
                if new_leg != state.leg_index:
                    state.step_index = 0
                state.leg_index = new_leg
                state.arrival_streak = 0
            if result.next_step_index is not None:
                state.step_index = result.next_step_index
                state.arrival_streak = 0
            logger.info(
                f"Trip {trip_id}: arrival confirmed -> leg {state.leg_index}, step {state.step_index}"
            )

        # 9. Phase from the evaluated leg; event-owned phases are left alone
        if state.phase in (TripPhase.WALKING, TripPhase.ONBOARD):
            state.phase = TripPhase.ONBOARD if transit else TripPhase.WALKING

        # 10. Last raw sample
        self._record_sample(state, update)

        # 11. Guidance, built first so a failed save can still hand it back
        text = guidance_text(result, state, itinerary, current_leg)
        remaining = result.remaining_meters
        response = GuidanceResponse(
            trip_id=trip_id,
            itinerary_index=state.itinerary_index,
            leg_index=state.leg_index,
            step_index=state.step_index,
            phase=state.phase,
            guidance_text=text,
            remaining_meters=0.0 if math.isnan(remaining) else max(0.0, remaining),
            arrived=result.arrived,
            arrival_confirmed=confirmed,
            next_instruction=result.next_instruction,
            stops_left=result.stops_left,
        )

        # 12. Persist
        self._save(trip_id, state, response)
        return response

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    @staticmethod
    def _record_sample(state: TripState, update: ProgressUpdate) -> None:
        state.last_lat = update.lat
        state.last_lon = update.lon
        state.last_speed_mps = update.speed_mps
        if update.timestamp_ms is not None:
            state.last_timestamp_ms = update.timestamp_ms
        else:
            state.last_timestamp_ms = int(time.time() * 1000)

    def _save(self, trip_id: str, state: TripState, response: GuidanceResponse) -> None:
        try:
            self.store.save(trip_id, state)
        except TripStoreError as e:
            logger.error(f"Trip {trip_id}: save failed: {e}")
            raise ProgressPersistenceError(trip_id, response, e) from e

    @staticmethod
    def _not_found(state: TripState) -> GuidanceResponse:
        result = ArrivalResult.not_found()
        return GuidanceResponse(
            trip_id=state.trip_id,
            itinerary_index=state.itinerary_index,
            leg_index=state.leg_index,
            step_index=state.step_index,
            phase=state.phase,
            guidance_text=result.current_instruction,
            remaining_meters=0.0,
        )
