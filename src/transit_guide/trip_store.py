# trip_store.py
# Keyed, TTL-bounded persistence for TripState.
# Expiry is a normal "not found" (load returns None), never an error.

import logging
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from .errors import TripStoreError
from .nav_config import TRIP_TTL_S
from .trip_state import DEFAULT_WINDOW, TripPhase, TripState

logger = logging.getLogger(__name__)

KEY_PREFIX = "trip:"


class TripStore(ABC):
    """Read / write / TTL contract shared by every store backend."""

    @abstractmethod
    def init(
        self,
        trip_id: str,
        itinerary_index: int,
        leg_index: int,
        step_index: Optional[int],
        phase: TripPhase,
    ) -> TripState:
        ...

    @abstractmethod
    def load(self, trip_id: str) -> Optional[TripState]:
        ...

    @abstractmethod
    def save(self, trip_id: str, state: TripState) -> None:
        ...

    @abstractmethod
    def delete(self, trip_id: str) -> None:
        ...


class InMemoryTripStore(TripStore):
    """
    Process-local store.

    Entries are kept serialized, so every load() hands out an independent
    TripState: a caller that mutates a loaded state and then fails to save
    leaves the stored copy exactly as it was. Each write restarts the TTL.

    Args:
        ttl_s:  Idle lifetime of an entry in seconds.
        window: Smoothing window applied to loaded states.
        clock:  Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        ttl_s: float = TRIP_TTL_S,
        window: int = DEFAULT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_s = ttl_s
        self.window = window
        self._clock = clock
        self._entries: Dict[str, Tuple[float, dict]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(trip_id: str) -> str:
        return KEY_PREFIX + trip_id

    # ------------------------------------------------------------------
    # TripStore contract
    # ------------------------------------------------------------------

    def init(
        self,
        trip_id: str,
        itinerary_index: int = 0,
        leg_index: int = 0,
        step_index: Optional[int] = 0,
        phase: TripPhase = TripPhase.WALKING,
    ) -> TripState:
        state = TripState(
            trip_id=trip_id,
            itinerary_index=itinerary_index,
            leg_index=leg_index,
            step_index=step_index,
            phase=phase,
            window=self.window,
        )
        self.save(trip_id, state)
        return state

    def load(self, trip_id: str) -> Optional[TripState]:
        key = self._key(trip_id)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, data = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                logger.info(f"Trip {trip_id} expired.")
                return None
        return TripState.from_dict(data, window=self.window)

    def save(self, trip_id: str, state: TripState) -> None:
        try:
            data = state.to_dict()
        except (AttributeError, TypeError, ValueError) as e:
            raise TripStoreError(f"Cannot serialize trip {trip_id}: {e}") from e
        with self._lock:
            self._entries[self._key(trip_id)] = (self._clock() + self.ttl_s, data)

    def delete(self, trip_id: str) -> None:
        with self._lock:
            self._entries.pop(self._key(trip_id), None)

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, (exp, _) in self._entries.items() if now >= exp]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Purged {len(expired)} expired trip(s).")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
