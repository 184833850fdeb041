# errors.py
# Exceptions raised past the coordinator boundary.
# Missing routes and unusable geometry are not errors: they come back as
# non-arrival results with diagnostic text.


class NavigationError(Exception):
    """Base class for all transit_guide failures."""


class TripStoreError(NavigationError):
    """The trip store could not be read or written."""


class TripBusyError(NavigationError):
    """Another update for the same trip held the lock for too long."""

    def __init__(self, trip_id: str, timeout_s: float) -> None:
        super().__init__(f"Trip {trip_id} is busy (waited {timeout_s:.1f}s).")
        self.trip_id = trip_id


class ProgressPersistenceError(NavigationError):
    """
    The update was processed but its state could not be saved.

    The computed guidance travels with the error so the caller can still
    speak it and decide whether to resend the whole update.
    """

    def __init__(self, trip_id: str, response, cause: Exception) -> None:
        super().__init__(f"Failed to save trip {trip_id}: {cause}")
        self.trip_id = trip_id
        self.response = response
