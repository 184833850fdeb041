# destination_tracker.py
# Straight-line progress towards a single destination.
# Used when the traveler only needs "how far is it" without a route plan.

from dataclasses import dataclass
from typing import Optional

from .geo_utils import calculate_bearing, haversine_distance
from .models import Coord
from .nav_config import NavConfig

NEAR_DESTINATION_M = 100.0


@dataclass
class DestinationTrackResult:
    """Returned by DestinationTracker.check() for every position fix."""
    distance_m: float
    arrived: bool
    message: str
    bearing_deg: float
    off_route: bool = False   # no corridor to deviate from yet


class DestinationTracker:
    """
    Distance-to-destination checker.

    Usage:
        tracker = DestinationTracker(config)
        result = tracker.check(current, destination)
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()

    def check(
        self,
        current: Coord,
        destination: Coord,
        threshold_m: Optional[float] = None,
    ) -> DestinationTrackResult:
        """
        Compare the current position to the destination.

        Args:
            current:     Current geographic position.
            destination: Target coordinate.
            threshold_m: Arrival distance; config default if omitted.

        Returns:
            DestinationTrackResult with distance, arrival flag and message.
        """
        threshold = threshold_m if threshold_m is not None else self.config.destination_threshold_m
        dist = haversine_distance(current.lat, current.lon, destination.lat, destination.lon)
        bearing = calculate_bearing(current.lat, current.lon, destination.lat, destination.lon)
        arrived = dist <= threshold

        if arrived:
            message = "You have arrived at your destination."
        elif dist < NEAR_DESTINATION_M:
            message = f"About {dist:.0f} meters to your destination."
        else:
            message = f"{dist:.0f} meters left. Keep going straight."

        return DestinationTrackResult(
            distance_m=dist,
            arrived=arrived,
            message=message,
            bearing_deg=bearing,
        )
