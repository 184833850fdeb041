# nav_logger.py
# Handles all file I/O for the guidance session.
# Saves route plans and progress events as JSON.

import json
import logging
import math
import os
from datetime import datetime
from typing import Optional

from .models import RoutePlan
from .nav_config import NavConfig
from .progress_coordinator import GuidanceResponse, ProgressUpdate

# Standard Python logger, configured once at the app entry point
logger = logging.getLogger(__name__)


class NavLogger:
    """
    Persists route plans and guidance events to JSON files.

    Args:
        config: NavConfig instance for file paths and directories.
    """

    def __init__(self, config: Optional[NavConfig] = None) -> None:
        self.config = config or NavConfig()
        os.makedirs(self.config.log_dir, exist_ok=True)

    # ------------------------------------------------------------------
    # Route persistence
    # ------------------------------------------------------------------

    def save_route(self, trip_id: str, plan: RoutePlan) -> bool:
        """
        Serialize a route plan to JSON.

        Args:
            trip_id: Trip the plan was issued for.
            plan:    RoutePlan object.

        Returns:
            True on success, False on failure.
        """
        filepath = self.config.route_filepath
        try:
            data = {
                "saved_at": datetime.now().isoformat(),
                "trip_id": trip_id,
                "itinerary_count": len(plan.itineraries),
                "plan": plan.to_dict(),
            }
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            logger.info(f"Route saved to {filepath} ({len(plan.itineraries)} itineraries).")
            return True
        except IOError as e:
            logger.error(f"Failed to save route to {filepath}: {e}")
            return False

    def load_route(self, filepath: Optional[str] = None) -> Optional[RoutePlan]:
        """
        Load a route plan from JSON.

        Accepts both files written by save_route() and raw provider responses.

        Args:
            filepath: Path override; uses config default if omitted.

        Returns:
            RoutePlan, or None if loading failed.
        """
        path = filepath or self.config.route_filepath
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            plan = RoutePlan.from_dict(data.get("plan", data))
            logger.info(f"Route loaded from {path} ({len(plan.itineraries)} itineraries).")
            return plan
        except (IOError, KeyError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to load route from {path}: {e}")
            return None

    # ------------------------------------------------------------------
    # Session event logging
    # ------------------------------------------------------------------

    def log_event(self, response: GuidanceResponse, update: ProgressUpdate) -> None:
        """
        Append a single guidance event to the session log file.

        Args:
            response: GuidanceResponse from ProgressCoordinator.
            update:   The GPS sample that produced it.
        """
        remaining = response.remaining_meters
        entry = {
            "timestamp": datetime.now().isoformat(),
            "trip_id": response.trip_id,
            "lat": update.lat,
            "lon": update.lon,
            "speed_mps": update.speed_mps,
            "itinerary_index": response.itinerary_index,
            "leg_index": response.leg_index,
            "step_index": response.step_index,
            "phase": response.phase.value,
            "arrived": response.arrived,
            "arrival_confirmed": response.arrival_confirmed,
            "message": response.guidance_text,
            "remaining_meters": None if math.isnan(remaining) else remaining,
        }
        self._append(entry)

    def log_trip_event(self, trip_id: str, event_type: str, accepted: bool) -> None:
        """Append an explicit trip event (BOARD, ALIGHT, ...) to the session log."""
        self._append({
            "timestamp": datetime.now().isoformat(),
            "trip_id": trip_id,
            "event": event_type,
            "accepted": accepted,
        })

    def _append(self, entry: dict) -> None:
        event_file = self.config.session_filepath
        try:
            with open(event_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except IOError as e:
            logger.error(f"Failed to write event log: {e}")
