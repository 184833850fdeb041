# nav_config.py
# All tuneable constants in one place.
# Pass a NavConfig instance to every module that needs settings.

import os
from dataclasses import dataclass
from typing import Optional


# ---------------------------------------------------------------------------
# Mode constants
# ---------------------------------------------------------------------------

WALK_MODE: str = "WALK"

TRANSIT_MODES: frozenset = frozenset({"BUS", "SUBWAY"})

TRIP_TTL_S: float = 3 * 60 * 60  # idle trips are dropped after 3 hours


# ---------------------------------------------------------------------------
# Main config
# ---------------------------------------------------------------------------

@dataclass
class NavConfig:
    # Arrival detection
    arrive_radius_walk_m: float = 12.0     # end of step/leg reached (walking)
    arrive_radius_transit_m: float = 20.0  # end of leg reached (bus / subway)
    look_ahead_walk_m: Optional[float] = 30.0
    look_ahead_transit_m: Optional[float] = None

    # GPS smoothing
    median_window: int = 5                 # samples kept per axis
    arrival_hysteresis_n: int = 2          # consecutive arrivals before advancing
    min_speed_mps: float = 0.3             # below this the user is standing still

    # Trip store
    trip_ttl_s: float = TRIP_TTL_S
    lock_timeout_s: float = 5.0

    # Straight-line destination tracking
    destination_threshold_m: float = 3.0

    # Logging
    log_dir: str = "."                     # directory for saved JSON files
    route_filename: str = "active_route.json"
    session_filename: str = "nav_session.jsonl"

    # Modes outside TRANSIT_MODES are walked, so they get the walking values
    def arrive_radius_for(self, mode: str) -> float:
        if mode in TRANSIT_MODES:
            return self.arrive_radius_transit_m
        return self.arrive_radius_walk_m

    def look_ahead_for(self, mode: str) -> Optional[float]:
        if mode in TRANSIT_MODES:
            return self.look_ahead_transit_m
        return self.look_ahead_walk_m

    @property
    def route_filepath(self) -> str:
        return os.path.join(self.log_dir, self.route_filename)

    @property
    def session_filepath(self) -> str:
        return os.path.join(self.log_dir, self.session_filename)
