# main.py
# Entry point: simulates a GPS loop feeding positions into NavigationSystem.
# In production, replace the sample plan and test_locations with the route
# provider's response and the device's GPS feed.

import logging
import time

from .models import RoutePlan
from .nav_config import NavConfig
from .navigator import NavigationSystem
from .progress_coordinator import ProgressUpdate
from .trip_state import TripPhase

# ------------------------------------------------------------------
# Logging setup: configure once here, all modules inherit
# ------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

# ------------------------------------------------------------------
# Config: tweak thresholds or paths here, not inside the modules
# ------------------------------------------------------------------
config = NavConfig(
    arrive_radius_walk_m=12.0,
    arrive_radius_transit_m=20.0,
    median_window=3,
    arrival_hysteresis_n=2,
    log_dir="logs",
)

# ------------------------------------------------------------------
# Sample plan (City Hall → Gwanghwamun, Seoul): walk, bus, walk
# ------------------------------------------------------------------
SAMPLE_PLAN = {
    "metaData": {
        "plan": {
            "itineraries": [{
                "totalTime": 900,
                "transferCount": 0,
                "pathType": 2,
                "legs": [
                    {
                        "mode": "WALK",
                        "start": {"name": "Start", "lon": 126.9770, "lat": 37.5650},
                        "end": {"name": "City Hall", "lon": 126.9777, "lat": 37.5657},
                        "steps": [
                            {
                                "streetName": "Sejong-daero",
                                "distance": 78,
                                "description": "Walk north along Sejong-daero for 78 meters.",
                                "linestring": "126.9770,37.5650 126.9770,37.5657",
                            },
                            {
                                "streetName": "",
                                "distance": 62,
                                "description": "Turn right and walk 62 meters to the bus stop.",
                                "linestring": "126.9770,37.5657 126.9777,37.5657",
                            },
                        ],
                        "passShape": {
                            "linestring": "126.9770,37.5650 126.9770,37.5657 126.9777,37.5657",
                        },
                    },
                    {
                        "mode": "BUS",
                        "route": "470",
                        "start": {"name": "City Hall", "lon": 126.9777, "lat": 37.5657},
                        "end": {"name": "Gwanghwamun", "lon": 126.9777, "lat": 37.5720},
                        "passStopList": {"stations": [
                            {"index": 0, "stationName": "City Hall", "lon": "126.9777", "lat": "37.5657"},
                            {"index": 1, "stationName": "Cheonggye Plaza", "lon": "126.9777", "lat": "37.5690"},
                            {"index": 2, "stationName": "Gwanghwamun", "lon": "126.9777", "lat": "37.5720"},
                        ]},
                        "passShape": {
                            "linestring": "126.9777,37.5657 126.9777,37.5690 126.9777,37.5720",
                        },
                    },
                    {
                        "mode": "WALK",
                        "start": {"name": "Gwanghwamun", "lon": 126.9777, "lat": 37.5720},
                        "end": {"name": "Destination", "lon": 126.9783, "lat": 37.5720},
                        "steps": [
                            {
                                "distance": 53,
                                "description": "Walk east 53 meters to your destination.",
                                "linestring": "126.9777,37.5720 126.9783,37.5720",
                            },
                        ],
                    },
                ],
            }],
        },
    },
}

# (lat, lon, event to send after this fix)
test_locations = [
    (37.56500, 126.97700, None),      # Start
    (37.56540, 126.97700, None),      # Walking north
    (37.56565, 126.97700, None),      # End of step 0
    (37.56569, 126.97701, None),      # Confirmed, now step 1
    (37.56570, 126.97740, None),      # Towards the bus stop
    (37.56570, 126.97768, None),      # Bus stop
    (37.56570, 126.97770, "BOARD"),   # Confirmed, boarding
    (37.56900, 126.97770, None),      # Cheonggye Plaza
    (37.57190, 126.97770, None),      # Approaching Gwanghwamun
    (37.57200, 126.97770, "ALIGHT"),  # Confirmed, getting off
    (37.57200, 126.97790, "TRANSFER_CONFIRMED"),
    (37.57200, 126.97820, None),      # Last walk
    (37.57200, 126.97829, None),
    (37.57200, 126.97830, "ARRIVED"),
]


def main() -> None:
    # 1. Boot system
    nav = NavigationSystem(config=config)

    # 2. Register the trip
    plan = RoutePlan.from_dict(SAMPLE_PLAN)
    trip_id = nav.start_trip(plan)
    print(f"[Main] Trip {trip_id} started.")

    print("\n--- GPS Loop Active ---")

    # 3. GPS loop, replace with real GPS feed in production
    for lat, lon, event in test_locations:
        response = nav.update(trip_id, plan, ProgressUpdate(lat=lat, lon=lon, speed_mps=1.2))

        print(
            f"  GPS ({lat:.5f}, {lon:.5f}) → [{response.phase.value} "
            f"leg {response.leg_index} step {response.step_index}] {response.guidance_text}"
        )
        if response.next_instruction:
            print(f"     next: {response.next_instruction}")

        if event:
            nav.push_event(trip_id, event)
            print(f"  ✓  Event {event}")

        state = nav.get_trip(trip_id)
        if state is not None and state.phase == TripPhase.ARRIVED:
            print("  ✓  Destination reached. Guidance ended.")
            break

        # Simulate GPS poll interval (remove in real use)
        time.sleep(0.05)

    print("\n--- Session complete ---")
    print(f"    Log files written to: {config.log_dir}/")


if __name__ == "__main__":
    main()
