# guidance_text.py
# Spoken guidance phrases for visually-impaired travelers.
# Pure functions: no state is read from or written to the store here.
#
# WALK         : remaining distance drives the phrase
# BUS / SUBWAY : phase drives the phrase

import math
from typing import Optional

from .arrival import ArrivalResult
from .models import Itinerary, Leg, TravelMode
from .nav_config import WALK_MODE
from .trip_state import TripPhase, TripState


# ---------------------------------------------------------------------------
# Phrase table
# ---------------------------------------------------------------------------

ARRIVED_TEXT = {
    TripPhase.ONBOARD:  "You have reached your stop. Get off carefully and wait for the next instruction.",
    TripPhase.TRANSFER: "You have reached the transfer point. Please move to the next route.",
    TripPhase.ARRIVED:  "You have arrived at your final destination.",
}
ARRIVED_DEFAULT_TEXT = "You have arrived. Please move on to the next section."

BUS_TEXT = {
    TripPhase.ONBOARD:  "You are on the bus. I will guide you again near your stop.",
    TripPhase.TRANSFER: "This is a transfer. Please wait for the connecting bus at the stop.",
}
BUS_DEFAULT_TEXT = "This is a bus section. Please wait for the bus at the stop."

SUBWAY_TEXT = {
    TripPhase.ONBOARD:  "You are on the subway. I will guide you again near your station.",
    TripPhase.TRANSFER: "This is a transfer station. Follow the platform and transfer signs.",
}
SUBWAY_DEFAULT_TEXT = "This is a subway section. Please go to the platform and wait for the train."

FOLLOW_ROUTE_TEXT = "Please continue along the route."
CANCELLED_TEXT    = "Guidance has been cancelled."


def _round_half_up(meters: float) -> int:
    return int(math.floor(meters + 0.5))


def walk_text(remaining_m: float) -> str:
    """Distance-banded phrase for a walking leg."""
    n = _round_half_up(remaining_m)
    if remaining_m <= 10:
        return "Almost there. Move slowly and watch your footing."
    if remaining_m <= 30:
        return f"About {n} meters left. Slow down and check your surroundings."
    if remaining_m <= 80:
        return f"Go straight about {n} meters, then wait for the next instruction."
    return f"About {n} meters until the next instruction."


def terminal_text(phase: TripPhase) -> str:
    if phase == TripPhase.CANCELLED:
        return CANCELLED_TEXT
    return ARRIVED_TEXT[TripPhase.ARRIVED]


def guidance_text(
    arrival: ArrivalResult,
    state: Optional[TripState],
    itinerary: Optional[Itinerary],
    leg: Optional[Leg],
) -> str:
    """
    Phrase to speak after one progress update.

    Args:
        arrival:   Evaluator result for this update.
        state:     Trip state after the update was applied.
        itinerary: Itinerary being followed (unused by the table today,
                   kept so callers pass the full context).
        leg:       Leg that was evaluated.

    Returns:
        One short sentence.
    """
    if not arrival.found:
        return arrival.current_instruction

    remaining = max(0.0, arrival.remaining_meters)
    mode = leg.mode_tag if leg is not None else WALK_MODE
    phase = state.phase if state is not None else None

    # 1. End of this leg / step
    if arrival.arrived:
        return ARRIVED_TEXT.get(phase, ARRIVED_DEFAULT_TEXT)

    # 2. Walking
    if mode == TravelMode.WALK.value:
        return walk_text(remaining)

    # 3. Bus
    if mode == TravelMode.BUS.value:
        return BUS_TEXT.get(phase, BUS_DEFAULT_TEXT)

    # 4. Subway
    if mode == TravelMode.SUBWAY.value:
        return SUBWAY_TEXT.get(phase, SUBWAY_DEFAULT_TEXT)

    # 5. Anything else (taxi, rail, ferry ...)
    return FOLLOW_ROUTE_TEXT
