import threading

import pytest

from transit_guide.errors import ProgressPersistenceError, TripBusyError, TripStoreError
from transit_guide.guidance_text import ARRIVED_DEFAULT_TEXT, BUS_TEXT, CANCELLED_TEXT
from transit_guide.models import Itinerary, Leg, RoutePlan
from transit_guide.nav_config import NavConfig
from transit_guide.progress_coordinator import ProgressCoordinator, ProgressUpdate
from transit_guide.trip_state import TripPhase, TripState
from transit_guide.trip_store import InMemoryTripStore

from sample_plans import STEP_1, meters_to_lon, plan

AT_END_OF_STEP_0 = ProgressUpdate(lat=0.0, lon=0.00099)
AT_END_OF_STEP_1 = ProgressUpdate(lat=0.0, lon=0.002)
FAR_FROM_END = ProgressUpdate(lat=0.0, lon=0.0001)


class FlakyStore(InMemoryTripStore):
    """In-memory store whose writes can be switched off."""

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self.fail_saves = False

    def save(self, trip_id, state):
        if self.fail_saves:
            raise TripStoreError("store unavailable")
        super().save(trip_id, state)


def make(n=3, window=1, **cfg):
    config = NavConfig(median_window=window, arrival_hysteresis_n=n, **cfg)
    store = FlakyStore(window=window)
    return ProgressCoordinator(store, config), store


# ---------------------------------------------------------------------------
# Hysteresis
# ---------------------------------------------------------------------------

def test_advance_only_on_nth_consecutive_arrival():
    coord, store = make(n=3)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    route = plan()

    for streak in (1, 2):
        r = coord.update_progress("t", route, AT_END_OF_STEP_0)
        assert r.arrived
        assert not r.arrival_confirmed
        assert r.step_index == 0
        assert store.load("t").arrival_streak == streak

    r = coord.update_progress("t", route, AT_END_OF_STEP_0)
    assert r.arrival_confirmed
    assert r.step_index == 1
    assert r.next_instruction == STEP_1
    assert store.load("t").arrival_streak == 0


def test_negative_signal_resets_streak():
    coord, store = make(n=3)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    route = plan()

    coord.update_progress("t", route, AT_END_OF_STEP_0)
    coord.update_progress("t", route, AT_END_OF_STEP_0)
    r = coord.update_progress("t", route, FAR_FROM_END)
    assert not r.arrived
    assert store.load("t").arrival_streak == 0

    coord.update_progress("t", route, AT_END_OF_STEP_0)
    r = coord.update_progress("t", route, AT_END_OF_STEP_0)
    assert not r.arrival_confirmed
    assert r.step_index == 0

    r = coord.update_progress("t", route, AT_END_OF_STEP_0)
    assert r.arrival_confirmed
    assert r.step_index == 1


def test_leg_advance_resets_step_and_sets_phase():
    coord, store = make(n=1)
    store.init("t", 0, 0, 1, TripPhase.WALKING)
    route = plan()

    r = coord.update_progress("t", route, AT_END_OF_STEP_1)
    assert r.arrival_confirmed
    assert r.leg_index == 1
    assert r.step_index == 0
    assert r.phase == TripPhase.WALKING
    assert r.guidance_text == ARRIVED_DEFAULT_TEXT

    r = coord.update_progress("t", route, ProgressUpdate(lat=0.0, lon=0.004))
    assert r.phase == TripPhase.ONBOARD
    assert r.stops_left == 3
    assert r.guidance_text == BUS_TEXT[TripPhase.ONBOARD]


def test_last_leg_advance_is_clamped():
    coord, store = make(n=1)
    store.init("t", 0, 2, 0, TripPhase.WALKING)

    r = coord.update_progress("t", plan(), ProgressUpdate(lat=0.0, lon=0.008))
    assert r.arrival_confirmed
    assert r.leg_index == 2


# ---------------------------------------------------------------------------
# Smoothing / overrides
# ---------------------------------------------------------------------------

def test_median_smoothing_suppresses_outlier():
    coord, store = make(n=1, window=3)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    route = plan()

    coord.update_progress("t", route, ProgressUpdate(lat=0.0, lon=0.0002))
    coord.update_progress("t", route, ProgressUpdate(lat=0.0, lon=0.0003))
    # A single jump to the end of the step is outvoted by the median
    r = coord.update_progress("t", route, AT_END_OF_STEP_0)
    assert not r.arrived
    assert r.step_index == 0
    assert r.remaining_meters == pytest.approx(77.8, abs=0.1)

    state = store.load("t")
    assert len(state.lat_buffer) == 3
    assert state.last_lon == pytest.approx(0.00099)


def test_caller_radius_override():
    coord, store = make(n=1)
    store.init("t", 0, 0, 0, TripPhase.WALKING)

    r = coord.update_progress("t", plan(), ProgressUpdate(lat=0.0, lon=0.0, arrive_radius_m=200.0))
    assert r.arrived
    assert r.step_index == 1


def test_caller_look_ahead_override():
    coord, store = make(n=1, look_ahead_walk_m=None)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    lon = 0.001 - meters_to_lon(45.0)

    r = coord.update_progress("t", plan(), ProgressUpdate(lat=0.0, lon=lon))
    assert r.next_instruction is None

    r = coord.update_progress("t", plan(), ProgressUpdate(lat=0.0, lon=lon, look_ahead_m=50.0))
    assert r.next_instruction == STEP_1
    assert r.step_index == 0
    assert r.remaining_meters == pytest.approx(45.0, abs=0.01)


def test_timestamp_and_speed_are_recorded():
    coord, store = make()
    coord.update_progress("t", plan(), ProgressUpdate(lat=0.0, lon=0.0001, speed_mps=0.1, timestamp_ms=42))
    state = store.load("t")
    assert state.last_timestamp_ms == 42
    assert state.last_speed_mps == 0.1


# ---------------------------------------------------------------------------
# Clamping / not found
# ---------------------------------------------------------------------------

def test_unknown_trip_starts_fresh():
    coord, store = make()
    r = coord.update_progress("new", plan(), FAR_FROM_END)
    assert r.itinerary_index == 0
    assert r.leg_index == 0
    assert r.phase == TripPhase.WALKING
    assert store.load("new") is not None


def test_out_of_range_indices_are_clamped():
    coord, store = make()
    store.save("t", TripState(trip_id="t", itinerary_index=5, leg_index=7, window=1))

    r = coord.update_progress("t", plan(count=3), ProgressUpdate(lat=0.0, lon=0.0075))
    assert r.itinerary_index == 2
    assert r.leg_index == 2
    assert r.remaining_meters == pytest.approx(55.6, abs=0.1)


def test_negative_indices_are_clamped():
    coord, store = make()
    store.save("t", TripState(trip_id="t", itinerary_index=-1, leg_index=-3, window=1))
    r = coord.update_progress("t", plan(), FAR_FROM_END)
    assert r.itinerary_index == 0
    assert r.leg_index == 0


def test_missing_geometry_is_reported_not_raised():
    coord, store = make(n=1)
    route = RoutePlan(itineraries=(Itinerary(legs=(Leg(mode="WALK"),)),))
    r = coord.update_progress("t", route, FAR_FROM_END)
    assert r.guidance_text == "Route not found."
    assert r.remaining_meters == 0.0
    assert not r.arrived
    assert store.load("t").arrival_streak == 0


def test_empty_plan_is_not_found():
    coord, store = make()
    r = coord.update_progress("t", RoutePlan(itineraries=()), FAR_FROM_END)
    assert r.guidance_text == "Route not found."
    assert store.load("t") is None


# ---------------------------------------------------------------------------
# Events and phase authority
# ---------------------------------------------------------------------------

def test_event_on_unknown_trip_is_not_found():
    coord, _ = make()
    assert coord.push_event("missing", "BOARD") is False


def test_events_change_phase():
    coord, store = make()
    store.init("t", 0, 1, 0, TripPhase.WALKING)
    assert coord.push_event("t", "BOARD")
    assert store.load("t").phase == TripPhase.ONBOARD
    assert coord.push_event("t", "WAVE")
    assert store.load("t").phase == TripPhase.ONBOARD


def test_cancelled_trip_is_not_resurrected():
    coord, store = make(n=1)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    assert coord.push_event("t", "CANCEL")

    r = coord.update_progress("t", plan(), AT_END_OF_STEP_0)
    assert r.phase == TripPhase.CANCELLED
    assert r.guidance_text == CANCELLED_TEXT
    assert r.step_index == 0

    state = store.load("t")
    assert state.phase == TripPhase.CANCELLED
    assert list(state.lat_buffer) == []
    assert state.last_lon == pytest.approx(0.00099)


def test_arrived_trip_stays_arrived():
    coord, store = make(n=1)
    store.init("t", 0, 1, 0, TripPhase.WALKING)
    coord.push_event("t", "ARRIVED")
    r = coord.update_progress("t", plan(), ProgressUpdate(lat=0.0, lon=0.004))
    assert r.phase == TripPhase.ARRIVED


def test_transfer_phase_is_left_to_events():
    coord, store = make(n=3)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    coord.push_event("t", "ALIGHT")

    r = coord.update_progress("t", plan(), FAR_FROM_END)
    assert r.phase == TripPhase.TRANSFER

    coord.push_event("t", "TRANSFER_CONFIRMED")
    r = coord.update_progress("t", plan(), FAR_FROM_END)
    assert r.phase == TripPhase.WALKING


# ---------------------------------------------------------------------------
# Persistence failures and concurrency
# ---------------------------------------------------------------------------

def test_failed_save_keeps_previous_state_and_returns_guidance():
    coord, store = make(n=1)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    store.fail_saves = True

    with pytest.raises(ProgressPersistenceError) as exc:
        coord.update_progress("t", plan(), AT_END_OF_STEP_0)

    assert exc.value.response.arrival_confirmed
    assert exc.value.response.guidance_text == ARRIVED_DEFAULT_TEXT

    state = store.load("t")
    assert state.step_index == 0
    assert list(state.lat_buffer) == []


def test_busy_trip_times_out():
    coord, store = make(lock_timeout_s=0.05)
    store.init("t")
    with coord._locks.hold("t", 1.0):
        with pytest.raises(TripBusyError):
            coord.update_progress("t", plan(), FAR_FROM_END)


def test_concurrent_updates_to_one_trip_are_serialized():
    coord, store = make(n=10_000, window=3)
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    route = plan()

    def worker():
        for _ in range(25):
            coord.update_progress("t", route, AT_END_OF_STEP_0)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    state = store.load("t")
    assert state.arrival_streak == 100
    assert len(state.lat_buffer) == 3
    assert len(coord._locks) == 0


def test_single_evaluations_need_no_state():
    from transit_guide.arrival import ArrivalRequest

    coord, _ = make()
    itin = plan().itineraries[0]
    walk = coord.check_walk_step(itin, ArrivalRequest(0.0, 0.00099, 0, 0, 0, 12.0))
    bus = coord.check_transit_leg(itin, ArrivalRequest(0.0, 0.007, 0, 1, None, 20.0))
    assert walk.arrived and walk.next_step_index == 1
    assert bus.arrived and bus.next_leg_index == 2


# ---------------------------------------------------------------------------
# Smoothing window comes from the config
# ---------------------------------------------------------------------------

def test_config_window_caps_buffers_when_store_differs():
    store = InMemoryTripStore(window=5)
    coord = ProgressCoordinator(store, NavConfig(median_window=3, arrival_hysteresis_n=3))
    store.init("t", 0, 0, 0, TripPhase.WALKING)
    route = plan()

    lons = [0.0001, 0.0002, 0.0003, 0.0004, 0.0005, 0.0006]
    for lon in lons:
        r = coord.update_progress("t", route, ProgressUpdate(lat=0.0, lon=lon))

    # Median of the last three fixes (0.0005), not the last five (0.0004)
    assert r.remaining_meters == pytest.approx(55.6, abs=0.1)
    state = store.load("t")
    assert list(state.lon_buffer) == lons[-3:]
    assert len(state.lat_buffer) == 3


def test_config_window_applies_through_facade(tmp_path):
    from transit_guide.navigator import NavigationSystem

    config = NavConfig(median_window=3, log_dir=str(tmp_path))
    nav = NavigationSystem(config, store=InMemoryTripStore())
    route = plan()
    trip_id = nav.start_trip(route)

    for i in range(6):
        nav.update(trip_id, route, ProgressUpdate(lat=0.0, lon=0.0001 * (i + 1)))

    assert len(nav.get_trip(trip_id).lat_buffer) == 3
