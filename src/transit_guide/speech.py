# speech.py
# Interactive console that speaks guidance out loud.
# pyttsx3 runs in a child process so a stuck audio driver cannot block the loop.
#
# Commands:
#   plan <route.json>            start a trip from a provider response
#   gps <lat> <lon> [speed]      send a GPS fix
#   event <TYPE>                 BOARD | ALIGHT | TRANSFER_CONFIRMED | ARRIVED | CANCEL
#   dest <lat> <lon> <lat> <lon> straight-line distance check
#   quit

import logging
import queue
import subprocess
import sys
import threading
import traceback

from .errors import NavigationError, ProgressPersistenceError
from .models import Coord
from .nav_config import NavConfig
from .nav_logger import NavLogger
from .navigator import NavigationSystem
from .progress_coordinator import ProgressUpdate

logger = logging.getLogger(__name__)

_tts_queue: "queue.Queue" = queue.Queue()


def _tts_worker():
    while True:
        text = _tts_queue.get()
        if text is None:
            _tts_queue.task_done()
            break
        script = (
            "import pyttsx3\n"
            "engine = pyttsx3.init()\n"
            "engine.setProperty('rate', 150)\n"
            f"engine.say({repr(text)})\n"
            "engine.runAndWait()"
        )
        try:
            subprocess.run([sys.executable, "-c", script], check=False)
        except OSError as e:
            logger.error(f"TTS error: {e}")
        finally:
            _tts_queue.task_done()


_tts_thread = threading.Thread(target=_tts_worker, daemon=True)


def speak(text: str):
    text = (text or "").strip()
    if not text:
        return
    if not _tts_thread.is_alive():
        _tts_thread.start()
    _tts_queue.put(text)


def parse_floats(parts, count: int):
    if len(parts) != count:
        raise ValueError(f"expected {count} numbers, got {len(parts)}")
    return [float(x) for x in parts]


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    config = NavConfig(log_dir="logs")
    nav = NavigationSystem(config=config)
    plans = NavLogger(config)

    plan = None
    trip_id = None

    print("Commands:")
    print("  plan <route.json>")
    print("  gps <lat> <lon> [speed]")
    print("  event <TYPE>")
    print("  dest <lat> <lon> <dest_lat> <dest_lon>")
    print("  quit")

    while True:
        line = input("> ").strip()
        if not line:
            continue

        if line.lower() in ("q", "quit", "exit"):
            break

        parts = line.split()
        cmd = parts[0].lower()
        args = parts[1:]

        try:
            if cmd == "plan":
                plan = plans.load_route(args[0]) if args else None
                if plan is None:
                    print("[NAV]", "Could not load the route plan.")
                    continue
                trip_id = nav.start_trip(plan)
                msg = "Route ready. Guidance is starting."
                print("[TTS]", msg)
                speak(msg)

            elif cmd == "gps":
                if trip_id is None:
                    print("[NAV]", "No active trip. Use: plan <route.json>")
                    continue
                values = parse_floats(args, 3 if len(args) == 3 else 2)
                speed = values[2] if len(values) == 3 else None
                try:
                    response = nav.update(trip_id, plan, ProgressUpdate(values[0], values[1], speed_mps=speed))
                except ProgressPersistenceError as e:
                    print("[ERR]", e)
                    response = e.response
                print("[NAV]", f"{response.phase.value} leg {response.leg_index}: {response.guidance_text}")
                speak(response.guidance_text)

            elif cmd == "event":
                if trip_id is None or not args:
                    print("[NAV]", "Usage: event <TYPE> (after plan)")
                    continue
                ok = nav.push_event(trip_id, args[0])
                print("[NAV]", "ok" if ok else "trip not found")

            elif cmd == "dest":
                lat, lon, d_lat, d_lon = parse_floats(args, 4)
                result = nav.track_destination(Coord(lat, lon), Coord(d_lat, d_lon))
                print("[TTS]", result.message)
                speak(result.message)

            else:
                print("[TTS]", "Unknown command.")

        except (ValueError, NavigationError) as e:
            print(traceback.format_exc())
            print("[ERR]", f"Error: {e}")

    if _tts_thread.is_alive():
        _tts_queue.join()       # let every queued phrase finish
        _tts_queue.put(None)    # stop signal for the worker
        _tts_thread.join(timeout=5)


if __name__ == "__main__":
    main()
