"""Periodic, countdown and delayed timers on a real-time executor.

Demonstrates:
- Starting a periodic timer, pausing it and picking it back up
- A countdown that stops itself once its budget is spent
- A one-shot delay running alongside the other timers

Run: python -m examples.basics
"""

import logging
import threading
import time

from tick_timer import ThreadExecutor, Timer, TimerState


def main() -> None:
    logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    print("=== Timers ===\n")

    with ThreadExecutor(name="examples") as executor:
        started = time.monotonic()

        def stamp(label: str) -> None:
            print(f"  {time.monotonic() - started:5.2f}s  {label}")

        # Fires at 0.0, 0.2, 0.4 ... until paused.
        heartbeat = Timer(executor)
        heartbeat.start(0.2, lambda: stamp("heartbeat"))

        # Independent of the heartbeat schedule.
        heartbeat.after(0.5, lambda: stamp("after 0.5s"))

        time.sleep(0.7)
        heartbeat.pause()
        stamp("heartbeat paused")
        time.sleep(0.5)
        heartbeat.restart()
        stamp("heartbeat restarted")
        time.sleep(0.5)
        heartbeat.stop()

        # 1.0s budget in 0.3s steps: fires 4 times, ending at -0.2.
        finished = threading.Event()
        countdown = Timer(executor)

        def on_count() -> None:
            stamp(f"countdown remaining={countdown.remaining:+.1f}")
            if countdown.state is TimerState.STOPPED:
                finished.set()

        countdown.countdown(1.0, 0.3, on_count)
        finished.wait()

    print("\nDone.")


if __name__ == "__main__":
    main()
