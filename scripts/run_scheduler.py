"""Run the booker periodically: once at start, then twice per hour.

Fires at hh:00:00 and hh:59:30, which brackets the moment new classes open
for booking. A failed run is logged and the scheduler keeps going.

SIGINT/SIGTERM stop the scheduler before the next run; a run already in
progress is allowed to finish.

Run with: python scripts/run_scheduler.py
"""

import asyncio
import os
import signal
import sys
from datetime import datetime, timedelta

from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.resabook.app import run_booking  # noqa: E402
from src.resabook.config import get_config, load_booking_plan  # noqa: E402
from src.resabook.errors import BookerError  # noqa: E402
from src.resabook.logging import get_logger, setup_logging  # noqa: E402

log = get_logger("run_scheduler")

# (minute, second) offsets within each hour
FIRE_TIMES: tuple[tuple[int, int], ...] = ((0, 0), (59, 30))


def next_run_time(now: datetime) -> datetime:
    """Next fire time strictly after now."""
    hour_start = now.replace(minute=0, second=0, microsecond=0)
    candidates = [
        hour_start + timedelta(hours=offset, minutes=minute, seconds=second)
        for offset in (0, 1)
        for minute, second in FIRE_TIMES
    ]
    return min(candidate for candidate in candidates if candidate > now)


async def _run_once() -> None:
    base = get_config()
    try:
        plan = load_booking_plan(base.config_file)
        result = await run_booking(base.with_plan(plan), plan)
        log.info(
            "scheduled_run_completed",
            state=result.final_state.value,
            booked=result.total_booked,
            attempts=result.attempts,
        )
    except BookerError as e:
        log.error("scheduled_run_failed", error=str(e), type=type(e).__name__)
    except Exception:
        log.exception("scheduled_run_crashed")


async def main() -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    log.info("scheduler_started", fire_times=[f":{m:02d}:{s:02d}" for m, s in FIRE_TIMES])

    # Verify the setup works before waiting for the first slot
    await _run_once()

    while not stop.is_set():
        fire_at = next_run_time(datetime.now())
        delay = (fire_at - datetime.now()).total_seconds()
        log.info("next_run_scheduled", at=fire_at.isoformat(), in_seconds=round(delay))
        try:
            await asyncio.wait_for(stop.wait(), timeout=max(delay, 0))
        except asyncio.TimeoutError:
            await _run_once()

    log.info("scheduler_stopped")


if __name__ == "__main__":
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    asyncio.run(main())
