"""Book the target classes from the booking plan on the Resamania planning page.

Standalone CLI script for a single booking run. Restores or re-creates the
login session, then lists, matches and books classes until one booking goes
through or the attempt budget is used up.

Run with: python scripts/book_classes.py
Debug:    python scripts/book_classes.py --headed
Plan:     python scripts/book_classes.py --config config.json
Attempts: python scripts/book_classes.py --max-attempts 3
JSON:     python scripts/book_classes.py --json

Exit codes:
  0 = run completed (booked, or attempts exhausted with nothing booked)
  1 = error (configuration, login, or the page became unusable)
"""

import argparse
import asyncio
import json
import os
import sys

from dotenv import load_dotenv

load_dotenv()

# Add project root to path for src imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.resabook.app import run_booking  # noqa: E402
from src.resabook.config import BookerConfig, get_config, load_booking_plan  # noqa: E402
from src.resabook.logging import get_logger, setup_logging  # noqa: E402
from src.resabook.models import RetryRunResult  # noqa: E402

log = get_logger("book_classes")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments using argparse."""
    parser = argparse.ArgumentParser(
        description="Book target classes on the Resamania planning page.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--headed",
        action="store_true",
        help="Launch browser in headed mode (visible window).",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Booking plan JSON file (default: CONFIG_FILE or config.json).",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=None,
        help="Override the number of listing/booking attempts.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run summary as JSON on stdout.",
    )
    return parser.parse_args(argv)


def _resolve_config(args: argparse.Namespace, base: BookerConfig) -> BookerConfig:
    overrides: dict = {}
    if args.headed:
        overrides["headless"] = False
    if args.max_attempts is not None:
        if args.max_attempts < 1:
            raise ValueError("--max-attempts must be at least 1")
        overrides["max_attempts"] = args.max_attempts
    return base.model_copy(update=overrides)


def _format_summary(result: RetryRunResult) -> str:
    lines = [
        "=" * 60,
        "BOOKING SUMMARY",
        "=" * 60,
        f"Result:              {result.final_state.value}",
        f"Attempts:            {result.attempts}",
        f"Successfully booked: {result.total_booked}"
        + (f" ({result.total_unconfirmed} unconfirmed)" if result.total_unconfirmed else ""),
        f"Last attempt failed: {result.last_outcome.failed_count}",
        f"Last attempt skipped: {result.last_outcome.skipped_count}",
        f"Elapsed:             {result.elapsed_seconds:.1f}s",
        "=" * 60,
    ]
    return "\n".join(lines)


async def main(args: argparse.Namespace) -> RetryRunResult:
    base = get_config()
    plan = load_booking_plan(args.config or base.config_file)
    config = _resolve_config(args, base.with_plan(plan))
    return await run_booking(config, plan)


if __name__ == "__main__":
    args = _parse_args()
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    try:
        result = asyncio.run(main(args))
    except Exception as e:
        log.exception("booking_run_failed", error=str(e))
        sys.exit(1)

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        print(_format_summary(result), file=sys.stderr)
