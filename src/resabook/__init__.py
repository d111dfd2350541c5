"""Resamania class booker.

Watches the member planning page, picks the classes listed in the booking
plan, and keeps retrying until one of them is booked.
"""

from src.resabook.booking import BookingLoop
from src.resabook.extractor import SlotExtractor
from src.resabook.matcher import SlotMatcher, match_slots
from src.resabook.models import (
    BookingOutcome,
    BookingResult,
    RetryRunResult,
    SlotRecord,
    TargetClass,
)
from src.resabook.pages.planning import PlanningPage

__all__ = [
    "BookingLoop",
    "SlotExtractor",
    "SlotMatcher",
    "match_slots",
    "PlanningPage",
    "SlotRecord",
    "TargetClass",
    "BookingOutcome",
    "BookingResult",
    "RetryRunResult",
]
