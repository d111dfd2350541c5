"""SlotMatcher - selects the slots worth booking.

A slot is kept when it matches at least one enabled target class and its
resolved start time falls inside [now + min_hours_ahead, now + max_days_ahead].
Status is not considered here; the booking procedure decides what to skip.
"""

from datetime import datetime, timedelta
from typing import Iterable, Sequence

from src.resabook.dates import days_from, hours_from
from src.resabook.logging import get_logger
from src.resabook.models import SlotRecord, TargetClass

log = get_logger(__name__)

DEFAULT_MIN_HOURS_AHEAD = 6.0
DEFAULT_MAX_DAYS_AHEAD = 4.0


def matches_target(slot: SlotRecord, target: TargetClass) -> bool:
    return (
        target.enabled
        and target.day == slot.day_of_week
        and target.time == slot.time_text
        and target.activity.lower() in slot.activity_name.lower()
    )


def matches_any_target(slot: SlotRecord, targets: Iterable[TargetClass]) -> bool:
    return any(matches_target(slot, target) for target in targets)


def within_window(
    slot: SlotRecord,
    now: datetime,
    min_hours_ahead: float = DEFAULT_MIN_HOURS_AHEAD,
    max_days_ahead: float = DEFAULT_MAX_DAYS_AHEAD,
) -> bool:
    """Check the slot's start time against the closed booking window."""
    at = slot.resolved_instant
    if at is None:
        log.warning(
            "slot_skipped_unparseable_date",
            slot=slot.describe(),
            date=slot.date_text,
            time=slot.time_text,
        )
        return False

    earliest = now + timedelta(hours=min_hours_ahead)
    latest = now + timedelta(days=max_days_ahead)
    if at < earliest:
        log.info(
            "slot_skipped_too_soon",
            slot=slot.describe(),
            hours=round(hours_from(at, now), 1),
            min_hours=min_hours_ahead,
        )
        return False
    if at > latest:
        log.info(
            "slot_skipped_too_far",
            slot=slot.describe(),
            days=round(days_from(at, now), 1),
            max_days=max_days_ahead,
        )
        return False
    return True


def match_slots(
    slots: Sequence[SlotRecord],
    targets: Sequence[TargetClass],
    now: datetime,
    min_hours_ahead: float = DEFAULT_MIN_HOURS_AHEAD,
    max_days_ahead: float = DEFAULT_MAX_DAYS_AHEAD,
) -> list[SlotRecord]:
    """Filter slots by target classes, then by the time window, keeping order."""
    targeted = [slot for slot in slots if matches_any_target(slot, targets)]
    in_window = [
        slot
        for slot in targeted
        if within_window(slot, now, min_hours_ahead, max_days_ahead)
    ]
    log.info(
        "slots_matched",
        total=len(slots),
        targeted=len(targeted),
        in_window=len(in_window),
    )
    for slot in in_window:
        log.info(
            "matching_slot",
            slot=slot.describe(),
            bookable=slot.bookable,
            status=slot.status.label,
            hours=round(hours_from(slot.resolved_instant, now), 1),
        )
    return in_window


class SlotMatcher:
    """Target list and window bounds bundled for repeated matching."""

    def __init__(
        self,
        targets: Sequence[TargetClass],
        min_hours_ahead: float = DEFAULT_MIN_HOURS_AHEAD,
        max_days_ahead: float = DEFAULT_MAX_DAYS_AHEAD,
    ) -> None:
        self.targets = tuple(targets)
        self.min_hours_ahead = min_hours_ahead
        self.max_days_ahead = max_days_ahead

    def match(self, slots: Sequence[SlotRecord], now: datetime) -> list[SlotRecord]:
        return match_slots(
            slots, self.targets, now, self.min_hours_ahead, self.max_days_ahead
        )
