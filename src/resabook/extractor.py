"""SlotExtractor - turns planning cards into SlotRecords.

Each card's text is read once and every text-derived field (status, weekday,
date line) comes from that single read. Cards that can't be identified are
skipped; one bad card never aborts the pass.
"""

import re
from datetime import datetime
from typing import Sequence

from playwright.async_api import ElementHandle
from playwright.async_api import Error as PlaywrightError

from src.resabook.dates import (
    extract_date_fragment,
    extract_day_of_week,
    extract_partial_date,
    resolve_instant,
)
from src.resabook.errors import AmbiguousDateError
from src.resabook.logging import get_logger
from src.resabook.models import (
    UNKNOWN,
    CardRef,
    SlotRecord,
    SlotStatus,
    StatusKind,
    Weekday,
)
from src.resabook.pages.planning import MAX_CARDS, PlanningPage

log = get_logger(__name__)

_REMAINING_RE = re.compile(r"(\d+)\s+remaining place")


def classify_status(card_text: str) -> SlotStatus:
    """Classify a card's status; the first matching cue wins.

    A card can carry several cues at once (an old waiting-list notice next to
    current availability), so the order below is significant.
    """
    if "Signed up" in card_text:
        return SlotStatus(StatusKind.SIGNED_UP)
    if "Full" in card_text:
        return SlotStatus(StatusKind.FULL)
    if "waiting list" in card_text:
        return SlotStatus(StatusKind.WAITLISTED)
    match = _REMAINING_RE.search(card_text)
    if match:
        return SlotStatus(StatusKind.AVAILABLE_WITH_COUNT, remaining=int(match.group(1)))
    return SlotStatus(StatusKind.AVAILABLE)


def _resolution_fragment(card_text: str, date_text: str, day_of_week: Weekday) -> str:
    """Best date fragment to resolve from, falling back when the full line is missing.

    Without a full date line the fragment is built around the derived weekday,
    never another day name that happens to come first in the text.
    """
    if date_text != UNKNOWN:
        return date_text
    partial = extract_partial_date(card_text, day_of_week)
    if partial:
        return partial
    if day_of_week is not Weekday.UNKNOWN:
        return day_of_week.value
    return UNKNOWN


class SlotExtractor:
    """Parses planning cards into slot records."""

    def __init__(self, max_cards: int = MAX_CARDS) -> None:
        self.max_cards = max_cards

    async def extract(
        self,
        cards: Sequence[ElementHandle],
        generation: int,
        now: datetime,
    ) -> list[SlotRecord]:
        """Extract slot records from one listing pass.

        Args:
            cards: Card handles in DOM order.
            generation: Listing generation the cards belong to.
            now: Reference instant for date resolution.

        Returns:
            Slot records in DOM order; unparseable cards are omitted.
        """
        slots: list[SlotRecord] = []
        for index, card in enumerate(cards[: self.max_cards]):
            try:
                slot = await self._parse_card(card, CardRef(generation, index), now)
            except PlaywrightError as e:
                log.warning("card_parse_failed", index=index, error=str(e))
                continue
            if slot is None:
                continue
            slots.append(slot)
            log.debug(
                "card_parsed",
                index=index,
                activity=slot.activity_name,
                day=slot.day_of_week.value,
                time=slot.time_text,
                status=slot.status.label,
                bookable=slot.bookable,
                at=slot.resolved_instant.isoformat() if slot.resolved_instant else None,
            )

        log.info("slots_extracted", cards=min(len(cards), self.max_cards), slots=len(slots))
        return slots

    async def _parse_card(
        self, card: ElementHandle, ref: CardRef, now: datetime
    ) -> SlotRecord | None:
        card_text = await card.inner_text()

        heading = await card.query_selector(PlanningPage.ACTIVITY_HEADING)
        if heading is None:
            log.debug("card_skipped", index=ref.index, reason="no_activity_heading")
            return None
        activity_name = (await heading.inner_text()).strip()
        if not activity_name:
            log.debug("card_skipped", index=ref.index, reason="empty_activity_heading")
            return None

        time_heading = await card.query_selector(PlanningPage.TIME_HEADING)
        time_text = (await time_heading.inner_text()).strip() if time_heading else UNKNOWN

        date_text = extract_date_fragment(card_text)
        day_of_week = extract_day_of_week(card_text)
        status = classify_status(card_text)
        # Scoped to this card so another card's button can't leak in
        bookable = await card.query_selector(PlanningPage.BOOK_BUTTON) is not None

        if bookable and status.is_full:
            log.warning("card_bookable_but_full", index=ref.index, activity=activity_name)

        resolved_instant = None
        date_strategy = None
        fragment = _resolution_fragment(card_text, date_text, day_of_week)
        try:
            resolved = resolve_instant(fragment, time_text, now)
        except AmbiguousDateError as e:
            log.warning(
                "slot_date_unresolved",
                index=ref.index,
                activity=activity_name,
                date=fragment,
                time=time_text,
                reason=str(e),
            )
        else:
            resolved_instant = resolved.at
            date_strategy = resolved.strategy

        return SlotRecord(
            activity_name=activity_name,
            date_text=date_text,
            time_text=time_text,
            day_of_week=day_of_week,
            status=status,
            bookable=bookable,
            source_ref=ref,
            resolved_instant=resolved_instant,
            date_strategy=date_strategy,
        )
