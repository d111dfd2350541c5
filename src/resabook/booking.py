"""Booking procedure and retry loop.

One run is a sequence of attempts. Each attempt works against a freshly
listed page (reloaded on every attempt after the first), extracts slots,
matches them and books the matches one at a time. The run ends on the first
attempt that books anything, or when the attempt budget is spent; running
out of attempts is a normal outcome and is reported, not raised.

Bookings are strictly sequential: one page, one slot in flight.
"""

import asyncio
import time
from datetime import datetime
from typing import Awaitable, Callable, Sequence

from playwright.async_api import Error as PlaywrightError
from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_fixed

from src.resabook.errors import StaleCardError
from src.resabook.extractor import SlotExtractor
from src.resabook.logging import bind_run_context, get_logger
from src.resabook.matcher import SlotMatcher
from src.resabook.models import (
    BookingOutcome,
    BookingResult,
    RetryRunResult,
    RunState,
    SlotRecord,
)
from src.resabook.pages.planning import PlanningPage

log = get_logger(__name__)

SUCCESS_KEYWORDS: tuple[str, ...] = ("success", "booked", "confirmed")


def is_success_toast(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in SUCCESS_KEYWORDS)


class BookingLoop:
    """Runs list -> match -> book attempts until one books or attempts run out."""

    def __init__(
        self,
        extractor: SlotExtractor,
        matcher: SlotMatcher,
        *,
        clock: Callable[[], datetime] = datetime.now,
        backoff_seconds: float = 1.0,
        settle_delay_ms: int = 1500,
        toast_timeout_ms: int = 2000,
        inter_booking_delay_ms: int = 1000,
        card_wait_timeout_ms: int = 15000,
        toast_clear_timeout_ms: int = 5000,
        screenshot_path: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.extractor = extractor
        self.matcher = matcher
        self.clock = clock
        self.backoff_seconds = backoff_seconds
        self.settle_delay_ms = settle_delay_ms
        self.toast_timeout_ms = toast_timeout_ms
        self.inter_booking_delay_ms = inter_booking_delay_ms
        self.card_wait_timeout_ms = card_wait_timeout_ms
        self.toast_clear_timeout_ms = toast_clear_timeout_ms
        self.screenshot_path = screenshot_path
        self._sleep = sleep
        self.state = RunState.IDLE

    def _transition(self, state: RunState) -> None:
        log.debug("run_state", previous=self.state.value, state=state.value)
        self.state = state

    async def run(self, page: PlanningPage, max_attempts: int) -> RetryRunResult:
        """Run booking attempts against an already opened planning page.

        Args:
            page: Planning page, already navigated for the first attempt.
            max_attempts: Attempt budget, at least 1.

        Returns:
            Summary of the run; final_state is SUCCESS or EXHAUSTED.

        Raises:
            ValueError: If max_attempts is below 1.
            Exception: Anything unexpected escaping an attempt (e.g. the page
                became unusable) propagates unchanged and is not retried.
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        started = time.monotonic()
        attempts = 0
        total_booked = 0
        total_unconfirmed = 0
        self.state = RunState.IDLE

        async def attempt() -> BookingOutcome:
            nonlocal attempts, total_booked, total_unconfirmed
            attempts += 1
            bind_run_context(attempt=attempts)
            log.info("attempt_started", attempt=attempts, max_attempts=max_attempts)

            outcome = await self._attempt(page, reload=attempts > 1)
            total_booked += outcome.success_count
            total_unconfirmed += outcome.unconfirmed_count

            if outcome.success_count == 0 and attempts < max_attempts:
                self._transition(RunState.RETRYING)
                log.info("attempt_unsuccessful", backoff_seconds=self.backoff_seconds)
            return outcome

        retrying = AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_result(lambda outcome: outcome.success_count == 0),
            # Exhaustion hands back the last outcome instead of raising RetryError
            retry_error_callback=lambda retry_state: retry_state.outcome.result(),
            sleep=self._sleep,
        )
        last_outcome = await retrying(attempt)

        self._transition(RunState.SUCCESS if total_booked > 0 else RunState.EXHAUSTED)
        result = RetryRunResult(
            attempts=attempts,
            elapsed_seconds=round(time.monotonic() - started, 3),
            total_booked=total_booked,
            total_unconfirmed=total_unconfirmed,
            final_state=self.state,
            last_outcome=last_outcome,
        )
        log.info(
            "run_finished",
            state=result.final_state.value,
            attempts=result.attempts,
            total_booked=result.total_booked,
            total_unconfirmed=result.total_unconfirmed,
            elapsed_seconds=result.elapsed_seconds,
        )
        return result

    async def _attempt(self, page: PlanningPage, *, reload: bool) -> BookingOutcome:
        self._transition(RunState.LISTING)
        if reload:
            # Handles from the previous attempt are invalid after this
            await page.reload()
        if not await page.wait_for_cards(self.card_wait_timeout_ms) and self.screenshot_path:
            await page.screenshot(self.screenshot_path)
        generation, cards = await page.list_cards()

        now = self.clock()
        slots = await self.extractor.extract(cards, generation, now)

        self._transition(RunState.MATCHING)
        matched = self.matcher.match(slots, now)
        if not matched:
            log.info("no_matching_slots", slots=len(slots))
            return BookingOutcome()

        self._transition(RunState.BOOKING)
        return await self.book_slots(page, matched)

    async def book_slots(
        self, page: PlanningPage, slots: Sequence[SlotRecord]
    ) -> BookingOutcome:
        """Book each slot in order and tally the results."""
        outcome = BookingOutcome(total_matching_considered=len(slots))
        for slot in slots:
            result = await self.book_slot(page, slot)
            outcome.record(result)
            if result is not BookingResult.SKIPPED:
                await page.wait(self.inter_booking_delay_ms)

        log.info(
            "booking_summary",
            matching=outcome.total_matching_considered,
            booked=outcome.booked_count,
            unconfirmed=outcome.unconfirmed_count,
            failed=outcome.failed_count,
            skipped=outcome.skipped_count,
        )
        return outcome

    async def book_slot(self, page: PlanningPage, slot: SlotRecord) -> BookingResult:
        """Click through the booking flow for one slot.

        Missing buttons, stale cards and Playwright errors count as FAILED for
        this slot only. No toast at all is treated as UNCONFIRMED, and so is
        any toast when an earlier one was still on screen at click time.
        """
        if not slot.bookable:
            log.info("slot_skipped", slot=slot.describe(), reason="not_available")
            return BookingResult.SKIPPED
        if slot.status.is_full:
            log.info("slot_skipped", slot=slot.describe(), reason="full")
            return BookingResult.SKIPPED

        log.info("booking_started", slot=slot.describe())
        try:
            card = page.resolve(slot.source_ref)
            book_button = await card.query_selector(PlanningPage.BOOK_BUTTON)
            if book_button is None:
                log.warning(
                    "booking_failed",
                    slot=slot.describe(),
                    reason="book_button_missing",
                )
                return BookingResult.FAILED

            # A toast left over from the previous slot would be read as this one's
            toast_cleared = await page.wait_until_hidden(
                PlanningPage.TOAST, self.toast_clear_timeout_ms
            )

            await book_button.click()
            await page.wait(self.settle_delay_ms)

            confirm_button = await page.query(PlanningPage.CONFIRM_BUTTON)
            if confirm_button is not None:
                log.debug("booking_confirm_dialog", slot=slot.describe())
                await confirm_button.click()
                await page.wait(self.settle_delay_ms)

            if not toast_cleared:
                log.warning(
                    "booking_unconfirmed",
                    slot=slot.describe(),
                    reason="previous_toast_still_visible",
                )
                return BookingResult.UNCONFIRMED

            toast = await page.wait_for_selector(PlanningPage.TOAST, self.toast_timeout_ms)
            if toast is None:
                log.warning("booking_unconfirmed", slot=slot.describe(), reason="no_toast")
                return BookingResult.UNCONFIRMED

            toast_text = (await toast.inner_text()).strip()
            if is_success_toast(toast_text):
                log.info("booking_succeeded", slot=slot.describe(), toast=toast_text)
                return BookingResult.BOOKED

            log.warning("booking_failed", slot=slot.describe(), toast=toast_text)
            return BookingResult.FAILED

        except StaleCardError as e:
            log.warning("booking_failed", slot=slot.describe(), reason="stale_card", error=str(e))
            return BookingResult.FAILED
        except PlaywrightError as e:
            log.error(
                "booking_failed",
                slot=slot.describe(),
                reason="playwright_error",
                error=str(e),
            )
            return BookingResult.FAILED
