"""One complete booking run: browser, session, planning page, retry loop."""

import uuid
from pathlib import Path

from playwright.async_api import BrowserContext, Page, async_playwright

from src.resabook.booking import BookingLoop
from src.resabook.config import BookerConfig, BookingPlan
from src.resabook.errors import ConfigurationError
from src.resabook.extractor import SlotExtractor
from src.resabook.logging import bind_run_context, clear_run_context, get_logger
from src.resabook.matcher import SlotMatcher
from src.resabook.models import RetryRunResult
from src.resabook.pages.planning import PlanningPage
from src.resabook.session import SessionManager, is_on_login_page
from src.resabook.utils import configure_page_for_booking

log = get_logger(__name__)

SCREENSHOT_NAME = "last_list_slots_error.png"


def build_loop(config: BookerConfig, plan: BookingPlan) -> BookingLoop:
    """Wire extractor, matcher and timing settings into a BookingLoop."""
    matcher = SlotMatcher(
        plan.target_classes,
        min_hours_ahead=config.min_hours_from_now,
        max_days_ahead=config.max_days_from_now,
    )
    screenshot_dir = Path(config.screenshot_dir)
    screenshot_dir.mkdir(parents=True, exist_ok=True)
    return BookingLoop(
        SlotExtractor(),
        matcher,
        backoff_seconds=config.retry_backoff_seconds,
        settle_delay_ms=config.settle_delay_ms,
        toast_timeout_ms=config.toast_timeout_ms,
        inter_booking_delay_ms=config.inter_booking_delay_ms,
        card_wait_timeout_ms=config.card_wait_timeout_ms,
        toast_clear_timeout_ms=config.toast_clear_timeout_ms,
        screenshot_path=str(screenshot_dir / SCREENSHOT_NAME),
    )


async def open_planning(
    config: BookerConfig,
    sessions: SessionManager,
    context: BrowserContext,
    page: Page,
) -> PlanningPage:
    """Open the planning page, logging in first if the site redirects to login.

    A redirect means the saved session is no longer accepted, so it is
    discarded before logging in and replaced by the fresh one afterwards.

    Raises:
        AuthenticationError: If credentials are missing or login fails.
        PageUnavailableError: If the planning page doesn't load.
    """
    planning = PlanningPage(page, config.planning_url, card_selector=config.card_selector)
    await planning.open()

    if not is_on_login_page(planning.current_url):
        log.info("session_valid", url=planning.current_url)
        return planning

    log.info("session_expired", url=planning.current_url)
    username, password = config.require_credentials()
    sessions.clear_session()
    await sessions.authenticate(page, config.login_url, username, password)
    await sessions.save_session(context)
    await planning.open()
    return planning


async def run_booking(config: BookerConfig, plan: BookingPlan) -> RetryRunResult:
    """Launch a browser and run the booking loop once.

    Args:
        config: Process configuration, with plan overrides already applied.
        plan: Target classes to book.

    Returns:
        The retry loop summary.

    Raises:
        ConfigurationError: If the plan has no enabled target classes.
        AuthenticationError: If login is needed and fails.
        BookerError: Any other unrecoverable failure.
    """
    if not plan.enabled_targets:
        raise ConfigurationError("No enabled target classes in booking plan")

    bind_run_context(run_id=uuid.uuid4().hex[:8])
    log.info(
        "booking_run_started",
        targets=len(plan.enabled_targets),
        max_attempts=config.max_attempts,
        window_hours=config.min_hours_from_now,
        window_days=config.max_days_from_now,
    )

    sessions = SessionManager(config.state_dir, config.max_session_age_hours)
    try:
        async with async_playwright() as pw:
            browser = await pw.chromium.launch(
                headless=config.headless, slow_mo=config.slow_mo
            )
            try:
                context = await sessions.create_context(browser, config.user_agent)
                page = await context.new_page()
                await configure_page_for_booking(page)

                planning = await open_planning(config, sessions, context, page)
                loop = build_loop(config, plan)
                return await loop.run(planning, config.max_attempts)
            finally:
                await browser.close()
    finally:
        clear_run_context()
