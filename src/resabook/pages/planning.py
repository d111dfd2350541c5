"""PlanningPage - the Resamania member planning view.

The planning page lists upcoming classes as Material UI grid items. Each card
renders, in order:

  div.MuiGrid-item (card)
    h3  -> activity name ("CAF Intense")
    h5  -> start time ("12:30")
    p   -> date line ("Monday 2 December"), club, studio
    status text ("Full", "Signed up", "3 remaining places", ...)
    button "Book" (only when the class can be booked)

Booking opens an optional confirmation dialog (button "Confirm") and reports
the result through a snackbar/alert toast.

Element handles go stale on every navigation or reload. PlanningPage keeps a
listing generation counter, bumped on each of those, and hands out CardRef
tokens that are only resolvable within the generation that produced them.
"""

from playwright.async_api import ElementHandle, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from src.resabook.errors import PageUnavailableError, StaleCardError
from src.resabook.logging import get_logger
from src.resabook.models import CardRef

log = get_logger(__name__)

DEFAULT_CARD_SELECTOR = ".MuiGrid-root.MuiGrid-item.MuiGrid-grid-md-6.MuiGrid-grid-lg-3"

# Upper bound on cards parsed per pass
MAX_CARDS = 50


class PlanningPage:
    """Planning page wrapper exposing the operations the booking loop needs."""

    # Selectors confirmed against the member planning page
    ACTIVITY_HEADING = "h3"
    TIME_HEADING = "h5"
    BOOK_BUTTON = 'button:has-text("Book")'
    CONFIRM_BUTTON = 'button:has-text("Confirm")'
    TOAST = '.MuiSnackbar-root, .MuiAlert-root, [role="alert"]'

    def __init__(
        self,
        page: Page,
        planning_url: str,
        *,
        card_selector: str = DEFAULT_CARD_SELECTOR,
        settle_ms: int = 2000,
    ) -> None:
        self.page = page
        self.planning_url = planning_url
        self.card_selector = card_selector
        self.settle_ms = settle_ms
        self.generation = 0
        self._cards: list[ElementHandle] = []

    @property
    def current_url(self) -> str:
        return self.page.url

    def _invalidate(self) -> None:
        self.generation += 1
        self._cards = []

    async def open(self) -> None:
        """Navigate to the planning page.

        Raises:
            PageUnavailableError: If navigation fails or times out.
        """
        self._invalidate()
        try:
            await self.page.goto(self.planning_url, wait_until="networkidle")
        except PlaywrightTimeoutError as e:
            raise PageUnavailableError("Planning page failed to load") from e
        await self.page.wait_for_timeout(self.settle_ms)
        log.info("planning_page_opened", url=self.current_url, generation=self.generation)

    async def reload(self) -> None:
        """Force a full reload of the listing; all previous CardRefs become stale."""
        self._invalidate()
        try:
            await self.page.reload(wait_until="networkidle")
        except PlaywrightTimeoutError as e:
            raise PageUnavailableError("Planning page failed to reload") from e
        await self.page.wait_for_timeout(self.settle_ms)
        log.debug("planning_page_reloaded", generation=self.generation)

    async def wait_for_cards(self, timeout_ms: int = 15000) -> bool:
        """Wait for at least one activity card; a timeout is logged, not raised."""
        try:
            await self.page.wait_for_selector(self.card_selector, timeout=timeout_ms)
        except PlaywrightTimeoutError:
            log.warning("activity_cards_timeout", timeout_ms=timeout_ms)
            return False
        return True

    async def list_cards(self) -> tuple[int, list[ElementHandle]]:
        """Query the current cards, capped at MAX_CARDS.

        Returns:
            The listing generation and the card handles in DOM order.
        """
        cards = await self.page.query_selector_all(self.card_selector)
        if len(cards) > MAX_CARDS:
            log.info("activity_cards_capped", found=len(cards), cap=MAX_CARDS)
        self._cards = list(cards[:MAX_CARDS])
        log.info("activity_cards_found", count=len(cards), generation=self.generation)
        return self.generation, self._cards

    def resolve(self, ref: CardRef) -> ElementHandle:
        """Return the live card for a ref from the current listing.

        Raises:
            StaleCardError: If the ref predates the last navigation/reload or
                points outside the current listing.
        """
        if ref.generation != self.generation:
            raise StaleCardError(
                f"Card ref from generation {ref.generation}, page is at {self.generation}"
            )
        if not 0 <= ref.index < len(self._cards):
            raise StaleCardError(f"Card index {ref.index} not in current listing")
        return self._cards[ref.index]

    async def query(self, selector: str) -> ElementHandle | None:
        return await self.page.query_selector(selector)

    async def wait_for_selector(
        self, selector: str, timeout_ms: int
    ) -> ElementHandle | None:
        """Poll for a visible element; None if it never shows up."""
        try:
            return await self.page.wait_for_selector(
                selector, state="visible", timeout=timeout_ms
            )
        except PlaywrightTimeoutError:
            return None

    async def wait_until_hidden(self, selector: str, timeout_ms: int) -> bool:
        """Wait for any element matching selector to disappear; False if it lingers."""
        try:
            await self.page.wait_for_selector(
                selector, state="hidden", timeout=timeout_ms
            )
        except PlaywrightTimeoutError:
            return False
        return True

    async def wait(self, ms: int) -> None:
        await self.page.wait_for_timeout(ms)

    async def screenshot(self, path: str) -> None:
        """Best-effort full-page screenshot for diagnosing a failed listing."""
        try:
            await self.page.screenshot(path=path, full_page=True)
            log.info("screenshot_saved", path=path)
        except PlaywrightError as e:
            log.debug("screenshot_failed", path=path, error=str(e))
