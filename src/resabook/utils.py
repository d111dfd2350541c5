"""Page setup shared by the booking entry points."""

from playwright.async_api import Page, Route

from src.resabook.logging import get_logger

log = get_logger(__name__)

# Stylesheets stay: Material UI class names drive the card and toast selectors
BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image", "font", "media"})

DEFAULT_TIMEOUT_MS = 30000


async def configure_page_for_booking(page: Page, *, block_resources: bool = True) -> None:
    """Set up a Playwright page for the booking run.

    Blocks images, fonts and media to speed up the repeated planning reloads
    and sets default timeouts for actions and navigation.

    Args:
        page: Playwright Page instance.
        block_resources: If False, leave all requests untouched (debugging).
    """

    async def _block_resources(route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    if block_resources:
        await page.route("**/*", _block_resources)
        log.debug("resource_blocking_enabled", types=sorted(BLOCKED_RESOURCE_TYPES))
    page.set_default_timeout(DEFAULT_TIMEOUT_MS)
    page.set_default_navigation_timeout(DEFAULT_TIMEOUT_MS)
