"""Playwright session management for Resamania authentication.

SessionManager persists browser storage state between runs so that the
periodic booker rarely has to go through the login form, and drives the
two-step email/password login when the saved session has expired.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from src.resabook.errors import AuthenticationError, TransientError
from src.resabook.logging import get_logger

if TYPE_CHECKING:
    from playwright.async_api import Browser, BrowserContext, Page

logger = get_logger(__name__)

LOGIN_DOMAIN = "api.resamania.com"
VIEWPORT = {"width": 1640, "height": 1080}

# Button labels seen on the login form, English and French
_NEXT_STEP_LABELS = ("password", "mot de passe", "fill")
_SUBMIT_LABELS = ("log", "connect", "connexion", "submit")


def is_on_login_page(url: str) -> bool:
    """True if the URL is the login form or the OAuth redirect domain."""
    lowered = url.lower()
    return "login" in lowered or "oauth" in lowered or LOGIN_DOMAIN in lowered


class SessionManager:
    """Manages Playwright authentication state persistence and validation."""

    def __init__(
        self, state_dir: str = "data/state", max_session_age_hours: int = 24
    ) -> None:
        self.state_dir = Path(state_dir)
        self.state_file = self.state_dir / "resamania_session.json"
        self.max_session_age_hours = max_session_age_hours

        self.state_dir.mkdir(parents=True, exist_ok=True)

        logger.info(
            "session_manager_initialized",
            state_file=str(self.state_file),
            max_age_hours=max_session_age_hours,
        )

    def is_session_valid(self) -> bool:
        """Check if a saved session exists and is still fresh.

        Returns:
            True if session file exists and is younger than max_session_age_hours.
        """
        if not self.state_file.exists():
            logger.debug("session_check", result="missing", reason="file_not_found")
            return False

        file_mtime = datetime.fromtimestamp(self.state_file.stat().st_mtime)
        age = datetime.now() - file_mtime
        max_age = timedelta(hours=self.max_session_age_hours)

        if age > max_age:
            logger.info(
                "session_check",
                result="expired",
                age_hours=age.total_seconds() / 3600,
                max_hours=self.max_session_age_hours,
            )
            return False

        logger.debug(
            "session_check",
            result="valid",
            age_hours=age.total_seconds() / 3600,
        )
        return True

    async def save_session(self, context: "BrowserContext") -> None:
        await context.storage_state(path=str(self.state_file))
        logger.info("session_saved", path=str(self.state_file))

    async def create_context(
        self, browser: "Browser", user_agent: str
    ) -> "BrowserContext":
        """Create a browser context, restoring the saved session if still valid."""
        options: dict = {"user_agent": user_agent, "viewport": VIEWPORT}
        if self.is_session_valid():
            options["storage_state"] = str(self.state_file)
            logger.info("context_created", type="restored", state_file=str(self.state_file))
        else:
            logger.info("context_created", type="fresh", reason="no_valid_session")
        return await browser.new_context(**options)

    async def _click_labelled_button(
        self, page: "Page", selectors: tuple[str, ...], labels: tuple[str, ...]
    ) -> None:
        """Click the first matching selector, else any button whose text has a label."""
        for selector in selectors:
            try:
                await page.click(selector, timeout=5000)
                return
            except PlaywrightTimeoutError:
                continue

        for button in await page.query_selector_all("button"):
            text = (await button.inner_text()).lower()
            if any(label in text for label in labels):
                await button.click()
                return

        raise AuthenticationError(f"No login button matching {labels} found")

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(5),
        retry=retry_if_exception_type(TransientError),
        reraise=True,
    )
    async def authenticate(
        self, page: "Page", login_url: str, username: str, password: str
    ) -> None:
        """Log in through the two-step Resamania form.

        Retries on TransientError but fails fast on AuthenticationError.

        Raises:
            AuthenticationError: If the form can't be completed or we end up
                back on the login page.
            TransientError: If network/temporary issues prevent authentication.
        """
        logger.info("authentication_started", url=login_url)

        try:
            await page.goto(login_url, wait_until="networkidle")
            await page.wait_for_timeout(1000)

            # Step 1: email, then the button leading to the password field
            await page.fill('input[type="text"]', username)
            await page.wait_for_timeout(500)
            await self._click_labelled_button(
                page,
                ('button:has-text("password")', 'button:has-text("mot de passe")'),
                _NEXT_STEP_LABELS,
            )
            await page.wait_for_timeout(1000)

            # Step 2: password and submit
            await page.fill('input[type="password"]', password)
            await page.wait_for_timeout(500)
            await self._click_labelled_button(
                page,
                ('button:has-text("Log")', 'button[type="submit"]'),
                _SUBMIT_LABELS,
            )
            await page.wait_for_timeout(2000)
            await page.wait_for_load_state("networkidle", timeout=15000)

            if is_on_login_page(page.url):
                logger.error("authentication_failed", reason="still_on_login_page")
                raise AuthenticationError(
                    "Still on login page after submit - may be invalid credentials"
                )

            logger.info("authentication_succeeded", url=page.url)

        except PlaywrightTimeoutError as e:
            logger.warning("authentication_timeout", error=str(e))
            raise TransientError(f"Authentication timed out: {e}") from e
        except AuthenticationError:
            # Wrong credentials won't fix on retry
            raise
        except PlaywrightError as e:
            logger.error("authentication_error", error=str(e), type=type(e).__name__)
            raise TransientError(f"Authentication failed: {e}") from e

    def clear_session(self) -> None:
        """Delete saved session state file."""
        if self.state_file.exists():
            self.state_file.unlink()
            logger.info("session_cleared", path=str(self.state_file))
        else:
            logger.debug("session_clear_skipped", reason="file_not_found")
