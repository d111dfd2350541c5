"""Booker configuration.

Two sources, both read once at process start and passed down explicitly:

* BookerConfig: credentials, URLs, browser and timing settings from
  environment variables (or a .env file in the project root).
* BookingPlan: the target classes and optional booking window overrides
  from a JSON file (config.json by default).
"""

import json
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings

from src.resabook.errors import AuthenticationError, ConfigurationError
from src.resabook.models import TargetClass
from src.resabook.pages.planning import DEFAULT_CARD_SELECTOR


class BookerConfig(BaseSettings):
    """Booker configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Resamania account (browser-only, no API access)
    resamania_username: str = Field(
        default="",
        description="Resamania login email",
    )
    resamania_password: str = Field(
        default="",
        description="Resamania password",
    )
    planning_url: str = Field(
        default="https://member.resamania.com/planning",
        description="Member planning page listing bookable classes",
    )
    login_url: str = Field(
        default="https://member.resamania.com/login",
        description="Login page used when the saved session has expired",
    )

    # Paths
    config_file: str = Field(
        default="config.json",
        description="JSON booking plan with target classes",
    )
    state_dir: str = Field(
        default="data/state",
        description="Directory for Playwright session state",
    )
    screenshot_dir: str = Field(
        default="screenshots",
        description="Where diagnostic screenshots are written",
    )

    # Session settings
    max_session_age_hours: int = Field(
        default=24,
        description="Maximum age of Playwright session before re-authentication",
    )

    # Browser
    headless: bool = Field(default=True, description="Run Chromium headless")
    slow_mo: int = Field(default=100, description="Playwright slow_mo in ms")
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="User agent for the browser context",
    )
    card_selector: str = Field(
        default=DEFAULT_CARD_SELECTOR,
        description="CSS selector for one activity card on the planning page",
    )

    # Booking window and retries
    min_hours_from_now: float = Field(
        default=6.0,
        ge=0,
        description="Skip classes starting sooner than this many hours",
    )
    max_days_from_now: float = Field(
        default=4.0,
        gt=0,
        description="Skip classes starting later than this many days",
    )
    max_attempts: int = Field(
        default=15,
        ge=1,
        description="Listing/booking attempts per run",
    )
    retry_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Pause between unsuccessful attempts",
    )

    # Page timing (milliseconds)
    settle_delay_ms: int = Field(default=1500, ge=0)
    toast_timeout_ms: int = Field(default=2000, ge=0)
    toast_clear_timeout_ms: int = Field(default=5000, ge=0)
    inter_booking_delay_ms: int = Field(default=1000, ge=0)
    card_wait_timeout_ms: int = Field(default=15000, ge=0)

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    def require_credentials(self) -> tuple[str, str]:
        """Return (username, password).

        Raises:
            AuthenticationError: If either is missing.
        """
        if not self.resamania_username or not self.resamania_password:
            raise AuthenticationError(
                "RESAMANIA_USERNAME and RESAMANIA_PASSWORD must be set in environment"
            )
        return self.resamania_username, self.resamania_password

    def with_plan(self, plan: "BookingPlan") -> "BookerConfig":
        """Return a copy with the plan's booking_settings applied on top."""
        overrides = plan.booking_settings.model_dump(exclude_none=True)
        return self.model_copy(update=overrides)


class BookingSettings(BaseModel):
    """Optional per-plan overrides of BookerConfig fields."""

    headless: bool | None = None
    slow_mo: int | None = Field(default=None, ge=0)
    min_hours_from_now: float | None = Field(default=None, ge=0)
    max_days_from_now: float | None = Field(default=None, gt=0)
    max_attempts: int | None = Field(default=None, ge=1)


class BookingPlan(BaseModel):
    """Contents of the booking plan file.

    Example:
        {
          "target_classes": [
            {"day": "Monday", "time": "12:30", "activity": "CAF",
             "duration_minutes": 45, "enabled": true}
          ],
          "booking_settings": {"max_attempts": 15}
        }
    """

    target_classes: list[TargetClass] = Field(default_factory=list)
    booking_settings: BookingSettings = Field(default_factory=BookingSettings)

    @property
    def enabled_targets(self) -> list[TargetClass]:
        return [target for target in self.target_classes if target.enabled]


def load_booking_plan(path: str | Path) -> BookingPlan:
    """Read and validate the booking plan file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid.
    """
    plan_path = Path(path)
    try:
        raw = json.loads(plan_path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Config file not found: {plan_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Config file is not valid JSON: {plan_path}: {e}") from e

    try:
        return BookingPlan.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid booking plan {plan_path}: {e}") from e


# Singleton pattern, for entry points only
_config: BookerConfig | None = None


def get_config() -> BookerConfig:
    """Get the booker configuration singleton.

    Returns:
        BookerConfig: Booker configuration instance
    """
    global _config
    if _config is None:
        _config = BookerConfig()
    return _config
