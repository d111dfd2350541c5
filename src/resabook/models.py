"""Data types shared by the extractor, matcher and booking loop.

Configuration-facing types (TargetClass, BookingOutcome, RetryRunResult) use
Pydantic v2 for validation and serialization. Slot records are frozen
dataclasses so that the live card reference can be excluded from equality
and hashing.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

UNKNOWN = "Unknown"


class Weekday(str, Enum):
    """Day of the week as rendered on the planning page."""

    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"
    UNKNOWN = "Unknown"

    @classmethod
    def known(cls) -> list["Weekday"]:
        """The seven real days, Monday first (matches datetime.weekday())."""
        return [day for day in cls if day is not cls.UNKNOWN]

    @property
    def number(self) -> int | None:
        if self is Weekday.UNKNOWN:
            return None
        return Weekday.known().index(self)


class StatusKind(str, Enum):
    AVAILABLE = "available"
    FULL = "full"
    SIGNED_UP = "signed_up"
    WAITLISTED = "waitlisted"
    AVAILABLE_WITH_COUNT = "available_with_count"


@dataclass(frozen=True)
class SlotStatus:
    """Booking status read from a card; `remaining` only set for AVAILABLE_WITH_COUNT."""

    kind: StatusKind
    remaining: int | None = None

    @property
    def is_full(self) -> bool:
        return self.kind is StatusKind.FULL

    @property
    def label(self) -> str:
        if self.kind is StatusKind.AVAILABLE_WITH_COUNT:
            return f"{self.remaining} remaining places"
        return {
            StatusKind.AVAILABLE: "Available",
            StatusKind.FULL: "Full",
            StatusKind.SIGNED_UP: "Signed up",
            StatusKind.WAITLISTED: "On waiting list",
        }[self.kind]


class DateStrategy(str, Enum):
    """How a slot's absolute date-time was inferred from its card text."""

    MONTH_AWARE = "month_aware"
    WEEKDAY_DRIVEN = "weekday_driven"
    DAY_OF_MONTH = "day_of_month"


@dataclass(frozen=True)
class ResolvedInstant:
    at: datetime
    strategy: DateStrategy


@dataclass(frozen=True)
class CardRef:
    """Token pointing at one card of one listing generation.

    Resolved back to a live element by PlanningPage.resolve(), which rejects
    tokens from any generation other than the current one.
    """

    generation: int
    index: int


@dataclass(frozen=True)
class SlotRecord:
    """One class occurrence parsed from a planning card."""

    activity_name: str
    date_text: str
    time_text: str
    day_of_week: Weekday
    status: SlotStatus
    bookable: bool
    source_ref: CardRef = field(compare=False, hash=False, repr=False)
    resolved_instant: datetime | None = None
    date_strategy: DateStrategy | None = None

    def describe(self) -> str:
        return f"{self.activity_name} ({self.day_of_week.value} {self.time_text})"


class TargetClass(BaseModel):
    """A class the user wants booked, as written in the booking plan file."""

    model_config = ConfigDict(frozen=True)

    day: Weekday  # exact, case-sensitive day name, e.g. "Monday"
    time: str  # "HH:MM", compared verbatim with the card's time heading
    activity: str  # case-insensitive substring of the activity name
    duration_minutes: int = 60
    enabled: bool = True

    @field_validator("day")
    @classmethod
    def _real_day(cls, value: Weekday) -> Weekday:
        if value is Weekday.UNKNOWN:
            raise ValueError("target day must be a real weekday")
        return value


class BookingResult(str, Enum):
    """Outcome of the booking procedure for a single slot."""

    BOOKED = "booked"  # success toast observed
    UNCONFIRMED = "unconfirmed"  # no toast at all, assumed booked
    FAILED = "failed"
    SKIPPED = "skipped"  # not bookable or Full, never clicked


class BookingOutcome(BaseModel):
    """Tally of one attempt's booking pass."""

    booked_count: int = 0
    unconfirmed_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    total_matching_considered: int = 0

    @computed_field
    @property
    def success_count(self) -> int:
        return self.booked_count + self.unconfirmed_count

    def record(self, result: BookingResult) -> None:
        if result is BookingResult.BOOKED:
            self.booked_count += 1
        elif result is BookingResult.UNCONFIRMED:
            self.unconfirmed_count += 1
        elif result is BookingResult.FAILED:
            self.failed_count += 1
        else:
            self.skipped_count += 1


class RunState(str, Enum):
    IDLE = "idle"
    LISTING = "listing"
    MATCHING = "matching"
    BOOKING = "booking"
    RETRYING = "retrying"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


class RetryRunResult(BaseModel):
    """Summary of one invocation of the booking retry loop."""

    attempts: int
    elapsed_seconds: float
    total_booked: int = 0  # confirmed + unconfirmed
    total_unconfirmed: int = 0
    final_state: RunState = RunState.EXHAUSTED
    last_outcome: BookingOutcome = Field(default_factory=BookingOutcome)

    @property
    def succeeded(self) -> bool:
        return self.final_state is RunState.SUCCESS
