"""Date and time inference for planning cards.

Cards render dates loosely: usually "Monday 2 December", sometimes only a
weekday and a day number, never a year. resolve_instant() turns such a
fragment plus an "HH:MM" time into an absolute datetime using one of three
named strategies and reports which one it used:

  month_aware     weekday/day/month present; this year, or next year if past
  weekday_driven  weekday present without a month; next occurrence of that
                  weekday, pushed one more week if the day number disagrees
  day_of_month    only a day number; this month, or next month if past

All functions take `now` explicitly so results are reproducible.
"""

import re
from datetime import datetime, timedelta

from src.resabook.errors import AmbiguousDateError
from src.resabook.logging import get_logger
from src.resabook.models import UNKNOWN, DateStrategy, ResolvedInstant, Weekday

log = get_logger(__name__)

DAY_NAMES: tuple[str, ...] = tuple(day.value for day in Weekday.known())
MONTH_NAMES: tuple[str, ...] = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_DAY_ALT = "|".join(DAY_NAMES)
_MONTH_ALT = "|".join(MONTH_NAMES)

# "Monday 2 December"
_FULL_DATE_RE = re.compile(
    rf"({_DAY_ALT})\s+(\d{{1,2}})\s+({_MONTH_ALT})", re.IGNORECASE
)
# "Monday 2"
_PARTIAL_DATE_RE = re.compile(rf"({_DAY_ALT})\s+(\d{{1,2}})", re.IGNORECASE)
_WEEKDAY_RE = re.compile(rf"\b({_DAY_ALT})\b", re.IGNORECASE)
_MONTH_RE = re.compile(rf"\b({_MONTH_ALT})\b", re.IGNORECASE)
_DAY_NUMBER_RE = re.compile(r"\b(\d{1,2})\b")
_TIME_RE = re.compile(r"\b(\d{1,2}):(\d{2})\b")


def extract_date_fragment(card_text: str) -> str:
    """Return the first "<DayName> <day> <MonthName>" substring, or "Unknown"."""
    match = _FULL_DATE_RE.search(card_text)
    return match.group(0) if match else UNKNOWN


def extract_partial_date(card_text: str, weekday: Weekday | None = None) -> str | None:
    """Return the first "<DayName> <day>" substring, if any.

    With `weekday`, only that day name counts, so the fragment agrees with
    the weekday derived for the card.
    """
    if weekday is None:
        match = _PARTIAL_DATE_RE.search(card_text)
    elif weekday is Weekday.UNKNOWN:
        return None
    else:
        match = re.search(rf"{weekday.value}\s+\d{{1,2}}", card_text, re.IGNORECASE)
    return match.group(0) if match else None


def extract_day_of_week(card_text: str) -> Weekday:
    """Derive the weekday of a card.

    A day name followed by a day number wins over a bare mention, so notices
    like "closed Mondays" don't override the real date line.
    """
    for day in DAY_NAMES:
        if re.search(rf"{day}\s+\d{{1,2}}", card_text, re.IGNORECASE):
            return Weekday(day)

    lowered = card_text.lower()
    for day in DAY_NAMES:
        if day.lower() in lowered:
            return Weekday(day)

    return Weekday.UNKNOWN


def parse_time(time_text: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute).

    Raises:
        AmbiguousDateError: If no valid time is present.
    """
    match = _TIME_RE.search(time_text or "")
    if not match:
        raise AmbiguousDateError(
            f"Invalid time: {time_text!r}", time_fragment=time_text
        )
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise AmbiguousDateError(
            f"Invalid time: {time_text!r}", time_fragment=time_text
        )
    return hour, minute


def _weekday_of(fragment: str) -> Weekday | None:
    match = _WEEKDAY_RE.search(fragment)
    return Weekday(match.group(1).capitalize()) if match else None


def _month_of(fragment: str) -> int | None:
    match = _MONTH_RE.search(fragment)
    if not match:
        return None
    return MONTH_NAMES.index(match.group(1).capitalize()) + 1


def _day_number_of(fragment: str) -> int | None:
    match = _DAY_NUMBER_RE.search(fragment)
    return int(match.group(1)) if match else None


def _month_aware(
    now: datetime, month: int, day: int, hour: int, minute: int
) -> datetime:
    try:
        target = now.replace(
            month=month, day=day, hour=hour, minute=minute, second=0, microsecond=0
        )
        # Year-boundary classes: a December date seen in January is next year's
        if target < now:
            target = target.replace(year=now.year + 1)
    except ValueError as e:
        raise AmbiguousDateError(f"No such date: day {day} of month {month}") from e
    return target


def _weekday_driven(
    now: datetime, weekday: Weekday, day: int | None, hour: int, minute: int
) -> datetime:
    days_ahead = (weekday.number - now.weekday()) % 7
    target = (now + timedelta(days=days_ahead)).replace(
        hour=hour, minute=minute, second=0, microsecond=0
    )
    if target < now:
        target += timedelta(days=7)

    if day is not None and target.day != day:
        target += timedelta(days=7)
        log.warning(
            "date_weekday_mismatch",
            weekday=weekday.value,
            day_number=day,
            resolved=target.isoformat(),
        )
    return target


def _next_month(value: datetime) -> datetime:
    if value.month == 12:
        return value.replace(year=value.year + 1, month=1)
    return value.replace(month=value.month + 1)


def _day_of_month(now: datetime, day: int, hour: int, minute: int) -> datetime:
    try:
        target = now.replace(
            day=day, hour=hour, minute=minute, second=0, microsecond=0
        )
        if target < now:
            target = _next_month(target)
    except ValueError as e:
        raise AmbiguousDateError(f"No such day {day} around {now:%Y-%m}") from e
    return target


def resolve_instant(
    date_fragment: str, time_text: str, now: datetime
) -> ResolvedInstant:
    """Resolve a card's date and time fragments to an absolute datetime.

    Args:
        date_fragment: e.g. "Monday 2 December", "Monday 2", "Monday" or "2".
        time_text: e.g. "19:30".
        now: Reference instant; resolved datetimes share its tzinfo.

    Returns:
        The resolved instant and the strategy that produced it.

    Raises:
        AmbiguousDateError: If the time is invalid, the fragment carries no
            usable date component, or it names an impossible calendar date.
    """
    fragment = date_fragment or ""
    try:
        hour, minute = parse_time(time_text)
    except AmbiguousDateError as e:
        e.date_fragment = fragment
        raise

    weekday = _weekday_of(fragment)
    month = _month_of(fragment)
    day = _day_number_of(fragment)

    if month is not None and day is not None:
        at = _month_aware(now, month, day, hour, minute)
        strategy = DateStrategy.MONTH_AWARE
    elif weekday is not None:
        at = _weekday_driven(now, weekday, day, hour, minute)
        strategy = DateStrategy.WEEKDAY_DRIVEN
    elif day is not None:
        at = _day_of_month(now, day, hour, minute)
        strategy = DateStrategy.DAY_OF_MONTH
    else:
        raise AmbiguousDateError(
            f"No date information in {fragment!r}",
            date_fragment=fragment,
            time_fragment=time_text,
        )

    log.debug(
        "instant_resolved",
        date_fragment=fragment,
        time=time_text,
        strategy=strategy.value,
        at=at.isoformat(),
    )
    return ResolvedInstant(at=at, strategy=strategy)


def hours_from(at: datetime, now: datetime) -> float:
    """Hours between now and at (negative if at is in the past)."""
    return (at - now).total_seconds() / 3600


def days_from(at: datetime, now: datetime) -> float:
    return (at - now).total_seconds() / 86400
