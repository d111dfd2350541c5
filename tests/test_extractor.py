from datetime import datetime

import pytest

from src.resabook.extractor import SlotExtractor, classify_status
from src.resabook.models import (
    CardRef,
    DateStrategy,
    SlotRecord,
    SlotStatus,
    StatusKind,
    Weekday,
)
from tests.fakes import FakeCard

# Wednesday
NOW = datetime(2025, 1, 15, 10, 0)


@pytest.mark.parametrize(
    "text, kind, remaining",
    [
        ("Signed up\nFull", StatusKind.SIGNED_UP, None),
        ("Full\nJoin the waiting list", StatusKind.FULL, None),
        ("On waiting list\n2 remaining places", StatusKind.WAITLISTED, None),
        ("Only 3 remaining places", StatusKind.AVAILABLE_WITH_COUNT, 3),
        ("1 remaining place", StatusKind.AVAILABLE_WITH_COUNT, 1),
        ("Book", StatusKind.AVAILABLE, None),
    ],
)
def test_status_priority_chain(text, kind, remaining):
    status = classify_status(text)
    assert status.kind is kind
    assert status.remaining == remaining


def test_status_labels():
    assert classify_status("Signed up").label == "Signed up"
    assert classify_status("waiting list").label == "On waiting list"
    assert classify_status("12 remaining places").label == "12 remaining places"
    assert classify_status("").label == "Available"


@pytest.mark.asyncio
async def test_extract_full_card():
    card = FakeCard(
        "CAF Intense",
        "12:30",
        "Friday 17 January\nClub Centre\nStudio 1\n3 remaining places",
    )

    slots = await SlotExtractor().extract([card], generation=4, now=NOW)

    assert len(slots) == 1
    slot = slots[0]
    assert slot.activity_name == "CAF Intense"
    assert slot.time_text == "12:30"
    assert slot.date_text == "Friday 17 January"
    assert slot.day_of_week is Weekday.FRIDAY
    assert slot.status == SlotStatus(StatusKind.AVAILABLE_WITH_COUNT, 3)
    assert slot.bookable is True
    assert slot.resolved_instant == datetime(2025, 1, 17, 12, 30)
    assert slot.date_strategy is DateStrategy.MONTH_AWARE
    assert slot.source_ref == CardRef(generation=4, index=0)


@pytest.mark.asyncio
async def test_cards_without_activity_are_skipped_and_order_kept():
    cards = [
        FakeCard("Yoga", "09:00", "Thursday 16 January"),
        FakeCard(None, "10:00", "Thursday 16 January"),
        FakeCard("Pilates", "11:00", "Friday 17 January"),
    ]

    slots = await SlotExtractor().extract(cards, generation=1, now=NOW)

    assert [s.activity_name for s in slots] == ["Yoga", "Pilates"]
    assert [s.source_ref.index for s in slots] == [0, 2]


@pytest.mark.asyncio
async def test_missing_time_is_unknown_and_unresolved():
    card = FakeCard("Yoga", None, "Thursday 16 January")

    slots = await SlotExtractor().extract([card], generation=1, now=NOW)

    assert slots[0].time_text == "Unknown"
    assert slots[0].resolved_instant is None
    assert slots[0].date_strategy is None


@pytest.mark.asyncio
async def test_card_read_error_does_not_abort_pass():
    cards = [
        FakeCard("Yoga", "09:00", "Thursday 16 January", text_error="detached"),
        FakeCard("Pilates", "11:00", "Friday 17 January"),
    ]

    slots = await SlotExtractor().extract(cards, generation=1, now=NOW)

    assert [s.activity_name for s in slots] == ["Pilates"]


@pytest.mark.asyncio
async def test_book_button_is_scoped_to_card():
    cards = [
        FakeCard("Yoga", "09:00", "Thursday 16 January\nFull", book=False),
        FakeCard("Pilates", "11:00", "Friday 17 January", book=True),
    ]

    slots = await SlotExtractor().extract(cards, generation=1, now=NOW)

    assert [s.bookable for s in slots] == [False, True]


@pytest.mark.asyncio
async def test_weekday_fallback_when_month_missing():
    card = FakeCard("Yoga", "12:30", "Friday 17\nClub Centre")

    slots = await SlotExtractor().extract([card], generation=1, now=NOW)

    assert slots[0].date_text == "Unknown"
    assert slots[0].day_of_week is Weekday.FRIDAY
    assert slots[0].resolved_instant == datetime(2025, 1, 17, 12, 30)
    assert slots[0].date_strategy is DateStrategy.WEEKDAY_DRIVEN


@pytest.mark.asyncio
async def test_resolved_instant_agrees_with_derived_weekday():
    # Two "<Day> <n>" fragments: the derived weekday is Monday (calendar order)
    card = FakeCard("Yoga", "12:30", "Friday 17\nStudio closed Monday 20")

    slot = (await SlotExtractor().extract([card], generation=1, now=NOW))[0]

    assert slot.day_of_week is Weekday.MONDAY
    assert slot.resolved_instant == datetime(2025, 1, 20, 12, 30)
    assert slot.resolved_instant.weekday() == slot.day_of_week.number


@pytest.mark.asyncio
async def test_no_date_at_all_keeps_slot_unresolved():
    card = FakeCard("Yoga", "12:30", "Club Centre")

    slots = await SlotExtractor().extract([card], generation=1, now=NOW)

    assert len(slots) == 1
    assert slots[0].day_of_week is Weekday.UNKNOWN
    assert slots[0].resolved_instant is None


@pytest.mark.asyncio
async def test_extraction_capped_at_fifty_cards():
    cards = [FakeCard(f"Class {i}", "12:30", "Friday 17 January") for i in range(60)]

    slots = await SlotExtractor().extract(cards, generation=1, now=NOW)

    assert len(slots) == 50
    assert slots[-1].activity_name == "Class 49"


def test_slot_equality_ignores_card_ref():
    fields = dict(
        activity_name="Yoga",
        date_text="Friday 17 January",
        time_text="12:30",
        day_of_week=Weekday.FRIDAY,
        status=SlotStatus(StatusKind.AVAILABLE),
        bookable=True,
    )
    first = SlotRecord(source_ref=CardRef(1, 0), **fields)
    second = SlotRecord(source_ref=CardRef(2, 5), **fields)

    assert first == second
    assert hash(first) == hash(second)
    assert "source_ref" not in repr(first)
