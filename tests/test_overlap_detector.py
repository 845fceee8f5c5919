"""Тесты пересечения окон и времени пересадки."""

from datetime import time, timedelta

import pytest

from app.models import TableSlot
from app.services.overlap_detector import OverlapDetector
from app.utils.enums import SlotStatus
from app.utils.timeutils import combine, utcnow
from conftest import DWELL_MINUTES, EVENING, EVENING_END, LATE, RESERVATION_DAY


@pytest.mark.parametrize(
    'first, second, expected',
    [
        ((time(18), time(19)), (time(18, 30), time(20)), True),
        ((time(18), time(20)), (time(18, 30), time(19)), True),
        ((time(18), time(19)), (time(19), time(20)), False),
        ((time(18), time(19)), (time(20), time(21)), False),
    ],
)
def test_windows_overlap_is_symmetric(first, second, expected):
    assert OverlapDetector.windows_overlap(*first, *second) is expected
    assert OverlapDetector.windows_overlap(*second, *first) is expected


def test_expired_hold_does_not_block():
    now = utcnow()
    slot = TableSlot(
        status=SlotStatus.HELD,
        hold_expires_at=now - timedelta(minutes=1),
    )
    assert OverlapDetector.is_blocking(slot, now) is False


def test_hold_without_expiry_blocks():
    slot = TableSlot(status=SlotStatus.HELD, hold_expires_at=None)
    assert OverlapDetector.is_blocking(slot, utcnow()) is True


@pytest.mark.parametrize(
    'status, expected',
    [
        (SlotStatus.AVAILABLE, False),
        (SlotStatus.RESERVED, True),
        (SlotStatus.BLOCKED, True),
        (SlotStatus.MAINTENANCE, True),
    ],
)
def test_blocking_statuses(status, expected):
    slot = TableSlot(status=status)
    assert OverlapDetector.is_blocking(slot, utcnow()) is expected


async def test_reserved_slot_overlaps_window(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    async with session_factory() as session:
        assert await OverlapDetector.has_overlap(
            session,
            booking.table_id,
            RESERVATION_DAY,
            time(19),
            time(20),
        )
        assert not await OverlapDetector.has_overlap(
            session,
            booking.table_id,
            RESERVATION_DAY,
            EVENING_END,
            time(21),
        )
        assert not await OverlapDetector.has_overlap(
            session,
            booking.table_id,
            RESERVATION_DAY,
            time(19),
            time(20),
            exclude_slot_ids=[booking.slot_id],
        )


async def test_dwell_time_extends_occupation(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2, start=EVENING)
    async with session_factory() as session:
        check = await OverlapDetector.check_dwell_time_availability(
            session,
            restaurant.id,
            booking.table_id,
            RESERVATION_DAY,
            LATE,
            time(21, 15),
        )
    assert check.is_available is False
    assert check.dwell_time_minutes == DWELL_MINUTES
    assert [c.reservation_id for c in check.conflicts] == [
        booking.reservation_id,
    ]
    assert check.conflicts[0].effective_end_time == combine(
        RESERVATION_DAY,
        time(20),
    )


async def test_dwell_time_ends_exactly_at_next_start(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2, start=EVENING)
    async with session_factory() as session:
        check = await OverlapDetector.check_dwell_time_availability(
            session,
            restaurant.id,
            booking.table_id,
            RESERVATION_DAY,
            time(20),
            time(21, 30),
        )
        excluded = await OverlapDetector.check_dwell_time_availability(
            session,
            restaurant.id,
            booking.table_id,
            RESERVATION_DAY,
            LATE,
            time(21, 15),
            exclude_reservation_id=booking.reservation_id,
        )
    assert check.is_available is True
    assert excluded.is_available is True
