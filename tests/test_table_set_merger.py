"""Тесты объединения столов."""

from datetime import timedelta

from sqlalchemy import update

from app.models import TableSet, TableSlot
from app.services.table_set_merger import TableSetMerger
from app.utils.enums import ErrorCode, SlotStatus, TableSetStatus
from app.utils.timeutils import utcnow
from conftest import EVENING, RESERVATION_DAY, WINDOWS, expire_hold, load


async def merge(session_factory, booking, *table_ids):
    return await TableSetMerger.merge_tables(
        session_factory,
        booking.reservation_id,
        list(table_ids),
        'manager',
    )


async def test_merge_holds_additional_tables(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    result = await merge(session_factory, booking, restaurant.tables['T4'])
    assert result.success, result.detail

    table_set = result.data
    assert table_set.status == TableSetStatus.PENDING_MERGE
    assert table_set.primary_table_id == restaurant.tables['T2']
    assert table_set.slot_ids[0] == str(booking.slot_id)
    assert table_set.table_ids == [
        str(restaurant.tables['T2']),
        str(restaurant.tables['T4']),
    ]
    assert table_set.combined_capacity == 6
    assert table_set.expires_at is not None

    extra = await load(
        session_factory,
        TableSlot,
        restaurant.slots[('T4', EVENING)],
    )
    assert extra.status == SlotStatus.HELD
    assert extra.reservation_id == booking.reservation_id
    assert extra.hold_expires_at == table_set.expires_at


async def test_activate_reserves_held_tables(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    merged = await merge(session_factory, booking, restaurant.tables['T4'])
    result = await TableSetMerger.activate_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    assert result.success, result.detail
    assert result.data.status == TableSetStatus.ACTIVE
    assert result.data.confirmed_at is not None

    extra = await load(
        session_factory,
        TableSlot,
        restaurant.slots[('T4', EVENING)],
    )
    assert extra.status == SlotStatus.RESERVED
    assert extra.hold_expires_at is None


async def test_dissolve_keeps_primary_table(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    merged = await merge(session_factory, booking, restaurant.tables['T4'])
    await TableSetMerger.activate_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    result = await TableSetMerger.dissolve_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    assert result.success, result.detail
    assert result.data.released_slot_ids == [
        restaurant.slots[('T4', EVENING)],
    ]

    primary = await load(session_factory, TableSlot, booking.slot_id)
    assert primary.status == SlotStatus.RESERVED
    extra = await load(
        session_factory,
        TableSlot,
        restaurant.slots[('T4', EVENING)],
    )
    assert extra.status == SlotStatus.AVAILABLE
    assert extra.reservation_id is None

    table_set = await load(session_factory, TableSet, merged.data.id)
    assert table_set.status == TableSetStatus.DISSOLVED
    assert table_set.dissolved_by == 'manager'

    again = await TableSetMerger.dissolve_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    assert again.error_code == ErrorCode.TABLE_SET_WRONG_STATUS


async def test_primary_table_cannot_be_merged(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    result = await merge(session_factory, booking, restaurant.tables['T2'])
    assert result.error_code == ErrorCode.VALIDATION_ERROR


async def test_busy_table_cannot_be_merged(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    await book(party_size=3)
    result = await merge(session_factory, booking, restaurant.tables['T4'])
    assert result.error_code == ErrorCode.TABLE_UNAVAILABLE
    assert result.context['table_id'] == str(restaurant.tables['T4'])


async def test_second_merge_for_same_window(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    await merge(session_factory, booking, restaurant.tables['T4'])
    result = await merge(session_factory, booking, restaurant.tables['T6'])
    assert result.error_code == ErrorCode.TABLE_SET_EXISTS


async def test_unknown_table(session_factory, restaurant, book):
    booking = await book(party_size=2)
    result = await merge(session_factory, booking, restaurant.id)
    assert result.error_code == ErrorCode.TABLE_NOT_FOUND


async def test_stale_merge_expires(session_factory, restaurant, book):
    booking = await book(party_size=2)
    merged = await merge(session_factory, booking, restaurant.tables['T4'])
    extra_slot_id = restaurant.slots[('T4', EVENING)]
    await expire_hold(session_factory, extra_slot_id)
    async with session_factory() as session:
        await session.execute(
            update(TableSet)
            .where(TableSet.id == merged.data.id)
            .values(expires_at=utcnow() - timedelta(minutes=1)),
        )
        await session.commit()

    activation = await TableSetMerger.activate_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    assert activation.error_code == ErrorCode.TABLE_SET_WRONG_STATUS

    result = await TableSetMerger.expire_stale_merges(session_factory)
    assert result.data == 1

    table_set = await load(session_factory, TableSet, merged.data.id)
    assert table_set.status == TableSetStatus.EXPIRED
    extra = await load(session_factory, TableSlot, extra_slot_id)
    assert extra.status == SlotStatus.AVAILABLE
    primary = await load(session_factory, TableSlot, booking.slot_id)
    assert primary.status == SlotStatus.RESERVED


async def test_period_availability(session_factory, restaurant, book):
    booking = await book(party_size=2)
    start, end = WINDOWS[0]
    async with session_factory() as session:
        busy = await TableSetMerger.check_table_availability_during_period(
            session,
            booking.table_id,
            RESERVATION_DAY,
            start,
            end,
        )
        free = await TableSetMerger.check_table_availability_during_period(
            session,
            restaurant.tables['T6'],
            RESERVATION_DAY,
            start,
            end,
        )
    assert busy.is_available is False
    assert [slot.id for slot in busy.blocking_slots] == [booking.slot_id]
    assert free.is_available is True
    assert [slot.id for slot in free.available_slots] == [
        restaurant.slots[('T6', EVENING)],
    ]


async def test_dissolve_fails_when_member_slot_is_not_owned(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    merged = await merge(session_factory, booking, restaurant.tables['T4'])
    await TableSetMerger.activate_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    extra_slot_id = restaurant.slots[('T4', EVENING)]
    async with session_factory() as session:
        await session.execute(
            update(TableSlot)
            .where(TableSlot.id == extra_slot_id)
            .values(reservation_id=None),
        )
        await session.commit()

    result = await TableSetMerger.dissolve_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    assert result.error_code == ErrorCode.SLOT_CONFLICT
    assert result.context['expected'] == 1
    assert result.context['released'] == 0

    table_set = await load(session_factory, TableSet, merged.data.id)
    assert table_set.status == TableSetStatus.ACTIVE
    extra = await load(session_factory, TableSlot, extra_slot_id)
    assert extra.status == SlotStatus.RESERVED


async def test_dissolve_lapsed_merge_skips_released_holds(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    merged = await merge(session_factory, booking, restaurant.tables['T4'])
    extra_slot_id = restaurant.slots[('T4', EVENING)]
    async with session_factory() as session:
        await session.execute(
            update(TableSlot)
            .where(TableSlot.id == extra_slot_id)
            .values(
                status=SlotStatus.AVAILABLE,
                reservation_id=None,
                hold_expires_at=None,
            ),
        )
        await session.execute(
            update(TableSet)
            .where(TableSet.id == merged.data.id)
            .values(expires_at=utcnow() - timedelta(minutes=1)),
        )
        await session.commit()

    result = await TableSetMerger.dissolve_table_set(
        session_factory,
        merged.data.id,
        'manager',
    )
    assert result.success, result.detail
    table_set = await load(session_factory, TableSet, merged.data.id)
    assert table_set.status == TableSetStatus.DISSOLVED
