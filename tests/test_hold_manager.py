"""Тесты удержаний слотов."""

import asyncio
from datetime import time, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from app.core.exceptions import ReservationError
from app.models import CleanupLog, ReservationTableHold, TableSlot
from app.repositories.slot import slot_repository
from app.schemas.slot import HoldSlotRequest
from app.services.hold_manager import HoldManager
from app.services.reservation_coordinator import ReservationCoordinator
from app.utils.enums import CleanupType, ErrorCode, SlotStatus
from app.utils.timeutils import utcnow
from conftest import (
    EVENING,
    RESERVATION_DAY,
    expire_hold,
    load,
    request_payload,
)


def hold_request(restaurant, party_size, **kwargs):
    return HoldSlotRequest(
        restaurant_id=restaurant.id,
        reservation_date=RESERVATION_DAY,
        reservation_time=kwargs.pop('start', EVENING),
        party_size=party_size,
        **kwargs,
    )


async def test_smallest_fitting_table_is_held(session_factory, restaurant):
    result = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 3),
    )
    assert result.success
    assert result.data.table_id == restaurant.tables['T4']
    assert result.data.slot_id == restaurant.slots[('T4', EVENING)]

    slot = await load(session_factory, TableSlot, result.data.slot_id)
    assert slot.status == SlotStatus.HELD
    assert slot.hold_expires_at == result.data.hold_expires_at


async def test_preferred_section_is_respected(session_factory, restaurant):
    result = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(
            restaurant,
            2,
            preferred_section_id=restaurant.terrace_id,
        ),
    )
    assert result.success
    assert result.data.table_id == restaurant.tables['T6']
    assert result.data.section_id == restaurant.terrace_id


async def test_large_party_falls_back_to_largest_table(
    session_factory,
    restaurant,
):
    result = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 8),
    )
    assert result.success
    assert result.data.table_id == restaurant.tables['T6']


async def test_no_free_tables(session_factory, restaurant):
    for _ in range(3):
        held = await HoldManager.find_and_hold_best_slot(
            session_factory,
            hold_request(restaurant, 2),
        )
        assert held.success

    result = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    assert result.success is False
    assert result.error_code == ErrorCode.NO_AVAILABLE_SLOTS


async def test_no_slot_at_requested_time(session_factory, restaurant):
    result = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2, start=time(12)),
    )
    assert result.error_code == ErrorCode.NO_AVAILABLE_SLOTS


async def test_concurrent_holds_never_share_a_slot(
    session_factory,
    restaurant,
):
    last_slot_id = restaurant.slots[('T2', EVENING)]
    async with session_factory() as session:
        await session.execute(
            update(TableSlot)
            .where(
                TableSlot.id.in_(
                    [
                        restaurant.slots[('T4', EVENING)],
                        restaurant.slots[('T6', EVENING)],
                    ],
                ),
            )
            .values(status=SlotStatus.BLOCKED),
        )
        await session.commit()

    results = await asyncio.gather(
        *(
            HoldManager.find_and_hold_best_slot(
                session_factory,
                hold_request(restaurant, 2),
            )
            for _ in range(2)
        ),
    )
    winners = [result for result in results if result.success]
    losers = [result for result in results if not result.success]
    assert len(winners) == 1
    assert winners[0].data.slot_id == last_slot_id
    assert len(losers) == 1
    assert losers[0].error_code in (
        ErrorCode.SLOT_CONFLICT,
        ErrorCode.NO_AVAILABLE_SLOTS,
    )

    slot = await load(session_factory, TableSlot, last_slot_id)
    assert slot.status == SlotStatus.HELD
    assert slot.hold_expires_at == winners[0].data.hold_expires_at


async def test_second_hold_of_same_slot_updates_nothing(
    session_factory,
    restaurant,
):
    slot_id = restaurant.slots[('T2', EVENING)]
    now = utcnow()
    expires_at = now + timedelta(minutes=10)
    async with session_factory() as session:
        first = await slot_repository.hold(session, slot_id, expires_at, now)
        second = await slot_repository.hold(
            session,
            slot_id,
            expires_at + timedelta(minutes=5),
            now,
        )
        await session.commit()
    assert (first, second) == (1, 0)

    slot = await load(session_factory, TableSlot, slot_id)
    assert slot.hold_expires_at == expires_at


async def test_expired_hold_is_reclaimed(session_factory, restaurant):
    first = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    created = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        request_payload(restaurant, first.data.slot_id),
    )
    assert created.success
    await expire_hold(session_factory, first.data.slot_id)

    second = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    assert second.success
    assert second.data.slot_id == first.data.slot_id
    assert second.data.hold_expires_at > first.data.hold_expires_at

    async with session_factory() as session:
        links = await session.scalar(
            select(func.count(ReservationTableHold.id)).where(
                ReservationTableHold.slot_id == first.data.slot_id,
            ),
        )
    assert links == 0


async def test_release_expired_holds(session_factory, restaurant):
    expired = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    active = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    await expire_hold(session_factory, expired.data.slot_id)

    report = await HoldManager.release_expired_holds(session_factory)
    assert report.success
    assert report.data.records_removed == 1
    assert report.data.restaurants == 1

    released = await load(session_factory, TableSlot, expired.data.slot_id)
    assert released.status == SlotStatus.AVAILABLE
    assert released.hold_expires_at is None
    kept = await load(session_factory, TableSlot, active.data.slot_id)
    assert kept.status == SlotStatus.HELD

    async with session_factory() as session:
        log = await session.scalar(select(CleanupLog))
    assert log.cleanup_type == CleanupType.EXPIRED_HOLDS
    assert log.records_removed == 1

    repeat = await HoldManager.release_expired_holds(session_factory)
    assert repeat.data.records_removed == 0


async def test_extend_hold(session_factory, restaurant):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    extended = await HoldManager.extend_hold(
        session_factory,
        held.data.slot_id,
        5,
    )
    assert extended.success
    delta = extended.data.hold_expires_at - held.data.hold_expires_at
    assert delta.total_seconds() == 5 * 60


async def test_extend_expired_hold_fails(session_factory, restaurant):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    await expire_hold(session_factory, held.data.slot_id, minutes=3)

    result = await HoldManager.extend_hold(
        session_factory,
        held.data.slot_id,
        5,
    )
    assert result.error_code == ErrorCode.HOLD_EXPIRED
    assert result.context['expired_minutes_ago'] >= 2


async def test_extend_hold_of_free_slot(session_factory, restaurant):
    result = await HoldManager.extend_hold(
        session_factory,
        restaurant.slots[('T2', EVENING)],
        5,
    )
    assert result.error_code == ErrorCode.HOLD_WRONG_STATUS


async def test_hold_statistics(session_factory, restaurant):
    first = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    await expire_hold(session_factory, first.data.slot_id)

    stats = await HoldManager.get_hold_statistics(
        session_factory,
        restaurant.id,
    )
    assert stats.data.total_holds == 2
    assert stats.data.expired_holds == 1
    assert stats.data.active_holds == 1


async def test_hold_without_expiry_is_not_active(session_factory, restaurant):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    async with session_factory() as session:
        await session.execute(
            update(TableSlot)
            .where(TableSlot.id == held.data.slot_id)
            .values(hold_expires_at=None),
        )
        await session.commit()

    stats = await HoldManager.get_hold_statistics(
        session_factory,
        restaurant.id,
    )
    assert stats.data.total_holds == 1
    assert stats.data.expired_holds == 0
    assert stats.data.active_holds == 0
    assert stats.data.missing_expiry_holds == 1


async def test_release_table_slot(session_factory, restaurant):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        hold_request(restaurant, 2),
    )
    result = await HoldManager.release_table_slot(
        session_factory,
        held.data.slot_id,
    )
    assert result.success
    slot = await load(session_factory, TableSlot, held.data.slot_id)
    assert slot.status == SlotStatus.AVAILABLE


async def test_release_unknown_slot(session_factory, restaurant):
    result = await HoldManager.release_table_slot(
        session_factory,
        restaurant.id,
    )
    assert result.error_code == ErrorCode.SLOT_NOT_FOUND


@pytest.mark.parametrize(
    'values, error_code',
    [
        ({'status': SlotStatus.AVAILABLE}, ErrorCode.HOLD_WRONG_STATUS),
        (
            {'status': SlotStatus.HELD, 'hold_expires_at': None},
            ErrorCode.HOLD_MISSING_EXPIRY,
        ),
    ],
)
async def test_validate_held_slot(
    session_factory,
    restaurant,
    values,
    error_code,
):
    slot_id = restaurant.slots[('T2', EVENING)]
    async with session_factory() as session:
        await session.execute(
            update(TableSlot).where(TableSlot.id == slot_id).values(**values),
        )
        await session.commit()

    async with session_factory() as session:
        with pytest.raises(ReservationError) as error:
            await HoldManager.validate_held_slot(session, slot_id)
    assert error.value.code == error_code


async def test_validate_unknown_hold(session_factory, restaurant):
    async with session_factory() as session:
        with pytest.raises(ReservationError) as error:
            await HoldManager.validate_held_slot(session, uuid4())
    assert error.value.code == ErrorCode.HOLD_NOT_FOUND
