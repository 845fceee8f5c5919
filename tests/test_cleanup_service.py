"""Тесты фоновой очистки заявок и слотов."""

from datetime import timedelta

from sqlalchemy import select

from app.models import CleanupLog, ReservationRequest, TableSlot
from app.schemas.slot import HoldSlotRequest
from app.services.cleanup_service import CleanupService
from app.services.hold_manager import HoldManager
from app.services.reservation_coordinator import ReservationCoordinator
from app.utils.enums import CleanupType, SlotStatus
from app.utils.timeutils import utcnow
from conftest import (
    EVENING,
    EVENING_END,
    RESERVATION_DAY,
    load,
    request_payload,
)


async def create_request(session_factory, restaurant):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        HoldSlotRequest(
            restaurant_id=restaurant.id,
            reservation_date=RESERVATION_DAY,
            reservation_time=EVENING,
            party_size=2,
        ),
    )
    created = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        request_payload(restaurant, held.data.slot_id),
    )
    assert created.success, created.detail
    return held.data.slot_id, created.data.request_id


async def test_fresh_requests_are_kept(session_factory, restaurant):
    _, request_id = await create_request(session_factory, restaurant)
    result = await CleanupService.cleanup_stale_requests(session_factory)
    assert result.success, result.detail
    assert result.data.records_removed == 0
    assert await load(session_factory, ReservationRequest, request_id)


async def test_stale_request_is_removed(session_factory, restaurant):
    slot_id, request_id = await create_request(session_factory, restaurant)
    result = await CleanupService.cleanup_stale_requests(
        session_factory,
        minutes_old=0,
    )
    assert result.success, result.detail
    assert result.data.records_removed == 1
    assert result.data.restaurants == 1

    assert await load(session_factory, ReservationRequest, request_id) is None
    slot = await load(session_factory, TableSlot, slot_id)
    assert slot.status == SlotStatus.AVAILABLE
    assert slot.hold_expires_at is None

    async with session_factory() as session:
        logs = (await session.scalars(select(CleanupLog))).all()
    assert [log.cleanup_type for log in logs] == [
        CleanupType.STALE_REQUESTS,
    ]


async def test_confirmed_request_is_kept(session_factory, restaurant, book):
    booking = await book(party_size=2)
    result = await CleanupService.cleanup_stale_requests(
        session_factory,
        minutes_old=0,
    )
    assert result.data.records_removed == 0
    assert await load(session_factory, ReservationRequest, booking.request_id)


async def test_past_slots_are_removed(session_factory, restaurant):
    yesterday = utcnow().date() - timedelta(days=1)
    async with session_factory() as session:
        session.add_all(
            [
                TableSlot(
                    restaurant_id=restaurant.id,
                    table_id=restaurant.tables['T2'],
                    slot_date=yesterday,
                    start_time=EVENING,
                    end_time=EVENING_END,
                    status=SlotStatus.AVAILABLE,
                ),
                TableSlot(
                    restaurant_id=restaurant.id,
                    table_id=restaurant.tables['T4'],
                    slot_date=yesterday,
                    start_time=EVENING,
                    end_time=EVENING_END,
                    status=SlotStatus.HELD,
                    hold_expires_at=utcnow(),
                ),
            ],
        )
        await session.commit()

    result = await CleanupService.cleanup_stale_slots(session_factory)
    assert result.success, result.detail
    assert result.data.records_removed == 1
    async with session_factory() as session:
        remaining = (
            await session.scalars(
                select(TableSlot).where(TableSlot.slot_date == yesterday),
            )
        ).all()
    assert [slot.status for slot in remaining] == [SlotStatus.HELD]
