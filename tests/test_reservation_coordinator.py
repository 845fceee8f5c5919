"""Тесты жизненного цикла заявки и изменения бронирований."""

import re
from datetime import time, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.models import (
    RequestStatusHistory,
    Reservation,
    ReservationFinancialData,
    ReservationModificationHistory,
    ReservationRequest,
    ReservationTableHold,
    TableSlot,
)
from app.repositories.slot import slot_repository
from app.schemas.reservation import (
    ReassignTableRequest,
    ReservationDetailsUpdate,
)
from app.schemas.reservation_request import (
    ConfirmReservationRequest,
    RequestStatusUpdate,
)
from app.schemas.slot import HoldSlotRequest
from app.services import reservation_coordinator
from app.services.hold_manager import HoldManager
from app.services.reservation_coordinator import (
    ReservationCoordinator,
    generate_reservation_number,
)
from app.utils.enums import (
    ErrorCode,
    ModificationType,
    RequestStatus,
    ReservationStatus,
    SlotStatus,
)
from conftest import (
    EVENING,
    LATE,
    RESERVATION_DAY,
    expire_hold,
    load,
    request_payload,
)


async def hold_and_request(session_factory, restaurant, party_size=2):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        HoldSlotRequest(
            restaurant_id=restaurant.id,
            reservation_date=RESERVATION_DAY,
            reservation_time=EVENING,
            party_size=party_size,
        ),
    )
    created = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        request_payload(restaurant, held.data.slot_id, adults=party_size),
    )
    assert created.success, created.detail
    return held.data, created.data


async def count(session_factory, model, *predicates):
    async with session_factory() as session:
        return await session.scalar(
            select(func.count(model.id)).where(*predicates),
        )


def test_reservation_number_format():
    number = generate_reservation_number(RESERVATION_DAY)
    assert re.fullmatch(
        rf'RT-{RESERVATION_DAY:%m%d}-\d{{4}}',
        number,
    )


async def test_confirm_turns_hold_into_reservation(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2, advance=Decimal('300'))

    assert booking.status == ReservationStatus.CONFIRMED
    assert booking.table_id == restaurant.tables['T2']
    assert booking.balance_due == Decimal('2000.00')
    assert booking.is_paid is False

    slot = await load(session_factory, TableSlot, booking.slot_id)
    assert slot.status == SlotStatus.RESERVED
    assert slot.reservation_id == booking.reservation_id
    assert slot.hold_expires_at is None

    request = await load(
        session_factory,
        ReservationRequest,
        booking.request_id,
    )
    assert request.status == RequestStatus.CONFIRMED
    assert await count(session_factory, ReservationTableHold) == 0

    async with session_factory() as session:
        history = (
            await session.scalars(
                select(RequestStatusHistory)
                .where(RequestStatusHistory.request_id == request.id)
                .order_by(RequestStatusHistory.created_at),
            )
        ).all()
        financial = await session.scalar(
            select(ReservationFinancialData).where(
                ReservationFinancialData.reservation_id
                == booking.reservation_id,
            ),
        )
    assert [(h.previous_status, h.new_status) for h in history] == [
        (None, RequestStatus.PENDING),
        (RequestStatus.PENDING, RequestStatus.CONFIRMED),
    ]
    assert financial.total_after_discount == Decimal('2300.00')
    assert financial.net_amount == Decimal('2000.00')
    assert financial.advance_payment == Decimal('300.00')


async def test_seat_immediately(session_factory, restaurant):
    _, created = await hold_and_request(session_factory, restaurant)
    result = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        created.request_id,
        ConfirmReservationRequest(seat_immediately=True),
    )
    assert result.data.status == ReservationStatus.SEATED


@pytest.mark.parametrize(
    'field, value',
    [
        ('requested_time', time(18, 30)),
        ('requested_date', RESERVATION_DAY + timedelta(days=1)),
    ],
)
async def test_request_must_match_hold(
    session_factory,
    restaurant,
    field,
    value,
):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        HoldSlotRequest(
            restaurant_id=restaurant.id,
            reservation_date=RESERVATION_DAY,
            reservation_time=EVENING,
            party_size=2,
        ),
    )
    payload = request_payload(restaurant, held.data.slot_id).model_copy(
        update={field: value},
    )
    result = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        payload,
    )
    assert result.error_code == ErrorCode.HOLD_MISMATCH
    assert await count(session_factory, ReservationRequest) == 0


async def test_hold_cannot_back_two_requests(session_factory, restaurant):
    held, _ = await hold_and_request(session_factory, restaurant)
    result = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        request_payload(restaurant, held.slot_id),
    )
    assert result.error_code == ErrorCode.HOLD_MISMATCH


async def test_request_for_expired_hold(session_factory, restaurant):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        HoldSlotRequest(
            restaurant_id=restaurant.id,
            reservation_date=RESERVATION_DAY,
            reservation_time=EVENING,
            party_size=2,
        ),
    )
    await expire_hold(session_factory, held.data.slot_id)
    result = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        request_payload(restaurant, held.data.slot_id),
    )
    assert result.error_code == ErrorCode.HOLD_EXPIRED


async def test_confirm_with_expired_hold(session_factory, restaurant):
    held, created = await hold_and_request(session_factory, restaurant)
    await expire_hold(session_factory, held.slot_id)
    result = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        created.request_id,
        ConfirmReservationRequest(),
    )
    assert result.error_code == ErrorCode.HOLD_EXPIRED
    assert await count(session_factory, Reservation) == 0


async def test_failed_slot_update_rolls_back_confirmation(
    session_factory,
    restaurant,
    monkeypatch,
):
    held, created = await hold_and_request(session_factory, restaurant)

    async def lost_race(*args, **kwargs):
        return 0

    monkeypatch.setattr(slot_repository, 'reserve_held', lost_race)
    result = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        created.request_id,
        ConfirmReservationRequest(),
    )
    assert result.error_code == ErrorCode.SLOT_CONFLICT

    assert await count(session_factory, Reservation) == 0
    assert await count(session_factory, ReservationFinancialData) == 0
    assert await count(session_factory, ReservationTableHold) == 1
    slot = await load(session_factory, TableSlot, held.slot_id)
    assert slot.status == SlotStatus.HELD
    request = await load(
        session_factory,
        ReservationRequest,
        created.request_id,
    )
    assert request.status == RequestStatus.PENDING


async def test_reservation_number_collision(
    session_factory,
    restaurant,
    book,
    monkeypatch,
):
    first = await book(party_size=2)
    held, created = await hold_and_request(session_factory, restaurant)
    monkeypatch.setattr(
        reservation_coordinator,
        'generate_reservation_number',
        lambda reservation_date: first.reservation_number,
    )
    result = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        created.request_id,
        ConfirmReservationRequest(),
    )
    assert result.error_code == ErrorCode.RESERVATION_NUMBER_CONFLICT
    assert await count(session_factory, Reservation) == 1
    slot = await load(session_factory, TableSlot, held.slot_id)
    assert slot.status == SlotStatus.HELD


async def test_confirm_twice(session_factory, restaurant, book):
    booking = await book()
    result = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        booking.request_id,
        ConfirmReservationRequest(),
    )
    assert result.error_code == ErrorCode.INVALID_REQUEST_STATUS


async def test_cancelled_request_releases_hold(session_factory, restaurant):
    held, created = await hold_and_request(session_factory, restaurant)
    result = await ReservationCoordinator.update_request_status(
        session_factory,
        created.request_id,
        RequestStatusUpdate(
            new_status=RequestStatus.CANCELLED,
            reason='Гость передумал',
        ),
    )
    assert result.success
    assert result.data.previous_status == RequestStatus.PENDING
    assert result.data.released_slot_id == held.slot_id
    slot = await load(session_factory, TableSlot, held.slot_id)
    assert slot.status == SlotStatus.AVAILABLE
    assert await count(session_factory, ReservationTableHold) == 0


async def test_confirmed_request_status_is_final(
    session_factory,
    restaurant,
    book,
):
    booking = await book()
    result = await ReservationCoordinator.update_request_status(
        session_factory,
        booking.request_id,
        RequestStatusUpdate(
            new_status=RequestStatus.PAYMENT_FAILED,
            reason='Платёж отклонён',
        ),
    )
    assert result.error_code == ErrorCode.INVALID_TRANSITION


async def test_reassign_to_free_table(session_factory, restaurant, book):
    booking = await book(party_size=2)
    result = await ReservationCoordinator.reassign_table_reservation(
        session_factory,
        booking.reservation_id,
        ReassignTableRequest(
            new_table_id=restaurant.tables['T6'],
            reassigned_by='manager',
            reason='Гости попросили террасу',
        ),
    )
    assert result.success, result.detail
    assert result.data.previous_table_id == restaurant.tables['T2']
    assert result.data.new_slot_id == restaurant.slots[('T6', EVENING)]

    old_slot = await load(session_factory, TableSlot, booking.slot_id)
    assert old_slot.status == SlotStatus.AVAILABLE
    assert old_slot.reservation_id is None
    new_slot = await load(session_factory, TableSlot, result.data.new_slot_id)
    assert new_slot.status == SlotStatus.RESERVED
    assert new_slot.reservation_id == booking.reservation_id

    async with session_factory() as session:
        history = await session.scalar(select(ReservationModificationHistory))
    assert history.modification_type == ModificationType.TABLE_REASSIGNMENT
    assert history.previous_values['table_id'] == str(
        restaurant.tables['T2'],
    )
    assert history.new_values['table_id'] == str(restaurant.tables['T6'])


async def test_reassign_to_reserved_table(session_factory, restaurant, book):
    couple = await book(party_size=2)
    await book(party_size=3)
    result = await ReservationCoordinator.reassign_table_reservation(
        session_factory,
        couple.reservation_id,
        ReassignTableRequest(
            new_table_id=restaurant.tables['T4'],
            reassigned_by='manager',
        ),
    )
    assert result.error_code == ErrorCode.TABLE_ALREADY_RESERVED
    slot = await load(session_factory, TableSlot, couple.slot_id)
    assert slot.status == SlotStatus.RESERVED


async def test_reassign_respects_dwell_time(
    session_factory,
    restaurant,
    book,
):
    early = await book(party_size=3, start=EVENING)
    late = await book(party_size=2, start=LATE)
    assert early.table_id == restaurant.tables['T4']
    assert late.table_id == restaurant.tables['T2']

    result = await ReservationCoordinator.reassign_table_reservation(
        session_factory,
        late.reservation_id,
        ReassignTableRequest(
            new_table_id=restaurant.tables['T4'],
            reassigned_by='manager',
        ),
    )
    assert result.error_code == ErrorCode.DWELL_TIME_CONFLICT
    assert result.detail == (
        'Стол занят предыдущим бронированием до 20:00 '
        '(время пересадки: 30 мин)'
    )


async def test_reassign_to_new_window_creates_slot(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    result = await ReservationCoordinator.reassign_table_reservation(
        session_factory,
        booking.reservation_id,
        ReassignTableRequest(
            new_table_id=restaurant.tables['T4'],
            new_start_time=time(12),
            new_end_time=time(13, 30),
            reassigned_by='manager',
        ),
    )
    assert result.success, result.detail
    assert result.data.start_time == time(12)
    slot = await load(session_factory, TableSlot, result.data.new_slot_id)
    assert slot.status == SlotStatus.RESERVED
    assert slot.table_id == restaurant.tables['T4']
    assert slot.end_time == time(13, 30)


async def test_update_party_reprices_reservation(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=3)
    result = await ReservationCoordinator.update_table_reservation_details(
        session_factory,
        booking.reservation_id,
        ReservationDetailsUpdate(
            new_adult_count=3,
            new_child_count=1,
            updated_by='manager',
        ),
    )
    assert result.success, result.detail
    assert result.data.total_amount == Decimal('4025.00')
    assert result.data.service_charge == Decimal('350.00')
    assert result.data.tax_amount == Decimal('175.00')
    assert result.data.balance_due == Decimal('4025.00')
    assert result.data.table_id == restaurant.tables['T4']

    async with session_factory() as session:
        history = await session.scalar(select(ReservationModificationHistory))
    assert history.modification_type == ModificationType.DETAILS_UPDATE
    assert history.previous_values['adult_count'] == 3
    assert history.new_values['child_count'] == 1


async def test_reassign_to_smaller_table(session_factory, restaurant, book):
    booking = await book(party_size=6)
    assert booking.table_id == restaurant.tables['T6']
    result = await ReservationCoordinator.reassign_table_reservation(
        session_factory,
        booking.reservation_id,
        ReassignTableRequest(
            new_table_id=restaurant.tables['T2'],
            reassigned_by='manager',
        ),
    )
    assert result.error_code == ErrorCode.INSUFFICIENT_CAPACITY
    assert result.context['seating_capacity'] == 2
    assert result.context['party_size'] == 6

    slot = await load(session_factory, TableSlot, booking.slot_id)
    assert slot.status == SlotStatus.RESERVED
    target = await load(
        session_factory,
        TableSlot,
        restaurant.slots[('T2', EVENING)],
    )
    assert target.status == SlotStatus.AVAILABLE


@pytest.mark.parametrize(
    ('adults', 'children'),
    [(40, None), (2, 1)],
)
async def test_update_party_beyond_table_capacity(
    session_factory,
    restaurant,
    book,
    adults,
    children,
):
    booking = await book(party_size=2)
    result = await ReservationCoordinator.update_table_reservation_details(
        session_factory,
        booking.reservation_id,
        ReservationDetailsUpdate(
            new_adult_count=adults,
            new_child_count=children,
            updated_by='manager',
        ),
    )
    assert result.error_code == ErrorCode.INSUFFICIENT_CAPACITY
    assert result.context['seating_capacity'] == 2

    reservation = await load(
        session_factory,
        Reservation,
        booking.reservation_id,
    )
    assert reservation.adult_count == 2
    assert reservation.child_count == 0
    assert reservation.total_amount == Decimal('2300.00')


async def test_update_party_with_new_table(
    session_factory,
    restaurant,
    book,
):
    booking = await book(party_size=2)
    result = await ReservationCoordinator.update_table_reservation_details(
        session_factory,
        booking.reservation_id,
        ReservationDetailsUpdate(
            new_adult_count=5,
            new_table_id=restaurant.tables['T6'],
            updated_by='manager',
        ),
    )
    assert result.success, result.detail
    assert result.data.table_id == restaurant.tables['T6']
    assert result.data.adult_count == 5


async def test_update_section_moves_table(session_factory, restaurant, book):
    booking = await book(party_size=2)
    result = await ReservationCoordinator.update_table_reservation_details(
        session_factory,
        booking.reservation_id,
        ReservationDetailsUpdate(
            new_section_id=restaurant.terrace_id,
            updated_by='manager',
        ),
    )
    assert result.success, result.detail
    assert result.data.table_id == restaurant.tables['T6']
    assert result.data.slot_id == restaurant.slots[('T6', EVENING)]


async def test_update_party_without_meal_service(
    session_factory,
    restaurant,
):
    held = await HoldManager.find_and_hold_best_slot(
        session_factory,
        HoldSlotRequest(
            restaurant_id=restaurant.id,
            reservation_date=RESERVATION_DAY,
            reservation_time=EVENING,
            party_size=2,
        ),
    )
    payload = request_payload(restaurant, held.data.slot_id).model_copy(
        update={'meal_service_id': None},
    )
    created = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        payload,
    )
    confirmed = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        created.data.request_id,
        ConfirmReservationRequest(),
    )
    result = await ReservationCoordinator.update_table_reservation_details(
        session_factory,
        confirmed.data.reservation_id,
        ReservationDetailsUpdate(new_adult_count=4, updated_by='manager'),
    )
    assert result.error_code == ErrorCode.MEAL_SERVICE_NOT_FOUND
    reservation = await load(
        session_factory,
        Reservation,
        confirmed.data.reservation_id,
    )
    assert reservation.adult_count == 2
