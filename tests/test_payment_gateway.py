"""Тесты проверки оплаты через платёжный шлюз."""

from decimal import Decimal

import httpx
import pytest
from sqlalchemy import select

from app.models import (
    RequestPayment,
    Reservation,
    ReservationFinancialData,
    TableSlot,
)
from app.schemas.slot import HoldSlotRequest
from app.services.hold_manager import HoldManager
from app.services.payment_gateway import GatewayStatus, PaymentGatewayClient
from app.services.reservation_coordinator import ReservationCoordinator
from app.utils.enums import PaymentStatus, SlotStatus
from conftest import (
    EVENING,
    RESERVATION_DAY,
    expire_hold,
    load,
    request_payload,
)

STATUS_URL = 'https://gateway.test/transactions/status'


def gateway_for(handler):
    return PaymentGatewayClient(
        timeout=1,
        transport=httpx.MockTransport(handler),
    )


def respond_with(status_code='IPG_S_1000', amount='2300.00'):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params['merchantTxId'].startswith('TX-')
        return httpx.Response(
            200,
            json={'statusCode': status_code, 'amount': amount},
        )

    return handler


async def test_successful_status():
    gateway = gateway_for(respond_with())
    status = await gateway.get_transaction_status('TX-1', STATUS_URL)
    assert status == GatewayStatus(
        success=True,
        status_code='IPG_S_1000',
        amount='2300.00',
    )
    assert PaymentGatewayClient.is_successful(status)


async def test_declined_status():
    gateway = gateway_for(respond_with(status_code='IPG_F_2001'))
    status = await gateway.get_transaction_status('TX-1', STATUS_URL)
    assert status.success
    assert not PaymentGatewayClient.is_successful(status)


@pytest.mark.parametrize(
    'handler',
    [
        lambda request: httpx.Response(503, text='unavailable'),
        lambda request: httpx.Response(200, text='<html></html>'),
        lambda request: httpx.Response(200, json=['IPG_S_1000']),
    ],
)
async def test_failed_status_request(handler):
    gateway = gateway_for(handler)
    status = await gateway.get_transaction_status('TX-1', STATUS_URL)
    assert not status.success
    assert status.error
    assert not PaymentGatewayClient.is_successful(status)


async def test_network_error():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    status = await gateway_for(handler).get_transaction_status(
        'TX-1',
        STATUS_URL,
    )
    assert not status.success
    assert 'connection refused' in status.error


async def create_paid_request(session_factory, restaurant, reference):
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
    async with session_factory() as session:
        session.add(
            RequestPayment(
                request_id=created.data.request_id,
                amount=Decimal('2300.00'),
                transaction_reference=reference,
                payment_status_url=STATUS_URL,
            ),
        )
        await session.commit()
    return held.data.slot_id, created.data.request_id


async def test_paid_request_is_confirmed(session_factory, restaurant):
    slot_id, request_id = await create_paid_request(
        session_factory,
        restaurant,
        'TX-100',
    )
    result = await ReservationCoordinator.verify_and_confirm_paid_requests(
        session_factory,
        gateway_for(respond_with()),
        minutes_old=0,
    )
    assert result.success, result.detail
    assert result.data.checked == 1
    assert result.data.confirmed == 1
    verification = result.data.results[0]
    assert verification.verified
    assert verification.reservation_number.startswith('RT-')

    async with session_factory() as session:
        payment = await session.scalar(select(RequestPayment))
        reservation = await session.scalar(
            select(Reservation).where(Reservation.request_id == request_id),
        )
        financial = await session.scalar(
            select(ReservationFinancialData).where(
                ReservationFinancialData.reservation_id == reservation.id,
            ),
        )
    assert payment.payment_status == PaymentStatus.PAID
    assert payment.paid_at is not None
    assert reservation.advance_payment_amount == Decimal('2300.00')
    assert financial.is_paid
    assert financial.balance_due == Decimal('0')
    slot = await load(session_factory, TableSlot, slot_id)
    assert slot.status == SlotStatus.RESERVED


async def test_unpaid_request_stays_pending(session_factory, restaurant):
    slot_id, request_id = await create_paid_request(
        session_factory,
        restaurant,
        'TX-200',
    )
    result = await ReservationCoordinator.verify_and_confirm_paid_requests(
        session_factory,
        gateway_for(respond_with(status_code='IPG_F_2001')),
        minutes_old=0,
    )
    assert result.data.checked == 1
    assert result.data.confirmed == 0
    assert result.data.results[0].status_code == 'IPG_F_2001'

    async with session_factory() as session:
        payment = await session.scalar(select(RequestPayment))
    assert payment.payment_status == PaymentStatus.PENDING
    slot = await load(session_factory, TableSlot, slot_id)
    assert slot.status == SlotStatus.HELD


@pytest.mark.parametrize('swept', [False, True])
async def test_paid_request_with_expired_hold_is_confirmed(
    session_factory,
    restaurant,
    swept,
):
    slot_id, request_id = await create_paid_request(
        session_factory,
        restaurant,
        'TX-300',
    )
    await expire_hold(session_factory, slot_id, minutes=20)
    if swept:
        released = await HoldManager.release_expired_holds(session_factory)
        assert released.data.records_removed == 1

    result = await ReservationCoordinator.verify_and_confirm_paid_requests(
        session_factory,
        gateway_for(respond_with()),
        minutes_old=0,
    )
    assert result.success, result.detail
    assert result.data.confirmed == 1, result.data.results[0].error

    slot = await load(session_factory, TableSlot, slot_id)
    assert slot.status == SlotStatus.RESERVED
    assert slot.hold_expires_at is None
    async with session_factory() as session:
        reservation = await session.scalar(
            select(Reservation).where(Reservation.request_id == request_id),
        )
    assert slot.reservation_id == reservation.id


async def test_paid_request_slot_taken_by_another_party(
    session_factory,
    restaurant,
):
    slot_id, request_id = await create_paid_request(
        session_factory,
        restaurant,
        'TX-400',
    )
    await expire_hold(session_factory, slot_id, minutes=20)
    await HoldManager.release_expired_holds(session_factory)
    other = await HoldManager.find_and_hold_best_slot(
        session_factory,
        HoldSlotRequest(
            restaurant_id=restaurant.id,
            reservation_date=RESERVATION_DAY,
            reservation_time=EVENING,
            party_size=2,
        ),
    )
    assert other.data.slot_id == slot_id

    result = await ReservationCoordinator.verify_and_confirm_paid_requests(
        session_factory,
        gateway_for(respond_with()),
        minutes_old=0,
    )
    assert result.data.confirmed == 0
    assert 'занят' in result.data.results[0].error

    async with session_factory() as session:
        payment = await session.scalar(select(RequestPayment))
        reservation = await session.scalar(
            select(Reservation).where(Reservation.request_id == request_id),
        )
    assert payment.payment_status == PaymentStatus.PENDING
    assert reservation is None
    slot = await load(session_factory, TableSlot, slot_id)
    assert slot.status == SlotStatus.HELD
