"""Фикстуры тестов: SQLite-база на тест и ресторан с тремя столами."""

import os

for name, value in {
    'POSTGRES_DB': 'booking',
    'POSTGRES_USER': 'booking',
    'POSTGRES_PASSWORD': 'booking',
    'POSTGRES_PORT': '5432',
    'POSTGRES_HOST': 'localhost',
    'REDIS_HOST': 'localhost',
    'REDIS_PORT': '6379',
    'REDIS_DB': '0',
    'RABBITMQ_DEFAULT_USER': 'guest',
    'RABBITMQ_DEFAULT_PASS': 'guest',
    'RABBITMQ_DEFAULT_VHOST': 'booking',
    'RABBITMQ_DEFAULT_HOST': 'localhost',
    'RABBITMQ_DEFAULT_PORT': '5672',
}.items():
    os.environ.setdefault(name, value)

from datetime import time, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Optional  # noqa: E402
from uuid import UUID, uuid4  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import update  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    async_sessionmaker,
    create_async_engine,
)

from app.core.db import Base  # noqa: E402
from app.models import (  # noqa: E402
    MealService,
    RefundPolicy,
    ReservationConfiguration,
    Restaurant,
    RestaurantSection,
    RestaurantTable,
    TableSlot,
)
from app.schemas.reservation_request import (  # noqa: E402
    ConfirmReservationRequest,
    ReservationRequestCreate,
)
from app.schemas.slot import HoldSlotRequest  # noqa: E402
from app.services.hold_manager import HoldManager  # noqa: E402
from app.services.reservation_coordinator import (  # noqa: E402
    ReservationCoordinator,
)
from app.utils.enums import MealType, SlotStatus  # noqa: E402
from app.utils.timeutils import utcnow  # noqa: E402

RESERVATION_DAY = utcnow().date() + timedelta(days=7)
EVENING = time(18, 0)
EVENING_END = time(19, 30)
LATE = time(19, 45)
LATE_END = time(21, 15)
WINDOWS = ((EVENING, EVENING_END), (LATE, LATE_END))
DWELL_MINUTES = 30


@pytest.fixture
async def session_factory(tmp_path):
    """Фабрика сессий поверх отдельного файла SQLite."""
    engine = create_async_engine(
        f'sqlite+aiosqlite:///{tmp_path / "booking.db"}',
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def restaurant(session_factory):
    """Ресторан: два зала, столы на 2, 4 и 6 мест, по два слота на столе.

    Время пересадки 30 минут, удержание 10 минут, слот 90 минут.
    Политика возврата: полный возврат за сутки, 50% за два часа.
    """
    async with session_factory() as session:
        restaurant = Restaurant(name='Тестовый ресторан')
        session.add(restaurant)
        await session.flush()

        main_hall = RestaurantSection(
            restaurant_id=restaurant.id,
            section_name='Основной зал',
            display_order=1,
        )
        terrace = RestaurantSection(
            restaurant_id=restaurant.id,
            section_name='Терраса',
            display_order=2,
        )
        session.add_all([main_hall, terrace])
        await session.flush()

        tables = {
            'T2': RestaurantTable(
                restaurant_id=restaurant.id,
                section_id=main_hall.id,
                table_name='T2',
                seating_capacity=2,
            ),
            'T4': RestaurantTable(
                restaurant_id=restaurant.id,
                section_id=main_hall.id,
                table_name='T4',
                seating_capacity=4,
            ),
            'T6': RestaurantTable(
                restaurant_id=restaurant.id,
                section_id=terrace.id,
                table_name='T6',
                seating_capacity=6,
            ),
        }
        session.add_all(tables.values())
        await session.flush()

        slots = {}
        for name, table in tables.items():
            for start, end in WINDOWS:
                slot = TableSlot(
                    restaurant_id=restaurant.id,
                    table_id=table.id,
                    slot_date=RESERVATION_DAY,
                    start_time=start,
                    end_time=end,
                    status=SlotStatus.AVAILABLE,
                )
                session.add(slot)
                slots[(name, start)] = slot

        meal_service = MealService(
            restaurant_id=restaurant.id,
            meal_type=MealType.DINNER,
            adult_net_price=Decimal('1000.00'),
            child_net_price=Decimal('500.00'),
            service_charge_percentage=Decimal('10'),
            tax_percentage=Decimal('5'),
        )
        session.add_all(
            [
                meal_service,
                ReservationConfiguration(
                    restaurant_id=restaurant.id,
                    default_slot_minutes=90,
                    turnover_buffer_minutes=15,
                    hold_minutes=10,
                    default_dwell_minutes=DWELL_MINUTES,
                ),
                RefundPolicy(
                    restaurant_id=restaurant.id,
                    full_refund_before_minutes=1440,
                    partial_refund_before_minutes=120,
                    partial_refund_percentage=50,
                ),
            ],
        )
        await session.commit()

        return SimpleNamespace(
            id=restaurant.id,
            main_hall_id=main_hall.id,
            terrace_id=terrace.id,
            tables={name: table.id for name, table in tables.items()},
            slots={key: slot.id for key, slot in slots.items()},
            meal_service_id=meal_service.id,
        )


def request_payload(
    restaurant: SimpleNamespace,
    held_slot_id: UUID,
    adults: int = 2,
    children: int = 0,
    start: time = EVENING,
    customer_id: Optional[UUID] = None,
) -> ReservationRequestCreate:
    """Заявка по удержанию со стоимостью по ценам услуги питания."""
    base = Decimal('1000.00') * adults + Decimal('500.00') * children
    service_charge = base * Decimal('0.10')
    tax = base * Decimal('0.05')
    return ReservationRequestCreate(
        restaurant_id=restaurant.id,
        customer_id=customer_id or uuid4(),
        request_name='Иван Петров',
        contact_phone='+79990001122',
        requested_date=RESERVATION_DAY,
        requested_time=start,
        adult_count=adults,
        child_count=children,
        meal_type=MealType.DINNER,
        meal_service_id=restaurant.meal_service_id,
        estimated_total_amount=(base + service_charge + tax).quantize(
            Decimal('0.01'),
        ),
        estimated_service_charge=service_charge.quantize(Decimal('0.01')),
        estimated_tax_amount=tax.quantize(Decimal('0.01')),
        held_slot_id=held_slot_id,
    )


@pytest.fixture
def book(session_factory, restaurant):
    """Полный путь: удержание, заявка и подтверждение бронирования."""

    async def _book(
        party_size: int = 2,
        start: time = EVENING,
        customer_id: Optional[UUID] = None,
        preferred_section_id: Optional[UUID] = None,
        advance: Decimal = Decimal('0'),
    ) -> SimpleNamespace:
        held = await HoldManager.find_and_hold_best_slot(
            session_factory,
            HoldSlotRequest(
                restaurant_id=restaurant.id,
                reservation_date=RESERVATION_DAY,
                reservation_time=start,
                party_size=party_size,
                preferred_section_id=preferred_section_id,
            ),
        )
        assert held.success, held.detail
        customer_id = customer_id or uuid4()
        coordinator = ReservationCoordinator
        created = await coordinator.create_table_reservation_request(
            session_factory,
            request_payload(
                restaurant,
                held.data.slot_id,
                adults=party_size,
                start=start,
                customer_id=customer_id,
            ),
        )
        assert created.success, created.detail
        confirmed = await ReservationCoordinator.confirm_table_reservation(
            session_factory,
            created.data.request_id,
            ConfirmReservationRequest(advance_payment_amount=advance),
        )
        assert confirmed.success, confirmed.detail
        return SimpleNamespace(
            customer_id=customer_id,
            request_id=created.data.request_id,
            **confirmed.data.model_dump(),
        )

    return _book


async def expire_hold(session_factory, slot_id: UUID, minutes: int = 1):
    """Сдвигает срок удержания слота в прошлое."""
    async with session_factory() as session:
        await session.execute(
            update(TableSlot)
            .where(TableSlot.id == slot_id)
            .values(hold_expires_at=utcnow() - timedelta(minutes=minutes)),
        )
        await session.commit()


async def load(session_factory, model, obj_id: UUID):
    """Читает свежую копию записи отдельной сессией."""
    async with session_factory() as session:
        return await session.get(model, obj_id)
