import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base
from app.utils.enums import (
    MealType,
    ModificationType,
    RequestCreatorType,
    ReservationStatus,
    ReservationType,
)

if TYPE_CHECKING:
    from app.models import RestaurantTable, TableSlot


class Reservation(Base):
    """Таблица подтверждённых бронирований."""

    reservation_number: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        index=True,
        nullable=False,
    )
    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservationrequest.id', ondelete='RESTRICT'),
        unique=True,
        nullable=False,
    )
    meal_service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('mealservice.id', ondelete='SET NULL'),
        nullable=True,
    )
    reservation_date: Mapped[date] = mapped_column(Date, nullable=False)
    reservation_time: Mapped[time] = mapped_column(Time, nullable=False)
    adult_count: Mapped[int] = mapped_column(Integer, nullable=False)
    child_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    meal_type: Mapped[MealType] = mapped_column(
        Enum(MealType, name='meal_type'),
        nullable=False,
    )
    reservation_type: Mapped[ReservationType] = mapped_column(
        Enum(ReservationType, name='reservation_type'),
        nullable=False,
        default=ReservationType.TABLE_ONLY,
    )
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    service_charge: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    advance_payment_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    status: Mapped[ReservationStatus] = mapped_column(
        Enum(ReservationStatus, name='reservation_status'),
        nullable=False,
        default=ReservationStatus.CONFIRMED,
    )
    special_requests: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    created_by: Mapped[RequestCreatorType] = mapped_column(
        Enum(RequestCreatorType, name='request_creator_type'),
        nullable=False,
    )
    last_modified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    last_modified_by: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    table_assignment: Mapped[Optional['TableAssignment']] = relationship(
        back_populates='reservation',
        uselist=False,
        lazy='selectin',
    )
    financial_data: Mapped[Optional['ReservationFinancialData']] = (
        relationship(uselist=False, lazy='selectin')
    )

    __table_args__ = (
        UniqueConstraint(
            'reservation_number',
            name='uq_reservation_number',
        ),
    )

    @property
    def party_size(self) -> int:
        """Общее число гостей."""
        return self.adult_count + self.child_count


class ReservationFinancialData(Base):
    """Финансовая разбивка бронирования."""

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservation.id', ondelete='CASCADE'),
        unique=True,
        nullable=False,
    )
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    service_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    tax_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    total_before_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    total_after_discount: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    advance_payment: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    balance_due: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False)


class TableAssignment(Base):
    """Назначение стола и слота подтверждённому бронированию."""

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservation.id', ondelete='CASCADE'),
        unique=True,
        nullable=False,
    )
    assigned_table_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('restauranttable.id', ondelete='SET NULL'),
        index=True,
        nullable=True,
    )
    assigned_section_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('restaurantsection.id', ondelete='SET NULL'),
        nullable=True,
    )
    slot_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('tableslot.id', ondelete='SET NULL'),
        nullable=True,
    )
    table_start_time: Mapped[Optional[time]] = mapped_column(
        Time,
        nullable=True,
    )
    table_end_time: Mapped[Optional[time]] = mapped_column(
        Time,
        nullable=True,
    )

    reservation: Mapped['Reservation'] = relationship(
        back_populates='table_assignment',
    )
    assigned_table: Mapped[Optional['RestaurantTable']] = relationship(
        lazy='selectin',
    )
    slot: Mapped[Optional['TableSlot']] = relationship(lazy='selectin')


class ReservationModificationHistory(Base):
    """Журнал изменений подтверждённого бронирования."""

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservation.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    modification_type: Mapped[ModificationType] = mapped_column(
        Enum(ModificationType, name='modification_type'),
        nullable=False,
    )
    previous_values: Mapped[dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
    )
    new_values: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    modified_by: Mapped[str] = mapped_column(String(64), nullable=False)
    modified_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
