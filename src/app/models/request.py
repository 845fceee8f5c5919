import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base
from app.utils.enums import (
    MealType,
    RequestCreatorType,
    RequestStatus,
    ReservationType,
)

if TYPE_CHECKING:
    from app.models import RequestPayment, TableSlot


class ReservationRequest(Base):
    """Таблица заявок на бронирование (ещё не подтверждённых)."""

    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        index=True,
        nullable=False,
    )
    request_name: Mapped[str] = mapped_column(String(128), nullable=False)
    contact_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    requested_date: Mapped[date] = mapped_column(Date, nullable=False)
    requested_time: Mapped[time] = mapped_column(Time, nullable=False)
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
    meal_service_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('mealservice.id', ondelete='SET NULL'),
        nullable=True,
    )
    estimated_total_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    estimated_service_charge: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    estimated_tax_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    estimated_discount_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
        default=Decimal('0'),
    )
    promo_code_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    special_requests: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    dietary_requirements: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    occasion: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    reservation_type: Mapped[ReservationType] = mapped_column(
        Enum(ReservationType, name='reservation_type'),
        nullable=False,
        default=ReservationType.TABLE_ONLY,
    )
    requires_advance_payment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name='request_status'),
        nullable=False,
        default=RequestStatus.PENDING,
    )
    created_by: Mapped[RequestCreatorType] = mapped_column(
        Enum(RequestCreatorType, name='request_creator_type'),
        nullable=False,
        default=RequestCreatorType.CUSTOMER,
    )

    table_details: Mapped[Optional['RequestTableDetails']] = relationship(
        back_populates='request',
        uselist=False,
        cascade='all, delete-orphan',
        lazy='selectin',
    )
    payments: Mapped[List['RequestPayment']] = relationship(
        back_populates='request',
        lazy='selectin',
    )

    __table_args__ = (
        CheckConstraint('adult_count > 0', name='ck_request_adults'),
        CheckConstraint('child_count >= 0', name='ck_request_children'),
    )

    @property
    def party_size(self) -> int:
        """Общее число гостей."""
        return self.adult_count + self.child_count


class RequestTableDetails(Base):
    """Пожелания по столу для заявки на бронирование."""

    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservationrequest.id', ondelete='CASCADE'),
        unique=True,
        nullable=False,
    )
    preferred_section_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('restaurantsection.id', ondelete='SET NULL'),
        nullable=True,
    )
    preferred_table_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('restauranttable.id', ondelete='SET NULL'),
        nullable=True,
    )
    requested_start_time: Mapped[time] = mapped_column(Time, nullable=False)
    requested_end_time: Mapped[time] = mapped_column(Time, nullable=False)
    is_table_flexible: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    is_section_flexible: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    is_time_flexible: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    request: Mapped['ReservationRequest'] = relationship(
        back_populates='table_details',
    )


class ReservationTableHold(Base):
    """Связь заявки с удерживаемым слотом и собственным сроком удержания."""

    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservationrequest.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    slot_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('tableslot.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    hold_expires_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )

    slot: Mapped['TableSlot'] = relationship(lazy='selectin')


class RequestStatusHistory(Base):
    """Журнал смены статусов заявки (только добавление)."""

    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservationrequest.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    previous_status: Mapped[Optional[RequestStatus]] = mapped_column(
        Enum(RequestStatus, name='request_status'),
        nullable=True,
    )
    new_status: Mapped[RequestStatus] = mapped_column(
        Enum(RequestStatus, name='request_status'),
        nullable=False,
    )
    change_reason: Mapped[str] = mapped_column(Text, nullable=False)
    changed_by: Mapped[str] = mapped_column(String(64), nullable=False)
