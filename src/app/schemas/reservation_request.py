from datetime import date, datetime, time
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.core.constants import SYSTEM_ACTOR
from app.utils.enums import (
    MealType,
    RequestCreatorType,
    RequestStatus,
    ReservationStatus,
    ReservationType,
)

Money = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]


class ReservationRequestCreate(BaseModel):
    """Схема для создания заявки на бронирование стола."""

    restaurant_id: UUID
    customer_id: UUID
    request_name: Annotated[str, Field(min_length=1, max_length=128)]
    contact_phone: Annotated[str, Field(min_length=5, max_length=32)]
    requested_date: date
    requested_time: time
    adult_count: Annotated[int, Field(gt=0, le=100)]
    child_count: Annotated[int, Field(ge=0, le=100)] = 0
    meal_type: MealType
    meal_service_id: Optional[UUID] = None
    estimated_total_amount: Money = Decimal('0')
    estimated_service_charge: Money = Decimal('0')
    estimated_tax_amount: Money = Decimal('0')
    estimated_discount_amount: Money = Decimal('0')
    special_requests: Optional[str] = None
    dietary_requirements: Optional[str] = None
    occasion: Optional[str] = None
    reservation_type: ReservationType = ReservationType.TABLE_ONLY
    requires_advance_payment: Optional[bool] = None
    promo_code_id: Optional[UUID] = None
    held_slot_id: UUID
    is_table_flexible: bool = True
    is_section_flexible: bool = True
    is_time_flexible: bool = False
    created_by: RequestCreatorType = RequestCreatorType.CUSTOMER

    @field_validator(
        'special_requests',
        'dietary_requirements',
        'occasion',
        mode='before',
    )
    @classmethod
    def normalize_text(cls, value: Optional[str]) -> Optional[str]:
        """Очищает текстовые поля от лишних пробелов."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValueError('Поле должно быть строкой')
        cleaned = value.strip()
        return cleaned or None


class ReservationRequestCreated(BaseModel):
    """Созданная заявка."""

    request_id: UUID
    status: RequestStatus
    hold_id: UUID
    hold_expires_at: datetime


class ConfirmReservationRequest(BaseModel):
    """Параметры подтверждения заявки."""

    advance_payment_amount: Money = Decimal('0')
    confirmed_by: str = SYSTEM_ACTOR
    seat_immediately: bool = False


class ConfirmedReservation(BaseModel):
    """Подтверждённое бронирование."""

    reservation_id: UUID
    reservation_number: str
    status: ReservationStatus
    table_id: UUID
    slot_id: UUID
    balance_due: Decimal
    is_paid: bool


class RequestStatusUpdate(BaseModel):
    """Смена статуса заявки вне подтверждения."""

    new_status: RequestStatus
    reason: Annotated[str, Field(min_length=1)]
    changed_by: str = SYSTEM_ACTOR


class RequestStatusChanged(BaseModel):
    """Итог смены статуса заявки."""

    request_id: UUID
    previous_status: RequestStatus
    new_status: RequestStatus
    released_slot_id: Optional[UUID] = None
