from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.utils.enums import CancellationReasonCategory, CancellationWindowType


class CancelReservationRequest(BaseModel):
    """Запрос клиента на отмену бронирования."""

    customer_id: UUID
    reason: Annotated[str, Field(min_length=1, max_length=1000)]
    reason_category: CancellationReasonCategory = (
        CancellationReasonCategory.CHANGE_OF_PLANS
    )
    additional_notes: Optional[str] = None
    processed_by: str = 'CUSTOMER'
    reference_time: Optional[datetime] = None


class RefundCalculation(BaseModel):
    """Расчёт возврата по политике ресторана."""

    window_type: CancellationWindowType
    refund_percentage: int
    refund_amount: Decimal
    minutes_until_reservation: int
    policy_id: UUID


class SlotRelease(BaseModel):
    """Итог освобождения слотов."""

    released_slot_ids: list[UUID] = []
    table_names: list[str] = []
    was_merged: bool = False
    table_count: int = 0
    table_set_id: Optional[UUID] = None


class CancellationResult(BaseModel):
    """Итог отмены бронирования."""

    cancellation_id: UUID
    cancellation_number: str
    refund_amount: Decimal
    refund_percentage: int
    window_type: CancellationWindowType
    slots_released: int
    tables_released: list[str]
    was_merged: bool
