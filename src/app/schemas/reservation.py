from datetime import time
from decimal import Decimal
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ReassignTableRequest(BaseModel):
    """Параметры переноса бронирования на другой стол или время."""

    new_table_id: UUID
    new_section_id: Optional[UUID] = None
    new_slot_id: Optional[UUID] = None
    new_start_time: Optional[time] = None
    new_end_time: Optional[time] = None
    reassigned_by: str
    reason: Optional[str] = None

    @model_validator(mode='after')
    def validate_interval(self) -> 'ReassignTableRequest':
        """Проверяет, что время задано парой и интервал корректен."""
        if (self.new_start_time is None) != (self.new_end_time is None):
            raise ValueError(
                'Время начала и окончания указываются только вместе',
            )
        if (
            self.new_start_time is not None
            and self.new_start_time >= self.new_end_time
        ):
            raise ValueError(
                'Время начала должно быть меньше времени окончания',
            )
        return self


class TableReassigned(BaseModel):
    """Итог переноса бронирования."""

    reservation_id: UUID
    previous_table_id: Optional[UUID] = None
    new_table_id: UUID
    new_slot_id: UUID
    start_time: time
    end_time: time
    dissolved_table_set_id: Optional[UUID] = None


class ReservationDetailsUpdate(BaseModel):
    """Изменение состава гостей и/или стола."""

    new_adult_count: Optional[Annotated[int, Field(gt=0, le=100)]] = None
    new_child_count: Optional[Annotated[int, Field(ge=0, le=100)]] = None
    new_section_id: Optional[UUID] = None
    new_table_id: Optional[UUID] = None
    updated_by: str
    update_reason: Optional[str] = None


class ReservationDetailsUpdated(BaseModel):
    """Итог изменения бронирования."""

    reservation_id: UUID
    adult_count: int
    child_count: int
    total_amount: Decimal
    service_charge: Decimal
    tax_amount: Decimal
    balance_due: Decimal
    table_id: Optional[UUID] = None
    slot_id: Optional[UUID] = None
