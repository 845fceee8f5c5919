from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from app.schemas.slot import SlotInfo


class DwellConflict(BaseModel):
    """Бронирование, занимающее стол с учётом времени пересадки."""

    reservation_id: UUID
    reservation_time: datetime
    effective_end_time: datetime


class DwellCheck(BaseModel):
    """Результат проверки времени пересадки для стола."""

    is_available: bool
    dwell_time_minutes: int
    conflicts: list[DwellConflict] = []


class PeriodAvailability(BaseModel):
    """Доступность стола на период для объединения."""

    table_id: UUID
    is_available: bool
    available_slots: list[SlotInfo] = []
    blocking_slots: list[SlotInfo] = []
