from datetime import date, datetime, time
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.utils.enums import SlotStatus
from app.utils.timeutils import parse_time

WEEKDAYS = range(7)


class HoldSlotRequest(BaseModel):
    """Запрос на поиск и удержание слота."""

    restaurant_id: UUID
    reservation_date: date
    reservation_time: time
    party_size: Annotated[int, Field(ge=1, le=100)]
    preferred_section_id: Optional[UUID] = None


class HeldSlot(BaseModel):
    """Удержанный слот."""

    slot_id: UUID
    table_id: UUID
    section_id: Optional[UUID] = None
    hold_expires_at: datetime


class SlotInfo(BaseModel):
    """Схема слота для ответа."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    table_id: UUID
    slot_date: date
    start_time: time
    end_time: time
    status: SlotStatus
    hold_expires_at: Optional[datetime] = None
    reservation_id: Optional[UUID] = None


class ExtendHoldRequest(BaseModel):
    """Продление удержания."""

    extra_minutes: Annotated[int, Field(ge=1, le=60)]


class HoldStatistics(BaseModel):
    """Статистика удержаний."""

    total_holds: int
    expired_holds: int
    active_holds: int
    missing_expiry_holds: int = 0


class SlotGenerationRequest(BaseModel):
    """Параметры генерации слотов на период вперёд."""

    days_ahead: Annotated[int, Field(ge=1, le=366)]
    start_time: str
    end_time: str
    slot_duration_minutes: Annotated[int, Field(ge=15, le=720)]
    turnover_buffer_minutes: Annotated[int, Field(ge=0, le=240)] = 0
    enabled_days: list[int] = Field(default_factory=lambda: list(WEEKDAYS))
    target_table_ids: Optional[list[UUID]] = None
    start_date: Optional[date] = None

    @model_validator(mode='after')
    def validate_window(self) -> 'SlotGenerationRequest':
        """Проверяет формат времени, интервал и дни недели."""
        start = parse_time(self.start_time)
        end = parse_time(self.end_time)
        if start >= end:
            raise ValueError(
                'Время начала должно быть меньше времени окончания',
            )
        if any(day not in WEEKDAYS for day in self.enabled_days):
            raise ValueError('Дни недели задаются числами от 0 до 6')
        return self


class SlotGenerationResult(BaseModel):
    """Итог генерации слотов."""

    created: int
    skipped: int
    tables: int
    days: int


class AvailabilityWindow(BaseModel):
    """Окно для блокировки или разблокировки слотов."""

    slot_date: date
    start_time: time
    end_time: time
    section_id: Optional[UUID] = None

    @model_validator(mode='after')
    def validate_interval(self) -> 'AvailabilityWindow':
        """Проверяет корректность временного интервала."""
        if self.start_time >= self.end_time:
            raise ValueError(
                'Время начала должно быть меньше времени окончания',
            )
        return self


class AvailabilityChange(BaseModel):
    """Итог блокировки или разблокировки."""

    affected_slots: int
