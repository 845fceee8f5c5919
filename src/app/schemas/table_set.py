from datetime import date, datetime, time
from typing import Annotated, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.utils.enums import TableSetStatus


class MergeTablesRequest(BaseModel):
    """Объединение дополнительных столов с основным столом бронирования."""

    additional_table_ids: Annotated[list[UUID], Field(min_length=1)]
    merged_by: str


class TableSetActionRequest(BaseModel):
    """Подтверждение или расформирование объединения."""

    performed_by: str


class TableSetInfo(BaseModel):
    """Схема объединения столов для ответа."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reservation_id: UUID
    slot_date: date
    slot_start_time: time
    slot_end_time: time
    table_ids: list[str]
    slot_ids: list[str]
    primary_table_id: UUID
    status: TableSetStatus
    combined_capacity: int
    expires_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    dissolved_at: Optional[datetime] = None
    dissolved_by: Optional[str] = None


class TableSetDissolved(BaseModel):
    """Итог расформирования объединения."""

    table_set_id: UUID
    released_slot_ids: list[UUID]
