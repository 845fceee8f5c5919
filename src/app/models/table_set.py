import uuid
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.utils.enums import TableSetStatus


class TableSet(Base):
    """Объединение нескольких столов под одно бронирование.

    Идентификаторы столов и слотов хранятся как JSON-списки строк UUID,
    original_statuses хранит статусы слотов до объединения.
    """

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservation.id', ondelete='CASCADE'),
        nullable=False,
    )
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    slot_start_time: Mapped[time] = mapped_column(Time, nullable=False)
    slot_end_time: Mapped[time] = mapped_column(Time, nullable=False)
    table_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    slot_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    primary_table_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restauranttable.id', ondelete='RESTRICT'),
        nullable=False,
    )
    original_statuses: Mapped[dict[str, str]] = mapped_column(
        JSON,
        nullable=False,
    )
    status: Mapped[TableSetStatus] = mapped_column(
        Enum(TableSetStatus, name='table_set_status'),
        nullable=False,
        default=TableSetStatus.PENDING_MERGE,
    )
    combined_capacity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    confirmed_by: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    dissolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    dissolved_by: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    __table_args__ = (
        Index('ix_table_set_reservation_status', 'reservation_id', 'status'),
        Index('ix_table_set_expires_at', 'expires_at'),
    )

    @property
    def slot_uuids(self) -> list[uuid.UUID]:
        """Идентификаторы слотов объединения."""
        return [uuid.UUID(value) for value in self.slot_ids]

    @property
    def table_uuids(self) -> list[uuid.UUID]:
        """Идентификаторы столов объединения."""
        return [uuid.UUID(value) for value in self.table_ids]
