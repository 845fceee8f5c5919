import uuid
from datetime import date, datetime, time
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base
from app.utils.enums import SlotStatus

if TYPE_CHECKING:
    from app.models import RestaurantTable


class TableSlot(Base):
    """Таблица слотов доступности столов.

    Слот является единственным источником истины о том, кто владеет
    столом в заданном окне. Все изменения статуса выполняются условным
    UPDATE с проверкой ожидаемого текущего статуса.
    """

    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    table_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restauranttable.id', ondelete='CASCADE'),
        nullable=False,
    )
    slot_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    status: Mapped[SlotStatus] = mapped_column(
        Enum(SlotStatus, name='slot_status'),
        nullable=False,
        default=SlotStatus.AVAILABLE,
    )
    hold_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    reservation_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('reservation.id', ondelete='SET NULL'),
        nullable=True,
        index=True,
    )

    table: Mapped['RestaurantTable'] = relationship(lazy='selectin')

    __table_args__ = (
        UniqueConstraint(
            'table_id',
            'slot_date',
            'start_time',
            'end_time',
            name='uq_slot_table_window',
        ),
        CheckConstraint('start_time < end_time', name='ck_slot_interval'),
        Index('ix_slot_table_date', 'table_id', 'slot_date'),
        Index('ix_slot_status_hold', 'status', 'hold_expires_at'),
    )
