import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


class ReservationConfiguration(Base):
    """Настройки бронирования столов ресторана.

    Строка с restaurant_id = NULL задаёт значения платформы по умолчанию.
    """

    restaurant_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        unique=True,
        nullable=True,
    )
    fee_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    fee_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    requires_advance_payment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    advance_payment_type: Mapped[Optional[str]] = mapped_column(
        String(32),
        nullable=True,
    )
    advance_payment_value: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2),
        nullable=True,
    )
    default_slot_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=90,
    )
    turnover_buffer_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=15,
    )
    enable_temporary_hold: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    hold_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=10,
    )
    allow_flexible_assignment: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )
    default_dwell_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=90,
    )
