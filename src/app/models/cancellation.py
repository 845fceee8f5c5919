import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base
from app.utils.enums import (
    CancellationReasonCategory,
    CancellationStatus,
    CancellationWindowType,
    RefundReason,
    RefundStatus,
)


class RefundPolicy(Base):
    """Политика возврата средств ресторана при отмене."""

    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    full_refund_before_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    partial_refund_before_minutes: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    partial_refund_percentage: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint(
            'partial_refund_percentage IS NULL OR '
            '(partial_refund_percentage >= 0 '
            'AND partial_refund_percentage <= 100)',
            name='ck_refund_policy_percentage',
        ),
    )


class CancellationRequest(Base):
    """Заявка на отмену бронирования и её итог."""

    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservation.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    restaurant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('restaurant.id', ondelete='CASCADE'),
        nullable=False,
    )
    requested_by: Mapped[uuid.UUID] = mapped_column(nullable=False)
    status: Mapped[CancellationStatus] = mapped_column(
        Enum(CancellationStatus, name='cancellation_status'),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    reason_category: Mapped[CancellationReasonCategory] = mapped_column(
        Enum(CancellationReasonCategory, name='cancellation_reason_category'),
        nullable=False,
    )
    additional_notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    processed_by: Mapped[str] = mapped_column(String(64), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    window_type: Mapped[CancellationWindowType] = mapped_column(
        Enum(CancellationWindowType, name='cancellation_window_type'),
        nullable=False,
    )
    refund_amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )
    refund_percentage: Mapped[int] = mapped_column(Integer, nullable=False)
    table_set_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey('tableset.id', ondelete='SET NULL'),
        nullable=True,
    )
    released_slot_ids: Mapped[list[str]] = mapped_column(
        JSON,
        nullable=False,
    )
    slot_release_completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )


class RefundTransaction(Base):
    """Транзакция возврата, созданная по отмене."""

    cancellation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('cancellationrequest.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    reservation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservation.id', ondelete='CASCADE'),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    reason: Mapped[RefundReason] = mapped_column(
        Enum(RefundReason, name='refund_reason'),
        nullable=False,
    )
    status: Mapped[RefundStatus] = mapped_column(
        Enum(RefundStatus, name='refund_status'),
        nullable=False,
        default=RefundStatus.PENDING,
    )
    processed_by: Mapped[str] = mapped_column(String(64), nullable=False)
