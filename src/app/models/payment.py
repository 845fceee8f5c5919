import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.db import Base
from app.utils.enums import PaymentStatus

if TYPE_CHECKING:
    from app.models import ReservationRequest


class RequestPayment(Base):
    """Платёж клиента по заявке на бронирование."""

    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservationrequest.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, name='payment_status'),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    transaction_reference: Mapped[str] = mapped_column(
        String(128),
        unique=True,
        nullable=False,
    )
    payment_status_url: Mapped[Optional[str]] = mapped_column(
        String(512),
        nullable=True,
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )

    request: Mapped['ReservationRequest'] = relationship(
        back_populates='payments',
    )


class PaymentLink(Base):
    """Ссылка на оплату, выданная по заявке."""

    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey('reservationrequest.id', ondelete='CASCADE'),
        index=True,
        nullable=False,
    )
    token: Mapped[str] = mapped_column(String(128), unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
