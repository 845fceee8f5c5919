from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    PaymentLink,
    RequestPayment,
    RequestStatusHistory,
    RequestTableDetails,
    Reservation,
    ReservationRequest,
    ReservationTableHold,
)
from app.repositories.base import CRUDBase
from app.utils.enums import RequestCreatorType, RequestStatus


class ReservationRequestRepository(CRUDBase[ReservationRequest]):
    """Репозиторий заявок на бронирование."""

    def __init__(self) -> None:
        """Инициализация репозитория заявок."""
        super().__init__(ReservationRequest)

    async def set_status(
        self,
        session: AsyncSession,
        request: ReservationRequest,
        new_status: RequestStatus,
        reason: str,
        changed_by: str,
    ) -> RequestStatusHistory:
        """Меняет статус заявки и дописывает строку в журнал статусов."""
        previous = request.status
        request.status = new_status
        return await self.log_status(
            session,
            request.id,
            previous,
            new_status,
            reason,
            changed_by,
        )

    async def log_status(
        self,
        session: AsyncSession,
        request_id: UUID,
        previous_status: Optional[RequestStatus],
        new_status: RequestStatus,
        reason: str,
        changed_by: str,
    ) -> RequestStatusHistory:
        """Добавляет строку в журнал статусов заявки."""
        entry = RequestStatusHistory(
            request_id=request_id,
            previous_status=previous_status,
            new_status=new_status,
            change_reason=reason,
            changed_by=changed_by,
        )
        session.add(entry)
        await session.flush()
        return entry

    async def get_stale_unpaid(
        self,
        session: AsyncSession,
        created_before: datetime,
    ) -> List[ReservationRequest]:
        """Зависшие неоплаченные заявки без бронирования.

        Клиентские заявки в PENDING и заявки мерчанта в
        PENDING_CUSTOMER_PAYMENT, созданные раньше created_before.
        """
        has_payment = select(RequestPayment.id).where(
            RequestPayment.request_id == ReservationRequest.id,
        )
        has_reservation = select(Reservation.id).where(
            Reservation.request_id == ReservationRequest.id,
        )
        merchant_types = [
            RequestCreatorType.MERCHANT,
            RequestCreatorType.MERCHANT_WALK_IN,
        ]
        return await self.get(
            session,
            (
                (
                    (ReservationRequest.status == RequestStatus.PENDING)
                    & ReservationRequest.created_by.not_in(merchant_types)
                )
                | (
                    (
                        ReservationRequest.status
                        == RequestStatus.PENDING_CUSTOMER_PAYMENT
                    )
                    & ReservationRequest.created_by.in_(merchant_types)
                )
            ),
            ReservationRequest.created_at < created_before,
            ~has_payment.exists(),
            ~has_reservation.exists(),
            many=True,
        )

    async def delete_with_dependents(
        self,
        session: AsyncSession,
        request_ids: list[UUID],
    ) -> int:
        """Удаляет заявки вместе со ссылками, пожеланиями и журналом."""
        if not request_ids:
            return 0
        for model in (PaymentLink, RequestTableDetails, RequestStatusHistory):
            await CRUDBase(model).delete_where(
                session,
                model.request_id.in_(request_ids),
            )
        return await self.delete_where(
            session,
            ReservationRequest.id.in_(request_ids),
        )

    async def get_pending_with_payments(
        self,
        session: AsyncSession,
        created_before: datetime,
    ) -> List[ReservationRequest]:
        """Ожидающие заявки с платежами, но без бронирования."""
        has_payment = select(RequestPayment.id).where(
            RequestPayment.request_id == ReservationRequest.id,
        )
        has_reservation = select(Reservation.id).where(
            Reservation.request_id == ReservationRequest.id,
        )
        return await self.get(
            session,
            ReservationRequest.status.in_(
                [
                    RequestStatus.PENDING,
                    RequestStatus.PENDING_CUSTOMER_PAYMENT,
                ],
            ),
            ReservationRequest.created_at < created_before,
            has_payment.exists(),
            ~has_reservation.exists(),
            many=True,
        )


class HoldRepository(CRUDBase[ReservationTableHold]):
    """Репозиторий записей удержания слотов под заявки."""

    def __init__(self) -> None:
        """Инициализация репозитория удержаний."""
        super().__init__(ReservationTableHold)

    async def get_for_request(
        self,
        session: AsyncSession,
        request_id: UUID,
    ) -> Optional[ReservationTableHold]:
        """Последнее удержание заявки."""
        return await self.get(
            session,
            request_id=request_id,
            order_by=(ReservationTableHold.created_at.desc(),),
        )

    async def delete_for_slots(
        self,
        session: AsyncSession,
        slot_ids: list[UUID],
    ) -> int:
        """Удаляет записи удержаний по слотам."""
        if not slot_ids:
            return 0
        return await self.delete_where(
            session,
            ReservationTableHold.slot_id.in_(slot_ids),
        )

    async def delete_for_requests(
        self,
        session: AsyncSession,
        request_ids: list[UUID],
    ) -> int:
        """Удаляет записи удержаний по заявкам."""
        if not request_ids:
            return 0
        return await self.delete_where(
            session,
            ReservationTableHold.request_id.in_(request_ids),
        )


class TableDetailsRepository(CRUDBase[RequestTableDetails]):
    """Репозиторий пожеланий по столу."""

    def __init__(self) -> None:
        """Инициализация репозитория пожеланий."""
        super().__init__(RequestTableDetails)


class PaymentRepository(CRUDBase[RequestPayment]):
    """Репозиторий платежей по заявкам."""

    def __init__(self) -> None:
        """Инициализация репозитория платежей."""
        super().__init__(RequestPayment)


class PaymentLinkRepository(CRUDBase[PaymentLink]):
    """Репозиторий ссылок на оплату."""

    def __init__(self) -> None:
        """Инициализация репозитория ссылок на оплату."""
        super().__init__(PaymentLink)


reservation_request_repository = ReservationRequestRepository()
hold_repository = HoldRepository()
table_details_repository = TableDetailsRepository()
payment_repository = PaymentRepository()
payment_link_repository = PaymentLinkRepository()
