from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import CancellationRequest, RefundPolicy, RefundTransaction
from app.repositories.base import CRUDBase
from app.utils.enums import CancellationStatus

PENDING_CANCELLATION_STATUSES = (
    CancellationStatus.PENDING_REVIEW,
    CancellationStatus.APPROVED_PENDING_REFUND,
)


class RefundPolicyRepository(CRUDBase[RefundPolicy]):
    """Репозиторий политик возврата."""

    def __init__(self) -> None:
        """Инициализация репозитория политик возврата."""
        super().__init__(RefundPolicy)

    async def get_active(
        self,
        session: AsyncSession,
        restaurant_id: UUID,
    ) -> Optional[RefundPolicy]:
        """Последняя активная политика ресторана."""
        return await self.get(
            session,
            restaurant_id=restaurant_id,
            is_active=True,
            order_by=(RefundPolicy.created_at.desc(),),
        )


class CancellationRepository(CRUDBase[CancellationRequest]):
    """Репозиторий заявок на отмену."""

    def __init__(self) -> None:
        """Инициализация репозитория заявок на отмену."""
        super().__init__(CancellationRequest)

    async def get_pending(
        self,
        session: AsyncSession,
        reservation_id: UUID,
    ) -> Optional[CancellationRequest]:
        """Незавершённая заявка на отмену бронирования."""
        return await self.get(
            session,
            CancellationRequest.status.in_(PENDING_CANCELLATION_STATUSES),
            reservation_id=reservation_id,
        )


class RefundTransactionRepository(CRUDBase[RefundTransaction]):
    """Репозиторий транзакций возврата."""

    def __init__(self) -> None:
        """Инициализация репозитория транзакций возврата."""
        super().__init__(RefundTransaction)


refund_policy_repository = RefundPolicyRepository()
cancellation_repository = CancellationRepository()
refund_transaction_repository = RefundTransactionRepository()
