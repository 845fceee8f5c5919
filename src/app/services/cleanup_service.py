from collections import defaultdict
from datetime import timedelta
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.uow import transaction
from app.models import ReservationTableHold
from app.repositories.configuration import cleanup_log_repository
from app.repositories.request import (
    hold_repository,
    reservation_request_repository,
)
from app.repositories.slot import slot_repository
from app.schemas.maintenance import CleanupReport
from app.utils.enums import CleanupType
from app.utils.operation import operation_result
from app.utils.timeutils import utcnow


class CleanupService:
    """Фоновая очистка зависших заявок и прошедших слотов."""

    @staticmethod
    @operation_result('cleanup_stale_requests')
    async def cleanup_stale_requests(
        session_factory: async_sessionmaker[AsyncSession],
        minutes_old: int = settings.STALE_REQUEST_MINUTES,
    ) -> CleanupReport:
        """Удаляет неоплаченные заявки старше minutes_old минут.

        Удаляются клиентские заявки в PENDING и заявки мерчанта в
        PENDING_CUSTOMER_PAYMENT без платежей и без бронирования.
        Удержанные под них слоты освобождаются.
        """
        created_before = utcnow() - timedelta(minutes=minutes_old)
        async with transaction(session_factory) as session:
            stale = await reservation_request_repository.get_stale_unpaid(
                session,
                created_before,
            )
            if not stale:
                return CleanupReport(records_removed=0)

            by_restaurant: dict[UUID, list[UUID]] = defaultdict(list)
            for request in stale:
                by_restaurant[request.restaurant_id].append(request.id)
            request_ids = [request.id for request in stale]

            holds = await hold_repository.get(
                session,
                ReservationTableHold.request_id.in_(request_ids),
                many=True,
            )
            for hold in holds:
                await slot_repository.release_held(session, hold.slot_id)
            await hold_repository.delete_for_requests(session, request_ids)
            removed = (
                await reservation_request_repository.delete_with_dependents(
                    session,
                    request_ids,
                )
            )
            for restaurant_id, ids in by_restaurant.items():
                await cleanup_log_repository.create(
                    session,
                    cleanup_type=CleanupType.STALE_REQUESTS,
                    restaurant_id=restaurant_id,
                    records_removed=len(ids),
                    description=(
                        f'Удалено зависших заявок старше {minutes_old} мин: '
                        f'{len(ids)}'
                    ),
                )
        logger.info(
            f'Удалено зависших заявок: {removed}, освобождено удержаний: '
            f'{len(holds)}',
        )
        return CleanupReport(
            records_removed=removed,
            restaurants=len(by_restaurant),
        )

    @staticmethod
    @operation_result('cleanup_stale_slots')
    async def cleanup_stale_slots(
        session_factory: async_sessionmaker[AsyncSession],
    ) -> CleanupReport:
        """Удаляет прошедшие слоты без бронирования и удержания."""
        async with transaction(session_factory) as session:
            removed = await slot_repository.delete_stale(
                session,
                utcnow().date(),
            )
            if removed:
                await cleanup_log_repository.create(
                    session,
                    cleanup_type=CleanupType.STALE_SLOTS,
                    records_removed=removed,
                    description=f'Удалено прошедших слотов: {removed}',
                )
        logger.info(f'Удалено прошедших слотов: {removed}')
        return CleanupReport(records_removed=removed)
