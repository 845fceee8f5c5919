import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.core.config import settings
from app.schemas.common import OperationResult
from app.services.cleanup_service import CleanupService
from app.services.hold_manager import HoldManager
from app.services.payment_gateway import PaymentGatewayClient
from app.services.reservation_coordinator import ReservationCoordinator
from app.services.table_set_merger import TableSetMerger
from celery_app.main import celery_app

SweepOperation = Callable[
    [async_sessionmaker[AsyncSession]],
    Awaitable[OperationResult],
]


async def _run_sweep(operation: SweepOperation) -> OperationResult:
    """Выполняет операцию на собственном движке без пула соединений.

    Каждая задача запускается в новом цикле событий, поэтому соединения
    asyncpg не переиспользуются между запусками.
    """
    engine = create_async_engine(settings.db_url, poolclass=NullPool)
    try:
        return await operation(
            async_sessionmaker(engine, expire_on_commit=False),
        )
    finally:
        await engine.dispose()


def _sweep(name: str, operation: SweepOperation) -> Any:
    result = asyncio.run(_run_sweep(operation))
    if not result.success:
        logger.error(
            f'Фоновая задача {name} завершилась ошибкой: '
            f'{result.error_code} ({result.detail})',
        )
        return None
    if isinstance(result.data, BaseModel):
        return result.data.model_dump(mode='json')
    return result.data


@celery_app.task(name='expire-stale-holds')
def expire_stale_holds_task() -> Any:
    """Освобождает слоты с истёкшим удержанием."""
    return _sweep('expire-stale-holds', HoldManager.release_expired_holds)


@celery_app.task(name='expire-stale-merges')
def expire_stale_merges_task() -> Any:
    """Помечает EXPIRED неподтверждённые объединения столов."""
    return _sweep('expire-stale-merges', TableSetMerger.expire_stale_merges)


@celery_app.task(name='cleanup-stale-requests')
def cleanup_stale_requests_task() -> Any:
    return _sweep(
        'cleanup-stale-requests',
        CleanupService.cleanup_stale_requests,
    )


@celery_app.task(name='cleanup-stale-slots')
def cleanup_stale_slots_task() -> Any:
    return _sweep('cleanup-stale-slots', CleanupService.cleanup_stale_slots)


@celery_app.task(name='verify-paid-requests')
def verify_paid_requests_task() -> Any:
    """Подтверждает заявки, оплата которых прошла в платёжном шлюзе."""
    gateway = PaymentGatewayClient()
    return _sweep(
        'verify-paid-requests',
        lambda session_factory: (
            ReservationCoordinator.verify_and_confirm_paid_requests(
                session_factory,
                gateway,
            )
        ),
    )
