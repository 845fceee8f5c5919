from contextlib import asynccontextmanager
from typing import AsyncIterator

from loguru import logger
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings

POSTGRES_DIALECT = 'postgresql'
ISOLATION_LEVEL = 'READ COMMITTED'


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    max_wait_ms: int = settings.TX_MAX_WAIT_MS,
    timeout_ms: int = settings.TX_TIMEOUT_MS,
) -> AsyncIterator[AsyncSession]:
    """Открывает единицу работы: одну транзакцию с ограничением ожидания.

    На PostgreSQL транзакция выполняется с уровнем изоляции
    READ COMMITTED, ожидание блокировки строки ограничено max_wait_ms,
    а время выполнения любого запроса ограничено timeout_ms.
    Коммит выполняется при нормальном выходе, откат при любом исключении.

    Args:
        session_factory: Фабрика асинхронных сессий
        max_wait_ms: Максимальное ожидание блокировки (мс)
        timeout_ms: Максимальная длительность запроса (мс)

    Yields:
        AsyncSession: Сессия, привязанная к открытой транзакции

    """
    async with session_factory() as session:
        dialect = session.bind.dialect.name if session.bind else None
        try:
            if dialect == POSTGRES_DIALECT:
                await session.connection(
                    execution_options={'isolation_level': ISOLATION_LEVEL},
                )
                await session.execute(
                    text(f"SET LOCAL lock_timeout = '{int(max_wait_ms)}ms'"),
                )
                await session.execute(
                    text(
                        f"SET LOCAL statement_timeout = '{int(timeout_ms)}ms'",
                    ),
                )
            yield session
            await session.commit()
        except BaseException:
            await session.rollback()
            logger.debug('Транзакция откатена')
            raise


@asynccontextmanager
async def lock_transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """Транзакция с короткими таймаутами для операций отмены."""
    async with transaction(
        session_factory,
        max_wait_ms=settings.LOCK_MAX_WAIT_MS,
        timeout_ms=settings.LOCK_TIMEOUT_MS,
    ) as session:
        yield session
