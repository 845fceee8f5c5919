import uuid
from datetime import time, timedelta
from typing import Any, Iterator, Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import ReservationError
from app.core.uow import transaction
from app.models import RestaurantTable
from app.repositories.slot import slot_repository
from app.repositories.table import table_repository
from app.schemas.slot import (
    AvailabilityChange,
    AvailabilityWindow,
    SlotGenerationRequest,
    SlotGenerationResult,
)
from app.utils.enums import ErrorCode, SlotStatus
from app.utils.operation import operation_result
from app.utils.timeutils import ANCHOR_DATE, combine, parse_time, utcnow


def iter_day_windows(
    day_start: time,
    day_end: time,
    duration_minutes: int,
    buffer_minutes: int,
) -> Iterator[tuple[time, time]]:
    """Окна слотов в течение дня.

    Шаг равен длительности слота плюс буфер пересадки. Слот, который
    закончился бы позже конца дня, не создаётся.
    """
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=duration_minutes + buffer_minutes)
    current = combine(ANCHOR_DATE, day_start)
    limit = combine(ANCHOR_DATE, day_end)
    while current + duration <= limit:
        yield current.time(), (current + duration).time()
        current += step


class SlotGenerationService:
    """Генерация слотов и ручная блокировка доступности."""

    @staticmethod
    async def _get_tables(
        session: AsyncSession,
        restaurant_id: UUID,
        target_table_ids: Optional[list[UUID]],
    ) -> list[RestaurantTable]:
        tables = await table_repository.get_candidates(session, restaurant_id)
        if target_table_ids is None:
            return tables
        targets = set(target_table_ids)
        selected = [table for table in tables if table.id in targets]
        missing = targets - {table.id for table in selected}
        if missing:
            raise ReservationError(
                ErrorCode.TABLE_NOT_FOUND,
                'Столы не найдены в ресторане: '
                f'{", ".join(sorted(str(table_id) for table_id in missing))}',
            )
        return selected

    @staticmethod
    @operation_result('generate_table_slots')
    async def generate_table_slots(
        session_factory: async_sessionmaker[AsyncSession],
        restaurant_id: UUID,
        payload: SlotGenerationRequest,
    ) -> SlotGenerationResult:
        """Создаёт слоты для столов ресторана на days_ahead дней вперёд.

        Дни недели задаются как в date.weekday(): 0 - понедельник.
        Уже существующие слоты с тем же окном пропускаются, новые
        вставляются пачками по SLOT_INSERT_CHUNK_SIZE.

        Args:
            session_factory: Фабрика асинхронных сессий
            restaurant_id: UUID ресторана
            payload: Параметры генерации

        Returns:
            SlotGenerationResult: Число созданных и пропущенных слотов

        """
        first_day = payload.start_date or utcnow().date()
        days = [
            first_day + timedelta(days=offset)
            for offset in range(payload.days_ahead)
        ]
        days = [day for day in days if day.weekday() in payload.enabled_days]
        windows = list(
            iter_day_windows(
                parse_time(payload.start_time),
                parse_time(payload.end_time),
                payload.slot_duration_minutes,
                payload.turnover_buffer_minutes,
            ),
        )

        async with transaction(session_factory) as session:
            tables = await SlotGenerationService._get_tables(
                session,
                restaurant_id,
                payload.target_table_ids,
            )
            if not tables or not days or not windows:
                return SlotGenerationResult(
                    created=0,
                    skipped=0,
                    tables=len(tables),
                    days=len(days),
                )
            existing = await slot_repository.get_existing_windows(
                session,
                [table.id for table in tables],
                days[0],
                days[-1],
            )
            rows: list[dict[str, Any]] = []
            skipped = 0
            for table in tables:
                for day in days:
                    for start, end in windows:
                        if (table.id, day, start, end) in existing:
                            skipped += 1
                            continue
                        rows.append(
                            {
                                'id': uuid.uuid4(),
                                'restaurant_id': restaurant_id,
                                'table_id': table.id,
                                'slot_date': day,
                                'start_time': start,
                                'end_time': end,
                                'status': SlotStatus.AVAILABLE,
                            },
                        )
            created = await slot_repository.bulk_insert(
                session,
                rows,
                settings.SLOT_INSERT_CHUNK_SIZE,
            )
        logger.info(
            f'Ресторан {restaurant_id}: создано слотов {created}, '
            f'пропущено {skipped} ({len(tables)} столов, {len(days)} дней)',
        )
        return SlotGenerationResult(
            created=created,
            skipped=skipped,
            tables=len(tables),
            days=len(days),
        )

    @staticmethod
    async def _change_availability(
        session_factory: async_sessionmaker[AsyncSession],
        restaurant_id: UUID,
        window: AvailabilityWindow,
        from_status: SlotStatus,
        to_status: SlotStatus,
    ) -> AvailabilityChange:
        async with transaction(session_factory) as session:
            affected = await slot_repository.set_block_status(
                session,
                restaurant_id,
                window.slot_date,
                window.start_time,
                window.end_time,
                from_status=from_status,
                to_status=to_status,
                section_id=window.section_id,
            )
        logger.info(
            f'Ресторан {restaurant_id}: {from_status.value} -> '
            f'{to_status.value} для {affected} слотов на {window.slot_date} '
            f'{window.start_time}-{window.end_time}',
        )
        return AvailabilityChange(affected_slots=affected)

    @staticmethod
    @operation_result('block_availability')
    async def block_availability(
        session_factory: async_sessionmaker[AsyncSession],
        restaurant_id: UUID,
        window: AvailabilityWindow,
    ) -> AvailabilityChange:
        """Закрывает свободные слоты окна (AVAILABLE -> BLOCKED)."""
        return await SlotGenerationService._change_availability(
            session_factory,
            restaurant_id,
            window,
            SlotStatus.AVAILABLE,
            SlotStatus.BLOCKED,
        )

    @staticmethod
    @operation_result('unblock_availability')
    async def unblock_availability(
        session_factory: async_sessionmaker[AsyncSession],
        restaurant_id: UUID,
        window: AvailabilityWindow,
    ) -> AvailabilityChange:
        """Открывает заблокированные слоты окна (BLOCKED -> AVAILABLE)."""
        return await SlotGenerationService._change_availability(
            session_factory,
            restaurant_id,
            window,
            SlotStatus.BLOCKED,
            SlotStatus.AVAILABLE,
        )
