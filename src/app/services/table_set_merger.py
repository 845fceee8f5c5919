from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.constants import SYSTEM_ACTOR
from app.core.exceptions import ReservationError
from app.core.uow import transaction
from app.models import Reservation, TableSet
from app.repositories.reservation import reservation_repository
from app.repositories.slot import slot_repository
from app.repositories.table import table_repository
from app.repositories.table_set import LIVE_STATUSES, table_set_repository
from app.schemas.availability import PeriodAvailability
from app.schemas.slot import SlotInfo
from app.schemas.table_set import TableSetDissolved, TableSetInfo
from app.services.overlap_detector import OCCUPYING_STATUSES, OverlapDetector
from app.utils.enums import ErrorCode, SlotStatus, TableSetStatus
from app.utils.operation import operation_result
from app.utils.timeutils import utcnow


class TableSetMerger:
    """Объединение столов под одно бронирование для больших компаний.

    Первым в slot_ids и table_ids объединения хранится слот и стол,
    назначенные бронированию при подтверждении. Остальные слоты
    удерживаются (HELD) за бронированием до подтверждения объединения
    и резервируются при его активации.
    """

    @staticmethod
    async def check_table_availability_during_period(
        session: AsyncSession,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        now: Optional[datetime] = None,
    ) -> PeriodAvailability:
        """Доступность стола на период: блокирующие и свободные слоты."""
        now = now or utcnow()
        slots = await slot_repository.get_overlapping(
            session,
            table_id,
            slot_date,
            start_time,
            end_time,
        )
        blocking = [
            slot for slot in slots if OverlapDetector.is_blocking(slot, now)
        ]
        available = [slot for slot in slots if slot not in blocking]
        return PeriodAvailability(
            table_id=table_id,
            is_available=not blocking,
            available_slots=[SlotInfo.model_validate(s) for s in available],
            blocking_slots=[SlotInfo.model_validate(s) for s in blocking],
        )

    @staticmethod
    async def _get_merge_target(
        session: AsyncSession,
        reservation_id: UUID,
    ) -> Reservation:
        reservation = await reservation_repository.get_by_id(
            session,
            reservation_id,
        )
        if reservation is None:
            raise ReservationError(
                ErrorCode.RESERVATION_NOT_FOUND,
                'Бронирование не найдено',
                {'reservation_id': str(reservation_id)},
            )
        if reservation.status not in OCCUPYING_STATUSES:
            raise ReservationError(
                ErrorCode.INVALID_STATUS,
                'Объединять столы можно только для действующего '
                f'бронирования, статус: {reservation.status.value}',
            )
        assignment = reservation.table_assignment
        if assignment is None or assignment.slot_id is None:
            raise ReservationError(
                ErrorCode.INVALID_STATUS,
                'Бронированию не назначен стол',
                {'reservation_id': str(reservation_id)},
            )
        return reservation

    @staticmethod
    async def merge(
        session: AsyncSession,
        reservation_id: UUID,
        additional_table_ids: list[UUID],
        merged_by: str,
    ) -> TableSet:
        """Создаёт объединение PENDING_MERGE внутри открытой транзакции.

        Слоты дополнительных столов на окно основного слота переводятся
        в HELD за бронированием до expires_at объединения. Если слота с
        таким окном у стола нет, он создаётся сразу удержанным.

        Raises:
            ReservationError: RESERVATION_NOT_FOUND, INVALID_STATUS,
                TABLE_SET_EXISTS, VALIDATION_ERROR, TABLE_NOT_FOUND,
                TABLE_UNAVAILABLE, DWELL_TIME_CONFLICT, SLOT_CONFLICT

        """
        reservation = await TableSetMerger._get_merge_target(
            session,
            reservation_id,
        )
        assignment = reservation.table_assignment
        primary_slot = await slot_repository.get_by_id(
            session,
            assignment.slot_id,
        )
        slot_date = primary_slot.slot_date
        start_time, end_time = primary_slot.start_time, primary_slot.end_time

        existing = await table_set_repository.get_live_for_slot(
            session,
            reservation.id,
            slot_date,
            start_time,
        )
        if existing is not None:
            raise ReservationError(
                ErrorCode.TABLE_SET_EXISTS,
                'У бронирования уже есть объединение столов на это время',
                {'table_set_id': str(existing.id)},
            )

        table_ids = list(dict.fromkeys(additional_table_ids))
        if primary_slot.table_id in table_ids:
            raise ReservationError(
                ErrorCode.VALIDATION_ERROR,
                'Основной стол бронирования нельзя добавить в объединение',
            )
        tables = await table_repository.get_many(session, table_ids)
        found = {
            table.id: table
            for table in tables
            if table.is_active
            and table.restaurant_id == reservation.restaurant_id
        }
        missing = [
            str(table_id) for table_id in table_ids if table_id not in found
        ]
        if missing:
            raise ReservationError(
                ErrorCode.TABLE_NOT_FOUND,
                'Столы для объединения не найдены',
                {'table_ids': missing},
            )

        now = utcnow()
        expires_at = now + timedelta(
            minutes=settings.TABLE_SET_PENDING_MINUTES,
        )
        original_statuses = {str(primary_slot.id): primary_slot.status.value}
        slot_ids = [str(primary_slot.id)]
        combined_capacity = primary_slot.table.seating_capacity

        for table_id in table_ids:
            table = found[table_id]
            availability = (
                await TableSetMerger.check_table_availability_during_period(
                    session,
                    table.id,
                    slot_date,
                    start_time,
                    end_time,
                    now,
                )
            )
            if not availability.is_available:
                raise ReservationError(
                    ErrorCode.TABLE_UNAVAILABLE,
                    f'Стол {table.table_name} занят в это время',
                    {
                        'table_id': str(table.id),
                        'blocking_slot_ids': [
                            str(slot.id)
                            for slot in availability.blocking_slots
                        ],
                    },
                )
            dwell = await OverlapDetector.check_dwell_time_availability(
                session,
                reservation.restaurant_id,
                table.id,
                slot_date,
                start_time,
                end_time,
                exclude_reservation_id=reservation.id,
            )
            if not dwell.is_available:
                raise ReservationError(
                    ErrorCode.DWELL_TIME_CONFLICT,
                    f'Стол {table.table_name} не освобождается с учётом '
                    f'времени пересадки ({dwell.dwell_time_minutes} мин)',
                    {'table_id': str(table.id)},
                )

            slot = await slot_repository.find_slot_by_window(
                session,
                table.id,
                slot_date,
                start_time,
                end_time,
            )
            if slot is None:
                slot = await slot_repository.create(
                    session,
                    restaurant_id=reservation.restaurant_id,
                    table_id=table.id,
                    slot_date=slot_date,
                    start_time=start_time,
                    end_time=end_time,
                    status=SlotStatus.HELD,
                    hold_expires_at=expires_at,
                    reservation_id=reservation.id,
                )
                original_statuses[str(slot.id)] = SlotStatus.AVAILABLE.value
            else:
                original_statuses[str(slot.id)] = slot.status.value
                held = await slot_repository.hold(
                    session,
                    slot.id,
                    expires_at,
                    now,
                    reservation_id=reservation.id,
                )
                if not held:
                    raise ReservationError(
                        ErrorCode.SLOT_CONFLICT,
                        f'Слот стола {table.table_name} занят '
                        'параллельной операцией',
                        {'slot_id': str(slot.id)},
                    )
            slot_ids.append(str(slot.id))
            combined_capacity += table.seating_capacity

        table_set = await table_set_repository.create(
            session,
            reservation_id=reservation.id,
            slot_date=slot_date,
            slot_start_time=start_time,
            slot_end_time=end_time,
            table_ids=[str(primary_slot.table_id)]
            + [str(table_id) for table_id in table_ids],
            slot_ids=slot_ids,
            primary_table_id=primary_slot.table_id,
            original_statuses=original_statuses,
            status=TableSetStatus.PENDING_MERGE,
            combined_capacity=combined_capacity,
            created_by=merged_by,
            expires_at=expires_at,
        )
        logger.info(
            f'Создано объединение {table_set.id} для бронирования '
            f'{reservation.reservation_number}: {len(slot_ids)} столов, '
            f'{combined_capacity} мест',
        )
        return table_set

    @staticmethod
    @operation_result('merge_tables')
    async def merge_tables(
        session_factory: async_sessionmaker[AsyncSession],
        reservation_id: UUID,
        additional_table_ids: list[UUID],
        merged_by: str,
    ) -> TableSetInfo:
        """Объединяет дополнительные столы с основным столом бронирования."""
        async with transaction(session_factory) as session:
            table_set = await TableSetMerger.merge(
                session,
                reservation_id,
                additional_table_ids,
                merged_by,
            )
            return TableSetInfo.model_validate(table_set)

    @staticmethod
    async def _get_table_set(
        session: AsyncSession,
        table_set_id: UUID,
    ) -> TableSet:
        table_set = await table_set_repository.get_by_id(session, table_set_id)
        if table_set is None:
            raise ReservationError(
                ErrorCode.TABLE_SET_NOT_FOUND,
                'Объединение столов не найдено',
                {'table_set_id': str(table_set_id)},
            )
        return table_set

    @staticmethod
    @operation_result('activate_table_set')
    async def activate_table_set(
        session_factory: async_sessionmaker[AsyncSession],
        table_set_id: UUID,
        confirmed_by: str,
    ) -> TableSetInfo:
        """Подтверждает объединение: HELD слоты -> RESERVED, набор ACTIVE."""
        async with transaction(session_factory) as session:
            now = utcnow()
            table_set = await TableSetMerger._get_table_set(
                session,
                table_set_id,
            )
            if table_set.status != TableSetStatus.PENDING_MERGE:
                raise ReservationError(
                    ErrorCode.TABLE_SET_WRONG_STATUS,
                    'Подтвердить можно только ожидающее объединение, '
                    f'статус: {table_set.status.value}',
                )
            if table_set.expires_at and table_set.expires_at < now:
                raise ReservationError(
                    ErrorCode.TABLE_SET_WRONG_STATUS,
                    'Срок подтверждения объединения истёк',
                    {'expires_at': table_set.expires_at.isoformat()},
                )
            extra_slot_ids = table_set.slot_uuids[1:]
            reserved = await slot_repository.reserve_merge_holds(
                session,
                extra_slot_ids,
                table_set.reservation_id,
            )
            if reserved != len(extra_slot_ids):
                raise ReservationError(
                    ErrorCode.SLOT_CONFLICT,
                    'Часть слотов объединения больше не удерживается',
                    {
                        'expected': len(extra_slot_ids),
                        'reserved': reserved,
                    },
                )
            table_set.status = TableSetStatus.ACTIVE
            table_set.confirmed_at = now
            table_set.confirmed_by = confirmed_by
            await session.flush()
            logger.info(f'Объединение {table_set.id} подтверждено')
            return TableSetInfo.model_validate(table_set)

    @staticmethod
    async def dissolve(
        session: AsyncSession,
        table_set: TableSet,
        dissolved_by: str,
        keep_primary: bool = False,
    ) -> list[UUID]:
        """Расформировывает объединение внутри открытой транзакции.

        Слоты объединения, принадлежащие бронированию, возвращаются в
        AVAILABLE. При keep_primary слот основного стола остаётся за
        бронированием. Недосчёт освобождённых слотов допустим только
        для просроченного ожидающего объединения: его удержания уже
        могли снять очистка или другая заявка.

        Returns:
            list[UUID]: Слоты, которые должны были освободиться

        Raises:
            ReservationError: SLOT_CONFLICT, если слот объединения
                больше не принадлежит бронированию

        """
        now = utcnow()
        slot_ids = table_set.slot_uuids
        if keep_primary:
            slot_ids = slot_ids[1:]
        released = 0
        if slot_ids:
            released = await slot_repository.release_owned(
                session,
                slot_ids,
                table_set.reservation_id,
            )
        if released != len(slot_ids):
            holds_lapsed = (
                table_set.status == TableSetStatus.PENDING_MERGE
                and table_set.expires_at is not None
                and table_set.expires_at < now
            )
            if not holds_lapsed:
                raise ReservationError(
                    ErrorCode.SLOT_CONFLICT,
                    f'Освобождено {released} из {len(slot_ids)} слотов '
                    'объединения',
                    {
                        'table_set_id': str(table_set.id),
                        'expected': len(slot_ids),
                        'released': released,
                    },
                )
            logger.warning(
                f'Объединение {table_set.id}: освобождено {released} '
                f'из {len(slot_ids)} слотов, удержания истекли',
            )
        table_set.status = TableSetStatus.DISSOLVED
        table_set.dissolved_at = now
        table_set.dissolved_by = dissolved_by
        await session.flush()
        logger.info(
            f'Объединение {table_set.id} расформировано ({dissolved_by})',
        )
        return slot_ids

    @staticmethod
    @operation_result('dissolve_table_set')
    async def dissolve_table_set(
        session_factory: async_sessionmaker[AsyncSession],
        table_set_id: UUID,
        dissolved_by: str,
    ) -> TableSetDissolved:
        """Расформировывает объединение, основной стол остаётся за гостем."""
        async with transaction(session_factory) as session:
            table_set = await TableSetMerger._get_table_set(
                session,
                table_set_id,
            )
            if table_set.status not in LIVE_STATUSES:
                raise ReservationError(
                    ErrorCode.TABLE_SET_WRONG_STATUS,
                    'Объединение уже завершено, статус: '
                    f'{table_set.status.value}',
                )
            released = await TableSetMerger.dissolve(
                session,
                table_set,
                dissolved_by,
                keep_primary=True,
            )
            return TableSetDissolved(
                table_set_id=table_set.id,
                released_slot_ids=released,
            )

    @staticmethod
    async def expire(
        session: AsyncSession,
        table_set: TableSet,
        now: datetime,
    ) -> None:
        """Помечает просроченное объединение EXPIRED.

        Удержания дополнительных столов к этому моменту истекли и
        освобождаются тем же условным UPDATE, что и при очистке
        удержаний.
        """
        await slot_repository.release_expired_holds(
            session,
            table_set.slot_uuids[1:],
            now,
        )
        table_set.status = TableSetStatus.EXPIRED
        table_set.dissolved_at = now
        table_set.dissolved_by = SYSTEM_ACTOR
        await session.flush()
        logger.info(f'Объединение {table_set.id} истекло')

    @staticmethod
    @operation_result('expire_stale_merges')
    async def expire_stale_merges(
        session_factory: async_sessionmaker[AsyncSession],
    ) -> int:
        """Помечает EXPIRED объединения, не подтверждённые до expires_at."""
        async with transaction(session_factory) as session:
            now = utcnow()
            stale = await table_set_repository.get(
                session,
                TableSet.expires_at < now,
                status=TableSetStatus.PENDING_MERGE,
                many=True,
            )
            for table_set in stale:
                await slot_repository.release_expired_holds(
                    session,
                    table_set.slot_uuids[1:],
                    now,
                )
            expired = await table_set_repository.expire_pending(session, now)
        if expired:
            logger.info(f'Истекло объединений столов: {expired}')
        return expired
