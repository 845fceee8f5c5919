from datetime import date, datetime, time, timedelta
from typing import Optional
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import ReservationError
from app.core.uow import transaction
from app.models import RestaurantTable, TableSlot
from app.repositories.configuration import cleanup_log_repository
from app.repositories.request import hold_repository
from app.repositories.slot import slot_repository
from app.repositories.table import table_repository
from app.schemas.maintenance import CleanupReport
from app.schemas.slot import HeldSlot, HoldSlotRequest, HoldStatistics
from app.services.configuration_service import get_reservation_settings
from app.services.overlap_detector import OverlapDetector
from app.utils.enums import CleanupType, ErrorCode, SlotStatus
from app.utils.operation import operation_result
from app.utils.timeutils import minutes_between, shift_time, utcnow


class HoldManager:
    """Сервис кратковременных удержаний слотов столов."""

    @staticmethod
    async def _try_hold_table(
        session: AsyncSession,
        table: RestaurantTable,
        slot_date: date,
        start_time: time,
        end_time: time,
        expires_at: datetime,
        now: datetime,
    ) -> Optional[TableSlot]:
        """Пытается удержать слот стола, начинающийся в start_time.

        Возвращает None, если стол занят, подходящего слота нет или
        слот конфликтует по времени пересадки. Проигрыш гонки за слот
        завершает операцию ошибкой SLOT_CONFLICT без повторов.
        """
        if await OverlapDetector.has_overlap(
            session,
            table.id,
            slot_date,
            start_time,
            end_time,
            now=now,
        ):
            return None
        slot = await slot_repository.find_claimable_slot(
            session,
            table.id,
            slot_date,
            start_time,
            now,
        )
        if slot is None:
            return None
        if (slot.start_time, slot.end_time) != (start_time, end_time):
            if await OverlapDetector.has_overlap(
                session,
                table.id,
                slot_date,
                slot.start_time,
                slot.end_time,
                now=now,
                exclude_slot_ids=(slot.id,),
            ):
                return None
        free = await OverlapDetector.filter_slots_by_dwell_time(
            session,
            table.restaurant_id,
            [slot],
        )
        if not free:
            return None

        reclaimed = slot.status == SlotStatus.HELD
        updated = await slot_repository.hold(session, slot.id, expires_at, now)
        if not updated:
            logger.warning(
                f'Слот {slot.id} стола {table.table_name} занят '
                'параллельной операцией',
            )
            raise ReservationError(
                ErrorCode.SLOT_CONFLICT,
                'Слот уже занят другим бронированием, повторите поиск',
                {'slot_id': str(slot.id)},
            )
        if reclaimed:
            removed = await hold_repository.delete_for_slots(
                session,
                [slot.id],
            )
            logger.info(
                f'Слот {slot.id} занят повторно после истёкшего удержания, '
                f'удалено записей удержания: {removed}',
            )
        return await slot_repository.get_by_id(session, slot.id)

    @staticmethod
    async def hold_best_slot(
        session: AsyncSession,
        restaurant_id: UUID,
        slot_date: date,
        start_time: time,
        party_size: int,
        preferred_section_id: Optional[UUID] = None,
    ) -> HeldSlot:
        """Подбирает и удерживает слот внутри открытой транзакции.

        Сначала перебираются столы достаточной вместимости (от меньшей
        к большей, при равенстве по id), при необходимости только в
        предпочтительной секции. Если ни один не подошёл, перебираются
        все остальные активные столы ресторана, начиная с самых больших.

        Args:
            session: Сессия текущей единицы работы
            restaurant_id: UUID ресторана
            slot_date: Дата бронирования
            start_time: Время начала
            party_size: Число гостей
            preferred_section_id: Предпочтительная секция

        Returns:
            HeldSlot: Удержанный слот

        Raises:
            ReservationError: NO_AVAILABLE_SLOTS или SLOT_CONFLICT

        """
        config = await get_reservation_settings(session, restaurant_id)
        now = utcnow()
        expires_at = now + timedelta(minutes=config.hold_minutes)
        end_time = shift_time(start_time, config.slot_minutes)

        fitting = await table_repository.get_candidates(
            session,
            restaurant_id,
            min_capacity=party_size,
            section_id=preferred_section_id,
        )
        every_table = await table_repository.get_candidates(
            session,
            restaurant_id,
            largest_first=True,
        )
        tried = {table.id for table in fitting}
        fallback = [table for table in every_table if table.id not in tried]

        for table in [*fitting, *fallback]:
            slot = await HoldManager._try_hold_table(
                session,
                table,
                slot_date,
                start_time,
                end_time,
                expires_at,
                now,
            )
            if slot is None:
                continue
            if table.seating_capacity < party_size:
                logger.info(
                    f'Для {party_size} гостей удержан стол меньшей '
                    f'вместимости {table.table_name} '
                    f'({table.seating_capacity})',
                )
            logger.info(
                f'Удержан слот {slot.id} стола {table.table_name} '
                f'на {slot_date} {start_time} до {expires_at}',
            )
            return HeldSlot(
                slot_id=slot.id,
                table_id=table.id,
                section_id=table.section_id,
                hold_expires_at=expires_at,
            )

        raise ReservationError(
            ErrorCode.NO_AVAILABLE_SLOTS,
            f'Нет свободных столов на {slot_date} {start_time} '
            f'для {party_size} гостей',
            {'date': str(slot_date), 'time': str(start_time)},
        )

    @staticmethod
    @operation_result('find_and_hold_best_slot')
    async def find_and_hold_best_slot(
        session_factory: async_sessionmaker[AsyncSession],
        payload: HoldSlotRequest,
    ) -> HeldSlot:
        """Находит лучший свободный стол и удерживает его слот."""
        async with transaction(session_factory) as session:
            return await HoldManager.hold_best_slot(
                session,
                payload.restaurant_id,
                payload.reservation_date,
                payload.reservation_time,
                payload.party_size,
                payload.preferred_section_id,
            )

    @staticmethod
    async def release_slot(session: AsyncSession, slot_id: UUID) -> None:
        """Безусловно освобождает слот и удаляет записи его удержаний."""
        released = await slot_repository.release(session, slot_id)
        if not released:
            raise ReservationError(
                ErrorCode.SLOT_NOT_FOUND,
                'Слот не найден',
                {'slot_id': str(slot_id)},
            )
        await hold_repository.delete_for_slots(session, [slot_id])
        logger.info(f'Слот {slot_id} освобождён')

    @staticmethod
    @operation_result('release_table_slot')
    async def release_table_slot(
        session_factory: async_sessionmaker[AsyncSession],
        slot_id: UUID,
    ) -> UUID:
        """Возвращает слот в AVAILABLE независимо от текущего статуса."""
        async with transaction(session_factory) as session:
            await HoldManager.release_slot(session, slot_id)
        return slot_id

    @staticmethod
    async def validate_held_slot(
        session: AsyncSession,
        slot_id: UUID,
        now: Optional[datetime] = None,
    ) -> TableSlot:
        """Проверяет, что слот удержан и удержание ещё действует.

        Raises:
            ReservationError: HOLD_NOT_FOUND, HOLD_WRONG_STATUS,
                HOLD_MISSING_EXPIRY или HOLD_EXPIRED

        """
        now = now or utcnow()
        slot = await slot_repository.get_by_id(session, slot_id)
        if slot is None:
            raise ReservationError(
                ErrorCode.HOLD_NOT_FOUND,
                'Удерживаемый слот не найден',
                {'slot_id': str(slot_id)},
            )
        if slot.status != SlotStatus.HELD:
            raise ReservationError(
                ErrorCode.HOLD_WRONG_STATUS,
                f'Слот не удерживается, текущий статус: {slot.status.value}',
                {'slot_id': str(slot_id), 'status': slot.status.value},
            )
        if slot.hold_expires_at is None:
            logger.warning(
                f'Слот {slot_id} в статусе HELD без срока удержания',
            )
            raise ReservationError(
                ErrorCode.HOLD_MISSING_EXPIRY,
                'У удержания не задан срок действия',
                {'slot_id': str(slot_id)},
            )
        if slot.hold_expires_at < now:
            expired_ago = minutes_between(slot.hold_expires_at, now)
            raise ReservationError(
                ErrorCode.HOLD_EXPIRED,
                f'Удержание истекло {expired_ago} мин назад',
                {
                    'slot_id': str(slot_id),
                    'expired_minutes_ago': expired_ago,
                },
            )
        return slot

    @staticmethod
    @operation_result('extend_hold')
    async def extend_hold(
        session_factory: async_sessionmaker[AsyncSession],
        slot_id: UUID,
        extra_minutes: int,
    ) -> HeldSlot:
        """Продлевает действующее удержание слота на extra_minutes."""
        async with transaction(session_factory) as session:
            now = utcnow()
            slot = await HoldManager.validate_held_slot(session, slot_id, now)
            expires_at = slot.hold_expires_at + timedelta(
                minutes=extra_minutes,
            )
            updated = await slot_repository.extend_hold(
                session,
                slot_id,
                expires_at,
                now,
            )
            if not updated:
                raise ReservationError(
                    ErrorCode.SLOT_CONFLICT,
                    'Удержание изменено параллельной операцией',
                    {'slot_id': str(slot_id)},
                )
            holds = await hold_repository.get(
                session,
                slot_id=slot_id,
                many=True,
            )
            for hold in holds:
                hold.hold_expires_at = expires_at
            table = await table_repository.get_by_id(session, slot.table_id)
            logger.info(f'Удержание слота {slot_id} продлено до {expires_at}')
            return HeldSlot(
                slot_id=slot_id,
                table_id=slot.table_id,
                section_id=table.section_id if table else None,
                hold_expires_at=expires_at,
            )

    @staticmethod
    @operation_result('release_expired_holds')
    async def release_expired_holds(
        session_factory: async_sessionmaker[AsyncSession],
        batch_size: int = settings.HOLD_CLEANUP_BATCH_SIZE,
    ) -> CleanupReport:
        """Возвращает в AVAILABLE слоты с истёкшим удержанием.

        Обход идёт по ресторанам, каждый в своей транзакции, пачками по
        batch_size. Условие HELD и истёкшего срока перепроверяется в
        самом UPDATE, поэтому уже подтверждённые слоты не затрагиваются,
        а повторный запуск безопасен.
        """
        now = utcnow()
        async with session_factory() as session:
            restaurant_ids = (
                await slot_repository.get_restaurants_with_expired_holds(
                    session,
                    now,
                )
            )

        total = 0
        for restaurant_id in restaurant_ids:
            async with transaction(session_factory) as session:
                released = 0
                while True:
                    slot_ids = await slot_repository.get_expired_hold_ids(
                        session,
                        restaurant_id,
                        now,
                        batch_size,
                    )
                    if not slot_ids:
                        break
                    count = await slot_repository.release_expired_holds(
                        session,
                        slot_ids,
                        now,
                    )
                    await hold_repository.delete_for_slots(session, slot_ids)
                    released += count
                    if count < len(slot_ids):
                        break
                if released:
                    await cleanup_log_repository.create(
                        session,
                        cleanup_type=CleanupType.EXPIRED_HOLDS,
                        restaurant_id=restaurant_id,
                        records_removed=released,
                        description=(
                            f'Освобождено слотов с истёкшим удержанием: '
                            f'{released}'
                        ),
                    )
            logger.info(
                f'Ресторан {restaurant_id}: освобождено удержаний {released}',
            )
            total += released
        return CleanupReport(
            records_removed=total,
            restaurants=len(restaurant_ids),
        )

    @staticmethod
    @operation_result('get_hold_statistics')
    async def get_hold_statistics(
        session_factory: async_sessionmaker[AsyncSession],
        restaurant_id: Optional[UUID] = None,
    ) -> HoldStatistics:
        """Число удержаний: всего, истёкших и действующих.

        HELD слот без срока удержания не считается действующим и
        учитывается отдельно как нарушение целостности.
        """
        now = utcnow()
        scope = []
        if restaurant_id is not None:
            scope.append(TableSlot.restaurant_id == restaurant_id)
        async with session_factory() as session:
            total = await slot_repository.count_holds(session, *scope)
            expired = await slot_repository.count_holds(
                session,
                TableSlot.hold_expires_at < now,
                *scope,
            )
            missing = await slot_repository.count_holds(
                session,
                TableSlot.hold_expires_at.is_(None),
                *scope,
            )
        if missing:
            logger.warning(f'Удерживаемых слотов без срока: {missing}')
        return HoldStatistics(
            total_holds=total,
            expired_holds=expired,
            active_holds=total - expired - missing,
            missing_expiry_holds=missing,
        )
