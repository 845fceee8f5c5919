from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import TableSlot
from app.repositories.reservation import reservation_repository
from app.repositories.slot import BLOCKING_STATUSES, slot_repository
from app.repositories.table_set import table_set_repository
from app.schemas.availability import DwellCheck, DwellConflict
from app.services.configuration_service import get_reservation_settings
from app.utils.enums import ReservationStatus, SlotStatus
from app.utils.timeutils import combine, utcnow

OCCUPYING_STATUSES = (ReservationStatus.CONFIRMED, ReservationStatus.SEATED)


class OverlapDetector:
    """Проверка пересечений окон и времени пересадки для столов."""

    @staticmethod
    def windows_overlap(
        first_start: time,
        first_end: time,
        second_start: time,
        second_end: time,
    ) -> bool:
        """Пересекаются ли полуоткрытые окна [start, end).

        Совпадение конца одного окна с началом другого пересечением
        не считается.
        """
        return first_start < second_end and first_end > second_start

    @staticmethod
    def is_blocking(slot: TableSlot, now: datetime) -> bool:
        """Занимает ли слот стол в момент now.

        HELD с истёкшим сроком стол не занимает. HELD без срока
        удержания является нарушением инварианта: такой слот
        логируется и считается занятым.
        """
        if slot.status not in BLOCKING_STATUSES:
            return False
        if slot.status != SlotStatus.HELD:
            return True
        if slot.hold_expires_at is None:
            logger.warning(
                f'Слот {slot.id} в статусе HELD без срока удержания, '
                'считаем его занятым',
            )
            return True
        return slot.hold_expires_at >= now

    @staticmethod
    async def get_conflicting_slots(
        session: AsyncSession,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        now: Optional[datetime] = None,
        exclude_slot_ids: Iterable[UUID] = (),
    ) -> list[TableSlot]:
        """Слоты стола, занимающие окно [start_time, end_time) на дату."""
        now = now or utcnow()
        slots = await slot_repository.get_overlapping(
            session,
            table_id,
            slot_date,
            start_time,
            end_time,
            statuses=BLOCKING_STATUSES,
            exclude_slot_ids=exclude_slot_ids,
        )
        return [
            slot for slot in slots if OverlapDetector.is_blocking(slot, now)
        ]

    @staticmethod
    async def has_overlap(
        session: AsyncSession,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        now: Optional[datetime] = None,
        exclude_slot_ids: Iterable[UUID] = (),
    ) -> bool:
        """Есть ли у стола занятый слот, пересекающий окно.

        Args:
            session: Асинхронная сессия базы данных
            table_id: UUID стола
            slot_date: Дата
            start_time: Начало проверяемого окна
            end_time: Конец проверяемого окна (не включается)
            now: Момент, относительно которого оцениваются удержания
            exclude_slot_ids: Слоты, которые не учитываются

        Returns:
            bool: True, если стол занят хотя бы частью окна

        """
        conflicts = await OverlapDetector.get_conflicting_slots(
            session,
            table_id,
            slot_date,
            start_time,
            end_time,
            now=now,
            exclude_slot_ids=exclude_slot_ids,
        )
        return bool(conflicts)

    @staticmethod
    async def check_dwell_time_availability(
        session: AsyncSession,
        restaurant_id: UUID,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        exclude_reservation_id: Optional[UUID] = None,
    ) -> DwellCheck:
        """Проверяет, освободится ли стол с учётом времени пересадки.

        Учитываются бронирования в статусах CONFIRMED и SEATED на дату,
        назначенные на стол напрямую или через действующее объединение
        столов. Занятость бронирования длится до конца назначенного
        окна (либо начала плюс стандартная длительность слота) и ещё
        dwell-минут после него.

        Args:
            session: Асинхронная сессия базы данных
            restaurant_id: UUID ресторана (для настроек)
            table_id: UUID стола
            slot_date: Дата
            start_time: Начало проверяемого окна
            end_time: Конец проверяемого окна
            exclude_reservation_id: Бронирование, которое не учитывается
                                    (при переносе самого себя)

        Returns:
            DwellCheck: Итог проверки с конфликтующими бронированиями

        """
        config = await get_reservation_settings(session, restaurant_id)
        dwell = timedelta(minutes=config.dwell_minutes)
        slot_length = timedelta(minutes=config.slot_minutes)

        live_sets = await table_set_repository.get_live_on_date(
            session,
            slot_date,
        )
        merged_reservation_ids = [
            table_set.reservation_id
            for table_set in live_sets
            if str(table_id) in table_set.table_ids
        ]
        reservations = await reservation_repository.get_active_on_date(
            session,
            slot_date,
            OCCUPYING_STATUSES,
            reservation_ids=merged_reservation_ids,
            table_id=table_id,
        )

        period_start = combine(slot_date, start_time)
        period_end = combine(slot_date, end_time)
        conflicts = []
        for reservation in reservations:
            if reservation.id == exclude_reservation_id:
                continue
            reservation_start = combine(
                reservation.reservation_date,
                reservation.reservation_time,
            )
            assignment = reservation.table_assignment
            if assignment is not None and assignment.table_end_time:
                nominal_end = combine(
                    reservation.reservation_date,
                    assignment.table_end_time,
                )
            else:
                nominal_end = reservation_start + slot_length
            effective_end = nominal_end + dwell
            if period_start < effective_end and period_end > reservation_start:
                conflicts.append(
                    DwellConflict(
                        reservation_id=reservation.id,
                        reservation_time=reservation_start,
                        effective_end_time=effective_end,
                    ),
                )

        if conflicts:
            logger.info(
                f'Стол {table_id} занят с учётом пересадки '
                f'({config.dwell_minutes} мин) на {slot_date} '
                f'{start_time}-{end_time}: {len(conflicts)} бронирований',
            )
        return DwellCheck(
            is_available=not conflicts,
            dwell_time_minutes=config.dwell_minutes,
            conflicts=conflicts,
        )

    @staticmethod
    async def filter_slots_by_dwell_time(
        session: AsyncSession,
        restaurant_id: UUID,
        slots: Sequence[TableSlot],
        exclude_reservation_id: Optional[UUID] = None,
    ) -> list[TableSlot]:
        """Оставляет слоты без конфликтов по времени пересадки."""
        available = []
        for slot in slots:
            check = await OverlapDetector.check_dwell_time_availability(
                session,
                restaurant_id,
                slot.table_id,
                slot.slot_date,
                slot.start_time,
                slot.end_time,
                exclude_reservation_id=exclude_reservation_id,
            )
            if check.is_available:
                available.append(slot)
        return available
