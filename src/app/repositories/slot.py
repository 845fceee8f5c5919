from datetime import date, datetime, time
from typing import Any, Iterable, Optional, Sequence
from uuid import UUID

from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from app.models import RestaurantTable, TableSlot
from app.repositories.base import CRUDBase
from app.utils.enums import SlotStatus

BLOCKING_STATUSES = (
    SlotStatus.RESERVED,
    SlotStatus.HELD,
    SlotStatus.BLOCKED,
    SlotStatus.MAINTENANCE,
)


def claimable_condition(now: datetime) -> ColumnElement[bool]:
    """Условие «слот можно занять»: свободен или удержание истекло."""
    return or_(
        TableSlot.status == SlotStatus.AVAILABLE,
        and_(
            TableSlot.status == SlotStatus.HELD,
            TableSlot.hold_expires_at.is_not(None),
            TableSlot.hold_expires_at < now,
        ),
    )


class SlotRepository(CRUDBase[TableSlot]):
    """Репозиторий слотов доступности столов.

    Все методы, меняющие статус, выполняют условный UPDATE с проверкой
    текущего статуса и возвращают число изменённых строк. Ноль строк
    означает, что слот уже в другом состоянии, и трактуется вызывающим
    кодом как конфликт.
    """

    def __init__(self) -> None:
        """Инициализация репозитория слотов."""
        super().__init__(TableSlot)

    async def _guarded_update(
        self,
        session: AsyncSession,
        predicates: Sequence[Any],
        values: dict[str, Any],
    ) -> int:
        """Выполняет UPDATE слотов по условию и возвращает rowcount."""
        result = await session.execute(
            update(TableSlot)
            .where(*predicates)
            .values(**values)
            .execution_options(synchronize_session=False),
        )
        return result.rowcount

    async def find_claimable_slot(
        self,
        session: AsyncSession,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        now: datetime,
    ) -> Optional[TableSlot]:
        """Находит слот стола, начинающийся ровно в start_time."""
        return await self.get(
            session,
            claimable_condition(now),
            table_id=table_id,
            slot_date=slot_date,
            start_time=start_time,
            is_active=True,
            order_by=(TableSlot.end_time,),
        )

    async def find_slot_by_window(
        self,
        session: AsyncSession,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
    ) -> Optional[TableSlot]:
        """Находит слот стола с точным окном."""
        return await self.get(
            session,
            table_id=table_id,
            slot_date=slot_date,
            start_time=start_time,
            end_time=end_time,
        )

    async def get_overlapping(
        self,
        session: AsyncSession,
        table_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        statuses: Optional[Iterable[SlotStatus]] = None,
        exclude_slot_ids: Iterable[UUID] = (),
    ) -> list[TableSlot]:
        """Слоты стола на дату, пересекающие окно [start_time, end_time)."""
        conditions = [
            TableSlot.table_id == table_id,
            TableSlot.slot_date == slot_date,
            TableSlot.start_time < end_time,
            TableSlot.end_time > start_time,
        ]
        if statuses is not None:
            conditions.append(TableSlot.status.in_(list(statuses)))
        excluded = list(exclude_slot_ids)
        if excluded:
            conditions.append(TableSlot.id.not_in(excluded))
        return await self.get(
            session,
            *conditions,
            many=True,
            order_by=(TableSlot.start_time,),
        )

    async def hold(
        self,
        session: AsyncSession,
        slot_id: UUID,
        expires_at: datetime,
        now: datetime,
        reservation_id: Optional[UUID] = None,
    ) -> int:
        """Переводит свободный (или просроченный) слот в HELD."""
        return await self._guarded_update(
            session,
            (TableSlot.id == slot_id, claimable_condition(now)),
            {
                'status': SlotStatus.HELD,
                'hold_expires_at': expires_at,
                'reservation_id': reservation_id,
            },
        )

    async def extend_hold(
        self,
        session: AsyncSession,
        slot_id: UUID,
        expires_at: datetime,
        now: datetime,
    ) -> int:
        """Продлевает ещё действующее удержание."""
        return await self._guarded_update(
            session,
            (
                TableSlot.id == slot_id,
                TableSlot.status == SlotStatus.HELD,
                TableSlot.hold_expires_at >= now,
            ),
            {'hold_expires_at': expires_at},
        )

    async def reserve_held(
        self,
        session: AsyncSession,
        slot_id: UUID,
        reservation_id: UUID,
        now: datetime,
    ) -> int:
        """HELD -> RESERVED для действующего удержания."""
        return await self._guarded_update(
            session,
            (
                TableSlot.id == slot_id,
                TableSlot.status == SlotStatus.HELD,
                TableSlot.hold_expires_at >= now,
            ),
            {
                'status': SlotStatus.RESERVED,
                'reservation_id': reservation_id,
                'hold_expires_at': None,
            },
        )

    async def reserve_available(
        self,
        session: AsyncSession,
        slot_id: UUID,
        reservation_id: UUID,
        now: datetime,
    ) -> int:
        """Свободный (или просроченный) слот -> RESERVED."""
        return await self._guarded_update(
            session,
            (TableSlot.id == slot_id, claimable_condition(now)),
            {
                'status': SlotStatus.RESERVED,
                'reservation_id': reservation_id,
                'hold_expires_at': None,
            },
        )

    async def reserve_merge_holds(
        self,
        session: AsyncSession,
        slot_ids: Sequence[UUID],
        reservation_id: UUID,
    ) -> int:
        """HELD слоты объединения, принадлежащие бронированию -> RESERVED."""
        return await self._guarded_update(
            session,
            (
                TableSlot.id.in_(list(slot_ids)),
                TableSlot.status == SlotStatus.HELD,
                TableSlot.reservation_id == reservation_id,
            ),
            {'status': SlotStatus.RESERVED, 'hold_expires_at': None},
        )

    async def release(self, session: AsyncSession, slot_id: UUID) -> int:
        """Безусловно возвращает слот в AVAILABLE."""
        return await self._guarded_update(
            session,
            (TableSlot.id == slot_id,),
            {
                'status': SlotStatus.AVAILABLE,
                'hold_expires_at': None,
                'reservation_id': None,
            },
        )

    async def release_held(self, session: AsyncSession, slot_id: UUID) -> int:
        """HELD -> AVAILABLE независимо от срока удержания."""
        return await self._guarded_update(
            session,
            (TableSlot.id == slot_id, TableSlot.status == SlotStatus.HELD),
            {
                'status': SlotStatus.AVAILABLE,
                'hold_expires_at': None,
                'reservation_id': None,
            },
        )

    async def release_reserved(
        self,
        session: AsyncSession,
        slot_ids: Sequence[UUID],
        reservation_id: UUID,
    ) -> int:
        """RESERVED слоты, принадлежащие бронированию -> AVAILABLE."""
        return await self._guarded_update(
            session,
            (
                TableSlot.id.in_(list(slot_ids)),
                TableSlot.status == SlotStatus.RESERVED,
                TableSlot.reservation_id == reservation_id,
            ),
            {
                'status': SlotStatus.AVAILABLE,
                'hold_expires_at': None,
                'reservation_id': None,
            },
        )

    async def release_owned(
        self,
        session: AsyncSession,
        slot_ids: Sequence[UUID],
        reservation_id: UUID,
    ) -> int:
        """RESERVED или HELD слоты бронирования -> AVAILABLE."""
        return await self._guarded_update(
            session,
            (
                TableSlot.id.in_(list(slot_ids)),
                TableSlot.status.in_([SlotStatus.RESERVED, SlotStatus.HELD]),
                TableSlot.reservation_id == reservation_id,
            ),
            {
                'status': SlotStatus.AVAILABLE,
                'hold_expires_at': None,
                'reservation_id': None,
            },
        )

    async def release_expired_holds(
        self,
        session: AsyncSession,
        slot_ids: Sequence[UUID],
        now: datetime,
    ) -> int:
        """Освобождает слоты, всё ещё HELD с истёкшим сроком."""
        return await self._guarded_update(
            session,
            (
                TableSlot.id.in_(list(slot_ids)),
                TableSlot.status == SlotStatus.HELD,
                TableSlot.hold_expires_at < now,
            ),
            {
                'status': SlotStatus.AVAILABLE,
                'hold_expires_at': None,
                'reservation_id': None,
            },
        )

    async def get_expired_hold_ids(
        self,
        session: AsyncSession,
        restaurant_id: UUID,
        now: datetime,
        limit: int,
    ) -> list[UUID]:
        """Идентификаторы просроченных удержаний ресторана (одна пачка)."""
        result = await session.execute(
            select(TableSlot.id)
            .where(
                TableSlot.restaurant_id == restaurant_id,
                TableSlot.status == SlotStatus.HELD,
                TableSlot.hold_expires_at < now,
            )
            .order_by(TableSlot.hold_expires_at)
            .limit(limit),
        )
        return list(result.scalars().all())

    async def get_restaurants_with_expired_holds(
        self,
        session: AsyncSession,
        now: datetime,
    ) -> list[UUID]:
        """Рестораны, у которых есть просроченные удержания."""
        result = await session.execute(
            select(TableSlot.restaurant_id)
            .where(
                TableSlot.status == SlotStatus.HELD,
                TableSlot.hold_expires_at < now,
            )
            .distinct(),
        )
        return list(result.scalars().all())

    async def count_holds(
        self,
        session: AsyncSession,
        *predicates: Any,
    ) -> int:
        """Число удерживаемых слотов по дополнительным условиям."""
        result = await session.execute(
            select(func.count(TableSlot.id)).where(
                TableSlot.status == SlotStatus.HELD,
                *predicates,
            ),
        )
        return result.scalar_one()

    async def set_block_status(
        self,
        session: AsyncSession,
        restaurant_id: UUID,
        slot_date: date,
        start_time: time,
        end_time: time,
        *,
        from_status: SlotStatus,
        to_status: SlotStatus,
        section_id: Optional[UUID] = None,
    ) -> int:
        """Меняет статус слотов окна (AVAILABLE <-> BLOCKED)."""
        predicates = [
            TableSlot.restaurant_id == restaurant_id,
            TableSlot.slot_date == slot_date,
            TableSlot.start_time < end_time,
            TableSlot.end_time > start_time,
            TableSlot.status == from_status,
        ]
        if section_id is not None:
            predicates.append(
                TableSlot.table_id.in_(
                    select(RestaurantTable.id).where(
                        RestaurantTable.section_id == section_id,
                    ),
                ),
            )
        return await self._guarded_update(
            session,
            predicates,
            {'status': to_status},
        )

    async def get_existing_windows(
        self,
        session: AsyncSession,
        table_ids: Sequence[UUID],
        date_from: date,
        date_to: date,
    ) -> set[tuple[UUID, date, time, time]]:
        """Ключи уже существующих слотов для пропуска дубликатов."""
        result = await session.execute(
            select(
                TableSlot.table_id,
                TableSlot.slot_date,
                TableSlot.start_time,
                TableSlot.end_time,
            ).where(
                TableSlot.table_id.in_(list(table_ids)),
                TableSlot.slot_date >= date_from,
                TableSlot.slot_date <= date_to,
            ),
        )
        return {tuple(row) for row in result.all()}

    async def bulk_insert(
        self,
        session: AsyncSession,
        rows: list[dict[str, Any]],
        chunk_size: int,
    ) -> int:
        """Вставляет слоты пачками по chunk_size, возвращает число строк."""
        for offset in range(0, len(rows), chunk_size):
            await session.execute(
                insert(TableSlot),
                rows[offset:offset + chunk_size],
            )
        return len(rows)

    async def delete_stale(self, session: AsyncSession, today: date) -> int:
        """Удаляет прошедшие слоты без бронирования и удержания."""
        return await self.delete_where(
            session,
            TableSlot.slot_date < today,
            TableSlot.reservation_id.is_(None),
            TableSlot.hold_expires_at.is_(None),
        )


slot_repository = SlotRepository()
