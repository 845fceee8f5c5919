from datetime import date, datetime, time
from typing import List, Optional
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import SYSTEM_ACTOR
from app.models import TableSet
from app.repositories.base import CRUDBase
from app.utils.enums import TableSetStatus

LIVE_STATUSES = (TableSetStatus.PENDING_MERGE, TableSetStatus.ACTIVE)


class TableSetRepository(CRUDBase[TableSet]):
    """Репозиторий объединений столов."""

    def __init__(self) -> None:
        """Инициализация репозитория объединений."""
        super().__init__(TableSet)

    async def get_live_for_reservation(
        self,
        session: AsyncSession,
        reservation_id: UUID,
    ) -> Optional[TableSet]:
        """Действующее (PENDING_MERGE/ACTIVE) объединение бронирования."""
        return await self.get(
            session,
            TableSet.status.in_(LIVE_STATUSES),
            reservation_id=reservation_id,
            order_by=(TableSet.created_at.desc(),),
        )

    async def get_live_for_slot(
        self,
        session: AsyncSession,
        reservation_id: UUID,
        slot_date: date,
        slot_start_time: time,
    ) -> Optional[TableSet]:
        """Действующее объединение бронирования на конкретное окно."""
        return await self.get(
            session,
            TableSet.status.in_(LIVE_STATUSES),
            reservation_id=reservation_id,
            slot_date=slot_date,
            slot_start_time=slot_start_time,
        )

    async def get_live_on_date(
        self,
        session: AsyncSession,
        slot_date: date,
    ) -> List[TableSet]:
        """Все действующие объединения на дату."""
        return await self.get(
            session,
            TableSet.status.in_(LIVE_STATUSES),
            slot_date=slot_date,
            many=True,
        )

    async def expire_pending(
        self,
        session: AsyncSession,
        now: datetime,
    ) -> int:
        """PENDING_MERGE с истёкшим expires_at -> EXPIRED."""
        result = await session.execute(
            update(TableSet)
            .where(
                TableSet.status == TableSetStatus.PENDING_MERGE,
                TableSet.expires_at < now,
            )
            .values(
                status=TableSetStatus.EXPIRED,
                dissolved_at=now,
                dissolved_by=SYSTEM_ACTOR,
            )
            .execution_options(synchronize_session=False),
        )
        return result.rowcount


table_set_repository = TableSetRepository()
