from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import (
    Reservation,
    ReservationFinancialData,
    ReservationModificationHistory,
    TableAssignment,
)
from app.repositories.base import CRUDBase
from app.utils.enums import ReservationStatus


class ReservationRepository(CRUDBase[Reservation]):
    """Репозиторий подтверждённых бронирований."""

    def __init__(self) -> None:
        """Инициализация репозитория бронирований."""
        super().__init__(Reservation)

    async def get_active_on_date(
        self,
        session: AsyncSession,
        reservation_date: date,
        statuses: tuple[ReservationStatus, ...],
        reservation_ids: Optional[list[UUID]] = None,
        table_id: Optional[UUID] = None,
    ) -> List[Reservation]:
        """Бронирования на дату с заданными статусами.

        Отбор либо по прямому назначению на table_id, либо по списку
        reservation_ids (бронирования объединённых столов).
        """
        conditions = [
            Reservation.reservation_date == reservation_date,
            Reservation.status.in_(statuses),
        ]
        by_table = None
        if table_id is not None:
            by_table = Reservation.id.in_(
                select(TableAssignment.reservation_id).where(
                    TableAssignment.assigned_table_id == table_id,
                ),
            )
        by_ids = None
        if reservation_ids:
            by_ids = Reservation.id.in_(reservation_ids)
        if by_table is not None and by_ids is not None:
            conditions.append(by_table | by_ids)
        elif by_table is not None:
            conditions.append(by_table)
        elif by_ids is not None:
            conditions.append(by_ids)
        return await self.get(
            session,
            *conditions,
            many=True,
            order_by=(Reservation.reservation_time,),
        )


class AssignmentRepository(CRUDBase[TableAssignment]):
    """Репозиторий назначений столов."""

    def __init__(self) -> None:
        """Инициализация репозитория назначений."""
        super().__init__(TableAssignment)

    async def get_for_reservation(
        self,
        session: AsyncSession,
        reservation_id: UUID,
    ) -> Optional[TableAssignment]:
        """Назначение стола бронированию."""
        return await self.get(session, reservation_id=reservation_id)


class FinancialDataRepository(CRUDBase[ReservationFinancialData]):
    """Репозиторий финансовых данных бронирований."""

    def __init__(self) -> None:
        """Инициализация репозитория финансовых данных."""
        super().__init__(ReservationFinancialData)


class ModificationHistoryRepository(CRUDBase[ReservationModificationHistory]):
    """Репозиторий журнала изменений бронирований."""

    def __init__(self) -> None:
        """Инициализация репозитория журнала изменений."""
        super().__init__(ReservationModificationHistory)


reservation_repository = ReservationRepository()
assignment_repository = AssignmentRepository()
financial_data_repository = FinancialDataRepository()
modification_history_repository = ModificationHistoryRepository()
