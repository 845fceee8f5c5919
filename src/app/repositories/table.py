from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import RestaurantTable
from app.repositories.base import CRUDBase


class TableRepository(CRUDBase[RestaurantTable]):
    """Репозиторий для операций со столами."""

    def __init__(self) -> None:
        """Инициализация репозитория столов."""
        super().__init__(RestaurantTable)

    async def get_active(
        self,
        session: AsyncSession,
        table_id: UUID,
    ) -> Optional[RestaurantTable]:
        """Получает активный стол по идентификатору."""
        return await self.get(session, id=table_id, is_active=True)

    async def get_candidates(
        self,
        session: AsyncSession,
        restaurant_id: UUID,
        *,
        min_capacity: Optional[int] = None,
        section_id: Optional[UUID] = None,
        largest_first: bool = False,
    ) -> List[RestaurantTable]:
        """Активные столы ресторана в порядке перебора при удержании.

        Без largest_first: сначала наименьшая достаточная вместимость,
        затем id. С largest_first: сначала самые большие столы.
        """
        conditions = [
            RestaurantTable.restaurant_id == restaurant_id,
            RestaurantTable.is_active.is_(True),
        ]
        if min_capacity is not None:
            conditions.append(RestaurantTable.seating_capacity >= min_capacity)
        if section_id is not None:
            conditions.append(RestaurantTable.section_id == section_id)
        capacity_order = (
            RestaurantTable.seating_capacity.desc()
            if largest_first
            else RestaurantTable.seating_capacity.asc()
        )
        return await self.get(
            session,
            *conditions,
            many=True,
            order_by=(capacity_order, RestaurantTable.id),
        )

    async def get_many(
        self,
        session: AsyncSession,
        table_ids: list[UUID],
    ) -> List[RestaurantTable]:
        """Получает столы по списку идентификаторов."""
        if not table_ids:
            return []
        return await self.get(
            session,
            RestaurantTable.id.in_(table_ids),
            many=True,
        )


table_repository = TableRepository()
