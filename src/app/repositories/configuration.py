from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.models import CleanupLog, MealService, ReservationConfiguration
from app.repositories.base import CRUDBase


class ConfigurationRepository(CRUDBase[ReservationConfiguration]):
    """Репозиторий настроек бронирования ресторанов."""

    def __init__(self) -> None:
        """Инициализация репозитория настроек."""
        super().__init__(ReservationConfiguration)

    async def get_for_restaurant(
        self,
        session: AsyncSession,
        restaurant_id: UUID,
    ) -> Optional[ReservationConfiguration]:
        """Настройки ресторана, иначе строка платформы по умолчанию."""
        own = await self.get(
            session,
            restaurant_id=restaurant_id,
            is_active=True,
        )
        if own is not None:
            return own
        return await self.get(
            session,
            ReservationConfiguration.restaurant_id.is_(None),
            is_active=True,
        )


class MealServiceRepository(CRUDBase[MealService]):
    """Репозиторий услуг питания."""

    def __init__(self) -> None:
        """Инициализация репозитория услуг питания."""
        super().__init__(MealService)


class CleanupLogRepository(CRUDBase[CleanupLog]):
    """Репозиторий журнала очисток."""

    def __init__(self) -> None:
        """Инициализация репозитория журнала очисток."""
        super().__init__(CleanupLog)


configuration_repository = ConfigurationRepository()
meal_service_repository = MealServiceRepository()
cleanup_log_repository = CleanupLogRepository()
