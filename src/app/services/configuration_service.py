from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.repositories.configuration import configuration_repository
from app.services.cache_service import cache_service


class ReservationSettings(BaseModel):
    """Итоговые настройки бронирования столов для ресторана."""

    dwell_minutes: int
    hold_minutes: int
    slot_minutes: int
    turnover_buffer_minutes: int
    requires_advance_payment: bool = False


def _defaults() -> ReservationSettings:
    return ReservationSettings(
        dwell_minutes=settings.DEFAULT_DWELL_MINUTES,
        hold_minutes=settings.DEFAULT_HOLD_MINUTES,
        slot_minutes=settings.DEFAULT_SLOT_MINUTES,
        turnover_buffer_minutes=settings.DEFAULT_TURNOVER_BUFFER_MINUTES,
    )


async def get_reservation_settings(
    session: AsyncSession,
    restaurant_id: UUID,
) -> ReservationSettings:
    """Настройки ресторана: своя строка, строка платформы или значения
    по умолчанию из конфигурации приложения. Результат кешируется.
    """
    cached = await cache_service.get_settings(restaurant_id)
    if cached is not None:
        return ReservationSettings.model_validate(cached)

    config = await configuration_repository.get_for_restaurant(
        session,
        restaurant_id,
    )
    if config is None:
        resolved = _defaults()
    else:
        resolved = ReservationSettings(
            dwell_minutes=config.default_dwell_minutes,
            hold_minutes=config.hold_minutes,
            slot_minutes=config.default_slot_minutes,
            turnover_buffer_minutes=config.turnover_buffer_minutes,
            requires_advance_payment=config.requires_advance_payment,
        )
    await cache_service.store_settings(restaurant_id, resolved.model_dump())
    return resolved
