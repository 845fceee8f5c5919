from uuid import UUID

from fastapi import APIRouter, status

from app.core.db import SessionMaker
from app.schemas.common import ErrorResponse
from app.schemas.slot import (
    AvailabilityChange,
    AvailabilityWindow,
    SlotGenerationRequest,
    SlotGenerationResult,
)
from app.services.slot_generation import SlotGenerationService
from app.utils.http import unwrap
from app.utils.logging_decorator import event_logger

router = APIRouter(
    prefix='/restaurants/{restaurant_id}/slots',
    tags=['Слоты столов'],
)


@router.post(
    '/generate',
    response_model=SlotGenerationResult,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
    },
)
@event_logger('Созданы', 'TableSlot')
async def generate_slots(
    restaurant_id: UUID,
    payload: SlotGenerationRequest,
    session_factory: SessionMaker,
) -> SlotGenerationResult:
    """Создает слоты столов ресторана на период вперёд.

    Args:
        restaurant_id: UUID ресторана
        payload: Период, рабочее время, длительность слота и буфер
        session_factory: Фабрика асинхронных сессий
    Returns:
        SlotGenerationResult: Число созданных и пропущенных слотов
    Raises:
        HTTPException: 404 если указанные столы не найдены

    """
    result = await SlotGenerationService.generate_table_slots(
        session_factory,
        restaurant_id,
        payload,
    )
    return unwrap(result)


@router.post('/block', response_model=AvailabilityChange)
@event_logger('Обновлены', 'TableSlot')
async def block_slots(
    restaurant_id: UUID,
    window: AvailabilityWindow,
    session_factory: SessionMaker,
) -> AvailabilityChange:
    """Блокирует свободные слоты в окне."""
    result = await SlotGenerationService.block_availability(
        session_factory,
        restaurant_id,
        window,
    )
    return unwrap(result)


@router.post('/unblock', response_model=AvailabilityChange)
@event_logger('Обновлены', 'TableSlot')
async def unblock_slots(
    restaurant_id: UUID,
    window: AvailabilityWindow,
    session_factory: SessionMaker,
) -> AvailabilityChange:
    """Снимает блокировку со слотов в окне."""
    result = await SlotGenerationService.unblock_availability(
        session_factory,
        restaurant_id,
        window,
    )
    return unwrap(result)
