from typing import Optional
from uuid import UUID

from fastapi import APIRouter, status

from app.core.db import SessionMaker
from app.schemas.common import ErrorResponse
from app.schemas.slot import (
    ExtendHoldRequest,
    HeldSlot,
    HoldSlotRequest,
    HoldStatistics,
)
from app.services.hold_manager import HoldManager
from app.utils.http import unwrap
from app.utils.logging_decorator import event_logger

router = APIRouter(prefix='/holds', tags=['Удержания'])


@router.post(
    '/',
    response_model=HeldSlot,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
    },
)
@event_logger('Создана', 'TableSlot')
async def hold_slot(
    payload: HoldSlotRequest,
    session_factory: SessionMaker,
) -> HeldSlot:
    """Находит подходящий стол и удерживает его слот.

    Args:
        payload: Ресторан, дата, время, число гостей и желаемая секция
        session_factory: Фабрика асинхронных сессий
    Returns:
        HeldSlot: Удержанный слот и срок удержания
    Raises:
        HTTPException: 409 если свободного стола нет или слот перехвачен

    """
    result = await HoldManager.find_and_hold_best_slot(
        session_factory,
        payload,
    )
    return unwrap(result)


@router.get('/stats', response_model=HoldStatistics)
async def hold_statistics(
    session_factory: SessionMaker,
    restaurant_id: Optional[UUID] = None,
) -> HoldStatistics:
    """Статистика удержаний: всего, просроченных и действующих."""
    result = await HoldManager.get_hold_statistics(
        session_factory,
        restaurant_id,
    )
    return unwrap(result)


@router.post(
    '/{slot_id}/extend',
    response_model=HeldSlot,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
async def extend_hold(
    slot_id: UUID,
    payload: ExtendHoldRequest,
    session_factory: SessionMaker,
) -> HeldSlot:
    """Продлевает действующее удержание слота."""
    result = await HoldManager.extend_hold(
        session_factory,
        slot_id,
        payload.extra_minutes,
    )
    return unwrap(result)


@router.delete(
    '/{slot_id}',
    status_code=status.HTTP_204_NO_CONTENT,
    responses={status.HTTP_404_NOT_FOUND: {'model': ErrorResponse}},
)
async def release_slot(
    slot_id: UUID,
    session_factory: SessionMaker,
) -> None:
    """Освобождает слот и удаляет связанные с ним удержания."""
    unwrap(await HoldManager.release_table_slot(session_factory, slot_id))
