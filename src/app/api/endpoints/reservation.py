from uuid import UUID

from fastapi import APIRouter, status

from app.core.db import SessionMaker
from app.schemas.cancellation import (
    CancellationResult,
    CancelReservationRequest,
)
from app.schemas.common import ErrorResponse
from app.schemas.reservation import (
    ReassignTableRequest,
    ReservationDetailsUpdate,
    ReservationDetailsUpdated,
    TableReassigned,
)
from app.schemas.table_set import MergeTablesRequest, TableSetInfo
from app.services.cancellation_engine import CancellationEngine
from app.services.reservation_coordinator import ReservationCoordinator
from app.services.table_set_merger import TableSetMerger
from app.utils.http import unwrap
from app.utils.logging_decorator import event_logger

router = APIRouter(prefix='/reservations', tags=['Бронирования'])


@router.post(
    '/{reservation_id}/reassign',
    response_model=TableReassigned,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
    },
)
@event_logger('Обновлена', 'TableAssignment')
async def reassign_table(
    reservation_id: UUID,
    payload: ReassignTableRequest,
    session_factory: SessionMaker,
) -> TableReassigned:
    """Переносит бронирование на другой стол.

    Args:
        reservation_id: UUID бронирования
        payload: Стол назначения, слот или окно, кто и почему переносит
        session_factory: Фабрика асинхронных сессий
    Returns:
        TableReassigned: Новый стол и слот бронирования
    Raises:
        HTTPException: 404 если бронирование или стол не найдены
        HTTPException: 409 если стол занят или не прошло время пересадки

    """
    result = await ReservationCoordinator.reassign_table_reservation(
        session_factory,
        reservation_id,
        payload,
    )
    return unwrap(result)


@router.patch(
    '/{reservation_id}/details',
    response_model=ReservationDetailsUpdated,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
@event_logger('Обновлена', 'Reservation')
async def update_reservation_details(
    reservation_id: UUID,
    payload: ReservationDetailsUpdate,
    session_factory: SessionMaker,
) -> ReservationDetailsUpdated:
    """Меняет число гостей и при необходимости стол бронирования."""
    result = await ReservationCoordinator.update_table_reservation_details(
        session_factory,
        reservation_id,
        payload,
    )
    return unwrap(result)


@router.post(
    '/{reservation_id}/cancel',
    response_model=CancellationResult,
    responses={
        status.HTTP_400_BAD_REQUEST: {'model': ErrorResponse},
        status.HTTP_403_FORBIDDEN: {'model': ErrorResponse},
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
@event_logger('Создана', 'CancellationRequest')
async def cancel_reservation(
    reservation_id: UUID,
    payload: CancelReservationRequest,
    session_factory: SessionMaker,
) -> CancellationResult:
    """Отменяет бронирование и рассчитывает возврат.

    Args:
        reservation_id: UUID бронирования
        payload: Клиент, причина и момент отмены
        session_factory: Фабрика асинхронных сессий
    Returns:
        CancellationResult: Номер отмены, возврат и освобождённые столы
    Raises:
        HTTPException: 403 если отмену запросил не владелец
        HTTPException: 409 если бронирование уже отменено или прошло

    """
    result = await CancellationEngine.process_table_cancellation_transactional(
        session_factory,
        reservation_id,
        payload,
    )
    return unwrap(result)


@router.post(
    '/{reservation_id}/table-sets',
    response_model=TableSetInfo,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
@event_logger('Создана', 'TableSet')
async def merge_tables(
    reservation_id: UUID,
    payload: MergeTablesRequest,
    session_factory: SessionMaker,
) -> TableSetInfo:
    """Объединяет дополнительные столы под бронирование."""
    result = await TableSetMerger.merge_tables(
        session_factory,
        reservation_id,
        payload.additional_table_ids,
        payload.merged_by,
    )
    return unwrap(result)
