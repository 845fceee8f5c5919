from uuid import UUID

from fastapi import APIRouter, status

from app.core.db import SessionMaker
from app.schemas.common import ErrorResponse
from app.schemas.reservation_request import (
    ConfirmedReservation,
    ConfirmReservationRequest,
    RequestStatusChanged,
    RequestStatusUpdate,
    ReservationRequestCreate,
    ReservationRequestCreated,
)
from app.services.reservation_coordinator import ReservationCoordinator
from app.utils.http import unwrap
from app.utils.logging_decorator import event_logger

router = APIRouter(
    prefix='/reservation-requests',
    tags=['Заявки на бронирование'],
)


@router.post(
    '/',
    response_model=ReservationRequestCreated,
    status_code=status.HTTP_201_CREATED,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
    },
)
@event_logger('Создана', 'ReservationRequest')
async def create_reservation_request(
    payload: ReservationRequestCreate,
    session_factory: SessionMaker,
) -> ReservationRequestCreated:
    """Создает заявку на бронирование по удержанному слоту.

    Args:
        payload: Данные заявки и идентификатор удержанного слота
        session_factory: Фабрика асинхронных сессий
    Returns:
        ReservationRequestCreated: Заявка и запись удержания
    Raises:
        HTTPException: 404 если удержание не найдено
        HTTPException: 409 если удержание истекло или не совпадает

    """
    result = await ReservationCoordinator.create_table_reservation_request(
        session_factory,
        payload,
    )
    return unwrap(result)


@router.post(
    '/{request_id}/confirm',
    response_model=ConfirmedReservation,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {'model': ErrorResponse},
    },
)
@event_logger('Подтверждена', 'ReservationRequest')
async def confirm_reservation_request(
    request_id: UUID,
    payload: ConfirmReservationRequest,
    session_factory: SessionMaker,
) -> ConfirmedReservation:
    """Подтверждает заявку: удержание превращается в бронирование.

    Args:
        request_id: UUID заявки
        payload: Сумма предоплаты, кто подтверждает, посадка сразу
        session_factory: Фабрика асинхронных сессий
    Returns:
        ConfirmedReservation: Номер бронирования, стол и остаток к оплате
    Raises:
        HTTPException: 404 если заявка или удержание не найдены
        HTTPException: 409 если удержание истекло или слот перехвачен

    """
    result = await ReservationCoordinator.confirm_table_reservation(
        session_factory,
        request_id,
        payload,
    )
    return unwrap(result)


@router.patch(
    '/{request_id}/status',
    response_model=RequestStatusChanged,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
@event_logger('Обновлена', 'ReservationRequest')
async def update_request_status(
    request_id: UUID,
    payload: RequestStatusUpdate,
    session_factory: SessionMaker,
) -> RequestStatusChanged:
    """Меняет статус заявки вне подтверждения."""
    result = await ReservationCoordinator.update_request_status(
        session_factory,
        request_id,
        payload,
    )
    return unwrap(result)
