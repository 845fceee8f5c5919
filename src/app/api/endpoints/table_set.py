from uuid import UUID

from fastapi import APIRouter, status

from app.core.db import SessionMaker
from app.schemas.common import ErrorResponse
from app.schemas.table_set import (
    TableSetActionRequest,
    TableSetDissolved,
    TableSetInfo,
)
from app.services.table_set_merger import TableSetMerger
from app.utils.http import unwrap

router = APIRouter(prefix='/table-sets', tags=['Объединения столов'])


@router.post(
    '/{table_set_id}/activate',
    response_model=TableSetInfo,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
async def activate_table_set(
    table_set_id: UUID,
    payload: TableSetActionRequest,
    session_factory: SessionMaker,
) -> TableSetInfo:
    """Подтверждает объединение до истечения удержаний."""
    result = await TableSetMerger.activate_table_set(
        session_factory,
        table_set_id,
        payload.performed_by,
    )
    return unwrap(result)


@router.post(
    '/{table_set_id}/dissolve',
    response_model=TableSetDissolved,
    responses={
        status.HTTP_404_NOT_FOUND: {'model': ErrorResponse},
        status.HTTP_409_CONFLICT: {'model': ErrorResponse},
    },
)
async def dissolve_table_set(
    table_set_id: UUID,
    payload: TableSetActionRequest,
    session_factory: SessionMaker,
) -> TableSetDissolved:
    """Расформировывает объединение, основной стол остаётся за гостем."""
    result = await TableSetMerger.dissolve_table_set(
        session_factory,
        table_set_id,
        payload.performed_by,
    )
    return unwrap(result)
