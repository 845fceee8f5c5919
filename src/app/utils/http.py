from typing import Any

from fastapi import HTTPException, status

from app.schemas.common import ErrorResponse, OperationResult
from app.utils.enums import ErrorCode

ERROR_STATUS = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.TABLE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SLOT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.REQUEST_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESERVATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TABLE_SET_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.MEAL_SERVICE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.HOLD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.UNAUTHORIZED_CANCELLATION: status.HTTP_403_FORBIDDEN,
    ErrorCode.INVALID_RESERVATION_TIME: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NO_REFUND_POLICY: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def unwrap(result: OperationResult) -> Any:
    """Возвращает данные успешной операции или поднимает HTTPException.

    Коды ошибок, не перечисленные в ERROR_STATUS, означают конфликт
    состояния и отдаются как 409.
    """
    if result.success:
        return result.data
    status_code = ERROR_STATUS.get(
        result.error_code,
        status.HTTP_409_CONFLICT,
    )
    raise HTTPException(
        status_code=status_code,
        detail=ErrorResponse(
            code=status_code,
            detail=result.detail or '',
            error_code=result.error_code,
            context=result.context or None,
        ).model_dump(mode='json', exclude_none=True),
    )
