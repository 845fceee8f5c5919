from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.schemas.common import ErrorResponse

VALIDATION_PREFIX = 'Value error, '


def _error_body(code: int, detail: Any) -> dict[str, Any]:
    """Тело ответа об ошибке в формате ErrorResponse.

    detail от unwrap уже содержит поля ErrorResponse. Прочие
    HTTPException (404 роутера, 405) приводятся к тому же виду.
    """
    if isinstance(detail, dict):
        body = {'code': code, **detail}
        body['detail'] = str(body.get('detail') or '')
    else:
        body = {'code': code, 'detail': str(detail) if detail else ''}
    return ErrorResponse.model_validate(body).model_dump(
        mode='json',
        exclude_none=True,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Ошибки валидации тела и параметров запроса как 422."""
    messages = [
        error['msg'].removeprefix(VALIDATION_PREFIX) for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=_error_body(
            status.HTTP_422_UNPROCESSABLE_CONTENT,
            '; '.join(messages) or 'Ошибка валидации данных',
        ),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Унифицирует формат ответа для HTTP исключений."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.status_code, exc.detail),
    )
