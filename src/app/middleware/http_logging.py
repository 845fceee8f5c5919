import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from loguru import logger

from app.core.constants import (
    HTTP_LOG_TEMPLATE,
    MS_IN_SECOND,
    NO_CONTEXT,
    NOISE_PATHS,
    SYSTEM_ACTOR,
)

REQUEST_ID_HEADER = 'X-Request-ID'
ACTOR_HEADER = 'X-Actor'


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get('x-forwarded-for')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.client.host if request.client else NO_CONTEXT


def _level_for(status: int) -> str:
    """Уровень записи по коду ответа."""
    if status >= 500:
        return 'ERROR'
    return 'WARNING' if status >= 400 else 'INFO'


async def logging_middleware(
    request: Request,
    call_next: Callable,
) -> Response:
    """Middleware для логирования HTTP-запросов.

    Весь запрос обрабатывается в контексте loguru с request_id и
    инициатором (заголовок X-Actor, кассир или менеджер), поэтому
    записи операций бронирования связаны с вызвавшим их запросом.
    Итоговая строка содержит метод, путь, статус, время, IP и
    user-agent. Служебные пути из NOISE_PATHS пишутся только при
    ошибке сервера.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
    actor = request.headers.get(ACTOR_HEADER) or SYSTEM_ACTOR
    path = request.url.path
    started = time.perf_counter()

    status = 500
    response: Optional[Response] = None
    with logger.contextualize(request_id=request_id, actor=actor):
        try:
            response = await call_next(request)
            status = response.status_code
        except Exception:
            logger.opt(exception=True).error(
                f'Необработанное исключение: {request.method} {path}',
            )
            raise
        finally:
            level = _level_for(status)
            if level == 'ERROR' or path not in NOISE_PATHS:
                logger.log(
                    level,
                    HTTP_LOG_TEMPLATE,
                    method=request.method,
                    path=path,
                    status=status,
                    ms=(time.perf_counter() - started) * MS_IN_SECOND,
                    ip=_client_ip(request),
                    ua=request.headers.get('user-agent', NO_CONTEXT),
                )

    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response
