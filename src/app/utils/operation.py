from functools import wraps
from typing import Any, Awaitable, Callable

from loguru import logger
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ReservationError
from app.schemas.common import OperationResult
from app.utils.enums import ErrorCode

RESERVATION_NUMBER_COLUMN = 'reservation_number'
INTERNAL_ERROR_DETAIL = 'Внутренняя ошибка при обработке бронирования'


def operation_result(
    operation: str,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Декоратор внешней границы операции бронирования.

    Оборачивает корутину, открывающую собственную транзакцию, и
    превращает её исход в OperationResult. Доменные ошибки возвращаются
    со своим кодом, конфликт номера бронирования получает отдельный
    код, любые прочие сбои логируются целиком и скрываются за
    INTERNAL_ERROR. Исключения через границу не проходят.

    Args:
        operation: Имя операции для логов.

    Returns:
        Callable: Декоратор.

    """

    def decorator(
        func: Callable[..., Awaitable[Any]],
    ) -> Callable[..., Awaitable[OperationResult]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            with logger.contextualize(operation=operation):
                try:
                    data = await func(*args, **kwargs)
                except ReservationError as e:
                    logger.warning(
                        f'Операция "{operation}" отклонена: '
                        f'{e.code.value} ({e.detail})',
                    )
                    return OperationResult.fail(e.code, e.detail, e.context)
                except IntegrityError as e:
                    if RESERVATION_NUMBER_COLUMN in str(e.orig):
                        logger.warning(
                            f'Операция "{operation}": '
                            'коллизия номера бронирования',
                        )
                        return OperationResult.fail(
                            ErrorCode.RESERVATION_NUMBER_CONFLICT,
                            'Номер бронирования уже занят, повторите попытку',
                        )
                    logger.exception(
                        f'Нарушение целостности в операции "{operation}"',
                    )
                    return OperationResult.fail(
                        ErrorCode.INTERNAL_ERROR,
                        INTERNAL_ERROR_DETAIL,
                    )
                except Exception:
                    logger.exception(f'Сбой операции "{operation}"')
                    return OperationResult.fail(
                        ErrorCode.INTERNAL_ERROR,
                        INTERNAL_ERROR_DETAIL,
                    )
                return OperationResult.ok(data)

        return wrapper

    return decorator
