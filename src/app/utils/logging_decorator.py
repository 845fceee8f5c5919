import json
from functools import wraps
from typing import Any, Callable, Optional

from fastapi import HTTPException
from loguru import logger
from pydantic import BaseModel
from pydantic_core import PydanticSerializationError


def _serialize(obj: Any) -> Optional[dict]:
    """Сериализует pydantic-модель запроса в словарь для логирования."""
    if not isinstance(obj, BaseModel):
        return None
    try:
        return obj.model_dump(mode='json', exclude_none=True)
    except PydanticSerializationError as e:
        logger.debug(f'Не удалось сериализовать {type(obj).__name__}: {e}')
        return None


def event_logger(event_type: str, entity: str) -> Callable:
    """Декоратор для логирования изменяющих эндпоинтов.

    После успешного вызова пишет в лог тип события, сущность и тело
    запроса. Ответ с ошибкой операции (HTTPException) логируется как
    предупреждение с кодом ошибки и пробрасывается дальше.

    Args:
        event_type: Тип события ('Создана', 'Обновлена', ...).
        entity: Название сущности, которую меняет операция.

    Returns:
        Callable: Декоратор для асинхронного эндпоинта.

    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            payload = next(
                (
                    data
                    for data in map(_serialize, kwargs.values())
                    if data is not None
                ),
                None,
            )
            try:
                result = await func(*args, **kwargs)
            except HTTPException as e:
                error_code = (
                    e.detail.get('error_code')
                    if isinstance(e.detail, dict)
                    else None
                )
                logger.warning(
                    f'Операция с "{entity}" отклонена: '
                    f'{e.status_code} {error_code or ""}'.rstrip(),
                )
                raise
            if payload is not None:
                logger.info(
                    f'{event_type} запись "{entity}" с параметрами:\n'
                    f'{json.dumps(payload, ensure_ascii=False, indent=4)}',
                )
            return result

        return wrapper

    return decorator
