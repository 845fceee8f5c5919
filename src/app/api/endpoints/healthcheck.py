from typing import Dict

from fastapi import APIRouter, Depends
from loguru import logger
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.db import DbSession
from app.core.dependencies import get_cache_service
from app.services.cache_service import CacheService

router = APIRouter(prefix='/healthcheck', tags=['Healthcheck'])


@router.get('/db')
async def db_health(session: DbSession) -> Dict[str, str]:
    """Проверка состояния БД."""
    try:
        await session.execute(text('SELECT 1'))
    except SQLAlchemyError as e:
        logger.error(f'Ошибка проверки БД: {str(e)}')
        return {'status': 'error', 'details': str(e)}
    logger.debug('Проверка БД: успешно')
    return {'status': 'ok'}


@router.get('/redis')
async def redis_health(
    cache: CacheService = Depends(get_cache_service),
) -> Dict[str, str]:
    """Проверка состояния Redis."""
    if cache.redis is None:
        logger.error('Redis не подключен')
        return {'status': 'error', 'details': 'Redis не подключен'}
    try:
        await cache.redis.ping()
    except (RedisError, OSError) as e:
        logger.error(f'Ошибка проверки Redis: {str(e)}')
        return {'status': 'error', 'details': str(e)}
    logger.debug('Проверка Redis: успешно')
    return {'status': 'ok'}
