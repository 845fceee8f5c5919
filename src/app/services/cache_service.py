import json
from typing import Any, Optional
from uuid import UUID

from loguru import logger
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.constants import CONFIG_CACHE_KEY


class CacheService:
    """Кеш настроек бронирования ресторанов в Redis.

    Кеш необязателен: без подключения или при ошибке Redis чтение
    даёт промах, а запись пропускается, и настройки читаются из БД.
    """

    def __init__(self, ttl: int = settings.REDIS_CACHE_TTL) -> None:
        self.redis: Optional[Redis] = None
        self.ttl = ttl

    async def connect(self) -> None:
        """Подключается к Redis, при неудаче работает без кеша."""
        client = Redis.from_url(
            settings.redis_url,
            encoding='utf-8',
            decode_responses=True,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.error(
                f'Redis недоступен, настройки читаются из БД: {str(e)}',
            )
            await client.aclose()
            return
        self.redis = client
        logger.info('Кеш настроек подключен к Redis')

    async def disconnect(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            logger.info('Кеш настроек отключен')

    async def get_settings(self, restaurant_id: UUID) -> Optional[dict]:
        """Настройки ресторана из кеша или None при промахе."""
        if self.redis is None:
            return None
        key = CONFIG_CACHE_KEY.format(restaurant_id=restaurant_id)
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f'Ошибка чтения кеша {key}: {str(e)}')
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f'Повреждённое значение в кеше {key}')
            return None

    async def store_settings(
        self,
        restaurant_id: UUID,
        values: dict[str, Any],
    ) -> None:
        """Кладёт настройки ресторана в кеш на ttl секунд."""
        if self.redis is None:
            return
        key = CONFIG_CACHE_KEY.format(restaurant_id=restaurant_id)
        try:
            await self.redis.setex(key, self.ttl, json.dumps(values))
        except RedisError as e:
            logger.warning(f'Ошибка записи в кеш {key}: {str(e)}')


cache_service = CacheService()
