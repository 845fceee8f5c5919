from app.services.cache_service import CacheService, cache_service


async def get_cache_service() -> CacheService:
    """Зависимость для получения клиента Redis."""
    return cache_service
