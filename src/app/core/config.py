from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import URL

BASE_DIR = Path(__file__).resolve().parents[3]
INFRA_DIR = BASE_DIR / 'infra'

LOG_DIR = BASE_DIR / 'logs'


class Settings(BaseSettings):
    """Конфигурационный класс."""

    POSTGRES_DB: str
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_PORT: int
    POSTGRES_HOST: str

    REDIS_HOST: str
    REDIS_PORT: int
    REDIS_DB: int
    REDIS_PASSWORD: Optional[str] = None
    REDIS_CACHE_TTL: int = 300

    LOG_LEVEL: str = 'INFO'
    LOG_ROTATION: str = '10 MB'
    LOG_RETENTION: str = '14 days'

    RABBITMQ_DEFAULT_USER: str
    RABBITMQ_DEFAULT_PASS: str
    RABBITMQ_DEFAULT_VHOST: str
    RABBITMQ_DEFAULT_HOST: str
    RABBITMQ_DEFAULT_PORT: int

    # Значения по умолчанию, если у ресторана нет своей конфигурации
    DEFAULT_DWELL_MINUTES: int = 90
    DEFAULT_HOLD_MINUTES: int = 10
    DEFAULT_SLOT_MINUTES: int = 90
    DEFAULT_TURNOVER_BUFFER_MINUTES: int = 15
    TABLE_SET_PENDING_MINUTES: int = 15

    LOCK_MAX_WAIT_MS: int = 2000
    LOCK_TIMEOUT_MS: int = 8000
    TX_MAX_WAIT_MS: int = 5000
    TX_TIMEOUT_MS: int = 10000

    HOLD_CLEANUP_BATCH_SIZE: int = 50
    SLOT_INSERT_CHUNK_SIZE: int = 1000
    STALE_REQUEST_MINUTES: int = 30
    HOLD_SWEEP_INTERVAL_SECONDS: int = 60
    MERGE_SWEEP_INTERVAL_SECONDS: int = 300
    CLEANUP_INTERVAL_SECONDS: int = 3600

    PAYMENT_SUCCESS_CODE: str = 'IPG_S_1000'
    PAYMENT_GATEWAY_TIMEOUT: float = 10.0

    @property
    def db_url(self) -> URL:
        """Создает ссылку на подключение к Postgres."""
        return URL.create(
            drivername='postgresql+asyncpg',
            username=self.POSTGRES_USER,
            password=self.POSTGRES_PASSWORD,
            host=self.POSTGRES_HOST,
            port=self.POSTGRES_PORT,
            database=self.POSTGRES_DB,
        )

    @property
    def rabbit_url(self) -> str:
        """Создает ссылку на подключение к RabbitMQ."""
        return (
            'amqp://'
            f'{self.RABBITMQ_DEFAULT_USER}:{self.RABBITMQ_DEFAULT_PASS}@'
            f'{self.RABBITMQ_DEFAULT_HOST}:{self.RABBITMQ_DEFAULT_PORT}/'
            f'{self.RABBITMQ_DEFAULT_VHOST}'
        )

    @property
    def redis_url(self) -> str:
        """URL для подключения к Redis."""
        if self.REDIS_PASSWORD:
            return (
                f'redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}'
                f':{self.REDIS_PORT}/{self.REDIS_DB}'
            )
        return f'redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}'

    model_config = SettingsConfigDict(
        env_file=str(INFRA_DIR / '.env'),
        extra='allow',
    )


settings = Settings()
