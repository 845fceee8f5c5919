from datetime import datetime

# Настройки логгера
MS_IN_SECOND = 1000
LOG_DEPTH = 7
LOG_ENCODING = 'utf-8'
LOG_COMPRESSION = 'zip'
LOG_FORMAT = (
    '<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | '
    '<level>{level: <8}</level> | '
    '{extra[actor]} [{extra[request_id]}] {extra[operation]} | '
    '<cyan>{name}</cyan>:<cyan>{line}</cyan> | '
    '<level>{message}</level>'
)
FILE_LOG_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | '
    '{extra[actor]} [{extra[request_id]}] {extra[operation]} | '
    '{name}:{function}:{line} | {message}'
)
OPERATIONS_LOG_FORMAT = (
    '{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<8} | {extra[operation]} | '
    '{extra[actor]} | {message}'
)
OPERATIONS_LOG_FILE = 'operations.log'
NO_CONTEXT = '-'
INTERCEPTED_LOGGERS = (
    'uvicorn',
    'uvicorn.error',
    'sqlalchemy',
    'celery',
)
NOISE_PATHS = {'/docs', '/openapi.json', '/health', '/livez', '/readyz'}
HTTP_LOG_TEMPLATE = (
    '{method} {path} -> {status} ({ms:.1f} ms)\n    ip={ip}\n    ua={ua}\n'
)

# Форматы и префиксы идентификаторов
TIME_FORMAT = '%H:%M:%S'
RESERVATION_NUMBER_PREFIX = 'RT'
RESERVATION_NUMBER_DIGITS = 4
CANCELLATION_NUMBER_PREFIX = 'CAN'
SYSTEM_ACTOR = 'SYSTEM'

# Кеш конфигураций ресторанов
CONFIG_CACHE_KEY = 'reservation-config:{restaurant_id}'

FULL_REFUND_PERCENTAGE = 100
HUNDRED = 100


def get_logger_header() -> str:
    """Формирует заголовок для нового лог-файла."""
    return (
        '\n'
        '================= LOGGER - TABLE_RESERVATIONS =================\n'
        f'Date: {datetime.now():%Y-%m-%d %H:%M:%S}\n'
        '================================================================\n\n'
    )
