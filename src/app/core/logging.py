import logging
import sys
from pathlib import Path

from loguru import logger

from app.core.config import LOG_DIR, settings
from app.core.constants import (
    FILE_LOG_FORMAT,
    INTERCEPTED_LOGGERS,
    LOG_COMPRESSION,
    LOG_DEPTH,
    LOG_ENCODING,
    LOG_FORMAT,
    NO_CONTEXT,
    OPERATIONS_LOG_FILE,
    OPERATIONS_LOG_FORMAT,
    SYSTEM_ACTOR,
    get_logger_header,
)


class InterceptHandler(logging.Handler):
    """Передаёт записи uvicorn, sqlalchemy и celery в loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.opt(depth=LOG_DEPTH).log(level, record.getMessage())


def intercept_stdlib_loggers() -> None:
    """Подменяет обработчики стандартных логгеров на InterceptHandler.

    Повторный вызов ничего не добавляет: обработчики заменяются, а не
    дописываются.
    """
    handler = InterceptHandler()
    logging.basicConfig(handlers=[handler], level=logging.NOTSET, force=True)
    for name in INTERCEPTED_LOGGERS:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [handler]
        std_logger.propagate = False


def _with_context(record: dict) -> None:
    """Заполняет поля контекста, не заданные через contextualize."""
    extra = record['extra']
    extra.setdefault('actor', SYSTEM_ACTOR)
    extra.setdefault('request_id', NO_CONTEXT)
    extra.setdefault('operation', NO_CONTEXT)


def _is_operation_record(record: dict) -> bool:
    return record['extra'].get('operation', NO_CONTEXT) != NO_CONTEXT


def _prepare_file(path: Path) -> Path:
    """Создаёт каталог логов и пишет заголовок в новый файл."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists() or path.stat().st_size == 0:
        with open(path, 'a', encoding=LOG_ENCODING) as f:
            f.write(get_logger_header())
    return path


def configure_logging(log_file_name: str = 'app.log') -> None:
    """Настраивает sinks loguru для API или воркера.

    Пишет в консоль, в общий файл и в отдельный журнал операций
    бронирования: туда попадают только записи, сделанные внутри
    operation_result, с именем операции в контексте.

    Args:
        log_file_name: Имя общего файла. API пишет в app.log,
            воркер Celery в worker.log.

    """
    common = {
        'enqueue': True,
        'backtrace': False,
        'diagnose': False,
    }
    logger.remove()
    logger.configure(patcher=_with_context)
    logger.add(
        sys.stdout,
        level=settings.LOG_LEVEL,
        format=LOG_FORMAT,
        colorize=True,
        **common,
    )
    for file_name, log_format, log_filter in (
        (log_file_name, FILE_LOG_FORMAT, None),
        (OPERATIONS_LOG_FILE, OPERATIONS_LOG_FORMAT, _is_operation_record),
    ):
        logger.add(
            _prepare_file(LOG_DIR / file_name),
            level=settings.LOG_LEVEL,
            format=log_format,
            filter=log_filter,
            rotation=settings.LOG_ROTATION,
            retention=settings.LOG_RETENTION,
            compression=LOG_COMPRESSION,
            encoding=LOG_ENCODING,
            **common,
        )
    intercept_stdlib_loggers()
