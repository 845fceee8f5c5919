from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings
from app.core.logging import configure_logging

celery_app = Celery(broker=settings.rabbit_url, backend='rpc://')

celery_app.conf.update(
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    enable_utc=True,
    include=['celery_app.tasks'],
    task_routes={
        'celery_app.tasks.*': 'default',
    },
    beat_schedule={
        'expire-stale-holds': {
            'task': 'expire-stale-holds',
            'schedule': settings.HOLD_SWEEP_INTERVAL_SECONDS,
        },
        'expire-stale-merges': {
            'task': 'expire-stale-merges',
            'schedule': settings.MERGE_SWEEP_INTERVAL_SECONDS,
        },
        'cleanup-stale-requests': {
            'task': 'cleanup-stale-requests',
            'schedule': settings.CLEANUP_INTERVAL_SECONDS,
        },
        'cleanup-stale-slots': {
            'task': 'cleanup-stale-slots',
            'schedule': settings.CLEANUP_INTERVAL_SECONDS,
        },
        'verify-paid-requests': {
            'task': 'verify-paid-requests',
            'schedule': settings.HOLD_SWEEP_INTERVAL_SECONDS,
        },
    },
)


@setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    """Воркер и beat пишут через loguru в worker.log."""
    configure_logging('worker.log')
