from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging
from app.core.config import settings
from app.core.logging_config import configure_logging

# Initialize Celery
celery_app = Celery(
    "tasks",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "app.tasks.subscription_tasks",
    ]
)

celery_app.conf.update(
    task_track_started=True,
    timezone="UTC",
    beat_schedule={
        'expire-subscriptions-daily': {
            'task': 'tasks.expire_subscriptions',
            'schedule': crontab(hour=settings.EXPIRY_SWEEP_CRON_HOUR, minute=settings.EXPIRY_SWEEP_CRON_MINUTE),
        },
    },
)


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging()
