from celery import Celery
from celery.schedules import crontab

from timecapsule.config import get_settings

settings = get_settings()

app = Celery(
    'time_capsule',
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=['timecapsule.tasks'],
)
app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
)

app.conf.beat_schedule = {
    'unlock-due-capsules-every-minute': {
        'task': 'timecapsule.tasks.unlock_due_capsules',
        'schedule': crontab(minute=settings.unlock_cron_minute),
    },
}
