import logging

from timecapsule.celery_app import app
from timecapsule.notifier import CeleryNotifier, EmailNotifier
from timecapsule.scheduler import UnlockScheduler
from timecapsule.store import open_store

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@app.task
def send_unlock_notification(address: str, title: str):
    try:
        logger.info(f"Starting task: send_unlock_notification for '{title}' to {address}")
        EmailNotifier().notify_unlocked(address, title)
    except Exception as e:
        logger.error(f"Error in send_unlock_notification: {str(e)}")
        raise


@app.task
def unlock_due_capsules():
    logger.info("Starting periodic unlock of due capsules")
    report = UnlockScheduler(open_store, CeleryNotifier()).tick()
    return {
        "unlocked": report.unlocked,
        "notified": report.notified,
        "failed": report.failed,
    }
