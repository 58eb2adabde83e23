import logging
import smtplib
from email.mime.text import MIMEText

from timecapsule.config import Settings, get_settings
from timecapsule.errors import DependencyFailure

logger = logging.getLogger(__name__)

UNLOCK_SUBJECT = "Your Time Capsule is Unlocked!"


def unlock_body(title: str) -> str:
    return f'Your capsule "{title}" is now unlocked. Visit the app to view it.'


class EmailNotifier:
    """Delivers unlock notifications over SMTP.

    Without SMTP settings the notification is logged instead of sent.
    """

    def __init__(self, settings: Settings = None):
        self.settings = settings or get_settings()

    def notify_unlocked(self, address: str, title: str) -> None:
        settings = self.settings
        if not settings.smtp_configured:
            logger.warning(f"[NOTIFICATION NOT SENT - SMTP NOT CONFIGURED] {address}: {title}")
            return

        msg = MIMEText(unlock_body(title))
        msg["Subject"] = UNLOCK_SUBJECT
        msg["From"] = settings.mail_from
        msg["To"] = address

        try:
            with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
                if settings.smtp_use_tls:
                    server.starttls()
                if settings.smtp_user:
                    server.login(settings.smtp_user, settings.smtp_password)
                server.sendmail(settings.mail_from, [address], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise DependencyFailure(f"Could not send unlock notification to {address}: {e}") from e

        logger.info(f"Unlock notification sent to {address} for '{title}'")


class CeleryNotifier:
    """Hands the notification to a Celery worker and returns immediately."""

    def notify_unlocked(self, address: str, title: str) -> None:
        from timecapsule.tasks import send_unlock_notification

        try:
            send_unlock_notification.delay(address, title)
        except Exception as e:
            raise DependencyFailure(f"Could not enqueue unlock notification: {e}") from e
