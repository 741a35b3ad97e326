"""
Outbound notification sink.

A notifier never raises into the quiz flow: every failure is logged and
dropped.
"""
import logging
from functools import lru_cache
from typing import Optional

from quizdesk.core.config import Settings, settings as default_settings
from quizdesk.services.telegram import TelegramClient

logger = logging.getLogger(__name__)


class Notifier:
    enabled = False

    def notify(self, text: str) -> bool:
        return False


class NullNotifier(Notifier):
    def notify(self, text: str) -> bool:
        logger.debug("Notifications disabled; dropping message")
        return False


class TelegramNotifier(Notifier):
    enabled = True

    def __init__(self, client: TelegramClient, chat_id: str):
        self.client = client
        self.chat_id = chat_id

    def notify(self, text: str) -> bool:
        try:
            return self.client.send_message(self.chat_id, text)
        except Exception:
            logger.exception("Telegram notification failed")
            return False


class QueuedNotifier(Notifier):
    """Hands messages to the rq worker instead of calling Telegram in-process."""

    enabled = True

    def __init__(self, queue):
        self.queue = queue

    def notify(self, text: str) -> bool:
        from quizdesk.jobs.notify_job import send_message_job
        try:
            job = self.queue.enqueue(send_message_job, text, job_timeout=120)
        except Exception:
            logger.exception("Failed to enqueue notification")
            return False
        logger.debug("Notification queued as job %s", job.get_id())
        return True


def telegram_client(cfg: Settings) -> Optional[TelegramClient]:
    if not cfg.telegram_configured():
        return None
    return TelegramClient(cfg.TELEGRAM_BOT_TOKEN.get_secret_value(), api_url=cfg.TELEGRAM_API_URL)


def build_notifier(cfg: Settings = default_settings, direct: bool = False) -> Notifier:
    if not cfg.telegram_configured():
        logger.info("Telegram is not configured (TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID missing)")
        return NullNotifier()
    if cfg.NOTIFY_QUEUE_ENABLED and not direct:
        from quizdesk.jobs.queue import get_queue
        return QueuedNotifier(get_queue())
    return TelegramNotifier(telegram_client(cfg), cfg.TELEGRAM_CHAT_ID)


@lru_cache
def get_notifier() -> Notifier:
    return build_notifier()
