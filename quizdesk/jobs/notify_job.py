import logging

from quizdesk.services.notifier import build_notifier

logger = logging.getLogger(__name__)


def send_message_job(text: str) -> bool:
    # direct: the worker talks to Telegram itself instead of re-enqueueing
    sent = build_notifier(direct=True).notify(text)
    if not sent:
        logger.warning("Queued notification was not delivered")
    return sent
