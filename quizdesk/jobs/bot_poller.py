"""
Inbound Telegram command loop.

Runs on its own daemon thread so a slow or failing Bot API never touches
request handling. Only the configured owner chat is answered.
"""
import logging
import threading
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from quizdesk.core.config import Settings, settings as default_settings
from quizdesk.services import stats
from quizdesk.services.messages import format_difficult_questions
from quizdesk.services.telegram import TelegramClient, TelegramError

logger = logging.getLogger(__name__)

HELP_TEXT = "Available commands:\n/difficult - hardest questions"


class BotPoller:
    def __init__(self, client: TelegramClient, session_factory: Callable[[], Session],
                 cfg: Settings = default_settings):
        self.client = client
        self.session_factory = session_factory
        self.cfg = cfg
        self.chat_id = str(cfg.TELEGRAM_CHAT_ID)
        self.last_update_id = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ---- lifecycle ----

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            logger.warning("Bot poller already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self.run, name="telegram-poller", daemon=True)
        self._thread.start()
        logger.info("Telegram bot poller started")

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Signal the loop and wait for it. Returns False if the thread is still in a long poll."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Telegram bot poller did not stop within %ss", timeout)
                return False
            self._thread = None
        logger.info("Telegram bot poller stopped")
        return True

    def run(self) -> None:
        delay = self.cfg.TELEGRAM_POLL_INTERVAL
        while not self._stop.is_set():
            try:
                self.poll_once()
                delay = self.cfg.TELEGRAM_POLL_INTERVAL
            except TelegramError as e:
                delay = min(max(delay, 1.0) * 2, self.cfg.TELEGRAM_MAX_BACKOFF)
                logger.error("Polling failed, retrying in %.0fs: %s", delay, e)
            except Exception:
                delay = min(max(delay, 1.0) * 2, self.cfg.TELEGRAM_MAX_BACKOFF)
                logger.exception("Unexpected error in polling loop")
            self._stop.wait(delay)

    # ---- updates ----

    def poll_once(self) -> int:
        updates = self.client.get_updates(self.last_update_id + 1, timeout=self.cfg.TELEGRAM_POLL_TIMEOUT)
        for update in updates:
            self.last_update_id = max(self.last_update_id, int(update["update_id"]))
            message = update.get("message") or {}
            if message.get("text"):
                self.handle_message(message)
        return len(updates)

    def is_authorized(self, chat_id: Any) -> bool:
        return chat_id is not None and str(chat_id) == self.chat_id

    def handle_message(self, message: Dict[str, Any]) -> None:
        chat_id = (message.get("chat") or {}).get("id")
        text = message["text"].strip()
        if not self.is_authorized(chat_id):
            logger.warning("Unauthorized bot access from chat %s", chat_id)
            return
        if not text.startswith("/"):
            return

        logger.info("Bot command %r from chat %s", text, chat_id)
        command = text.split()[0]
        username = self.cfg.TELEGRAM_BOT_USERNAME
        if command == "/difficult" or (username and command == f"/difficult@{username}"):
            self.reply(self.difficult_report())
        else:
            self.reply(f"❓ Unknown command: {text}\n\n{HELP_TEXT}")

    def difficult_report(self) -> str:
        try:
            with self.session_factory() as db:
                rows = stats.top_difficult(db, limit=self.cfg.DIFFICULT_LIMIT, min_shown=self.cfg.DIFFICULT_MIN_SHOWN)
        except Exception:
            logger.exception("Failed to build /difficult report")
            return "❌ Could not load statistics"
        return format_difficult_questions(rows, self.cfg.DIFFICULT_MIN_SHOWN)

    def reply(self, text: str) -> None:
        self.client.send_message(self.chat_id, text)
