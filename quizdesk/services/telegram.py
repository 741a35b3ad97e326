"""
Thin Telegram Bot API client.

``send_message`` is fire-and-forget from the caller's point of view: transport
errors are retried a few times, then logged and reported as ``False``.
``get_updates`` raises ``TelegramError`` so the poller can back off.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)


class TelegramError(Exception):
    pass


class TelegramClient:
    def __init__(self, token: str, api_url: str = "https://api.telegram.org",
                 http: Optional[httpx.Client] = None, timeout: float = 10.0):
        self.base_url = f"{api_url.rstrip('/')}/bot{token}"
        self.http = http or httpx.Client(timeout=timeout)

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, max=4),
        reraise=True,
    )
    def _call(self, method: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Any:
        kwargs = {"timeout": timeout} if timeout is not None else {}
        resp = self.http.post(f"{self.base_url}/{method}", json=payload, **kwargs)
        try:
            data = resp.json()
        except ValueError:
            raise TelegramError(f"{method}: HTTP {resp.status_code}, non-JSON body") from None
        if not data.get("ok"):
            raise TelegramError(f"{method}: {data.get('description') or resp.status_code}")
        return data.get("result")

    def send_message(self, chat_id: str, text: str) -> bool:
        try:
            self._call("sendMessage", {"chat_id": chat_id, "text": text, "parse_mode": "HTML"})
        except (httpx.HTTPError, TelegramError) as e:
            logger.error("Telegram send failed: %s", e)
            return False
        logger.info("Telegram message sent to chat %s", chat_id)
        return True

    def get_updates(self, offset: int, timeout: int = 30) -> List[Dict[str, Any]]:
        try:
            result = self._call(
                "getUpdates",
                {"offset": offset, "timeout": timeout, "allowed_updates": ["message"]},
                # the server holds the request open for up to `timeout` seconds
                timeout=timeout + 10,
            )
        except httpx.HTTPError as e:
            raise TelegramError(f"getUpdates: {e}") from e
        return result or []

    def close(self) -> None:
        self.http.close()
