"""
Outbound employee notifications through the Telegram Bot API.

Delivery is best effort: a failed send is logged and reported as ``False``,
never raised, so it cannot undo a ledger change that already committed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from shiftpay.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    bot_token: str | None
    chat_id: str | None
    text: str

    @property
    def deliverable(self) -> bool:
        return bool(self.bot_token and self.chat_id)


class TelegramNotifier:
    def __init__(
        self,
        api_base: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_base = (api_base or settings.TELEGRAM_API_BASE).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.NOTIFY_TIMEOUT_SECONDS
        self._transport = transport

    async def send(self, notification: Notification | None) -> bool:
        """Post ``notification`` to its chat. Returns whether it was delivered."""
        if notification is None or not notification.deliverable:
            return False
        if not settings.NOTIFICATIONS_ENABLED:
            logger.debug("Notifications disabled; dropping message for chat %s", notification.chat_id)
            return False

        url = f"{self.api_base}/bot{notification.bot_token}/sendMessage"
        payload = {"chat_id": notification.chat_id, "text": notification.text, "parse_mode": "HTML"}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Telegram send to chat %s failed: %s", notification.chat_id, exc)
            return False

        if response.status_code >= 400:
            logger.warning(
                "Telegram rejected message for chat %s: %s %s",
                notification.chat_id,
                response.status_code,
                response.text[:200],
            )
            return False
        return True


notifier = TelegramNotifier()


def get_notifier() -> TelegramNotifier:
    """FastAPI dependency: the process-wide notifier."""
    return notifier
