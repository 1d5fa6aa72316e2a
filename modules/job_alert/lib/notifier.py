# job_alert/notifier.py
"""
Telegram delivery.

Each rendered chunk becomes one `sendMessage` call to a fixed chat with
Markdown parsing on and link previews off. Chunks go out strictly one after
another with a fixed pause between them to stay under Telegram's per-chat
rate limit. A failed message is recorded and the next one is still attempted.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from . import logging_bridge
from .errors import DeliveryError, FetchError
from .http_client import HttpClient
from .models import DeliveryResult, StageError

log = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"


class TelegramNotifier:
    """Send text messages to one chat through the Bot API."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        client: HttpClient,
        *,
        api_base: str = TELEGRAM_API,
    ) -> None:
        if not bot_token or not chat_id:
            raise DeliveryError("Telegram bot token and chat id are required.")
        self._url = f"{api_base.rstrip('/')}/bot{bot_token}/sendMessage"
        self._chat_id = chat_id
        self._client = client

    def payload(self, text: str) -> dict[str, Any]:
        return {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": "Markdown",
            "link_preview_options": {"is_disabled": True},
        }

    def send(self, text: str) -> int | None:
        """
        Deliver one message. Returns Telegram's message_id when present.
        Raises DeliveryError on transport failures and on {"ok": false} replies.
        """
        try:
            body = self._client.post_json(self._url, self.payload(text))
        except FetchError as e:
            raise DeliveryError(str(e)) from e

        if not isinstance(body, dict) or not body.get("ok"):
            desc = body.get("description") if isinstance(body, dict) else repr(body)[:200]
            raise DeliveryError(f"Telegram rejected message: {desc}")
        result = body.get("result") or {}
        return result.get("message_id") if isinstance(result, dict) else None


class DryRunNotifier:
    """Log messages instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    def send(self, text: str) -> int | None:
        self.sent.append(text)
        log.info("[dry-run] would send message #%d (%d chars):\n%s", len(self.sent), len(text), text)
        return None


def deliver(
    chunks: Sequence[str],
    notifier: TelegramNotifier | DryRunNotifier,
    *,
    delay_seconds: float = 10.0,
    sleep: Callable[[float], None] = time.sleep,
) -> DeliveryResult:
    """
    Send every chunk in order, pausing `delay_seconds` between consecutive sends.
    Failures are contained per message.
    """
    result = DeliveryResult()
    for idx, text in enumerate(chunks, start=1):
        if idx > 1 and delay_seconds > 0:
            sleep(delay_seconds)
        try:
            message_id = notifier.send(text)
        except DeliveryError as e:
            result.failed += 1
            result.errors.append(StageError(stage="deliver", target=str(idx), error=str(e)))
            logging_bridge.error({
                "component": "job_alert.notifier",
                "op": "send",
                "chunk": idx,
                "chunks": len(chunks),
                "error": str(e),
            })
            continue

        result.delivered += 1
        logging_bridge.activity({
            "component": "job_alert.notifier",
            "op": "sent",
            "chunk": idx,
            "chunks": len(chunks),
            "message_id": message_id,
        })
    return result
