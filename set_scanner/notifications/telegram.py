"""
Notifier implementations.

A ``Notifier`` delivers one text message to the operator channel and raises
``NotificationError`` when it cannot. Callers that must not fail (the scan
cycle) go through ``NotificationDispatcher``, which logs and drops errors.

Telegram Bot API:
  POST {api_base_url}/bot{token}/sendMessage
    → JSON body: {"chat_id": ..., "text": ..., "parse_mode": "HTML"}
    → Returns: {"ok": true, "result": {...}} or {"ok": false, "description": ...}

Credential setup (.env, gitignored):
  SET_SCANNER_TELEGRAM_TOKEN=123456:ABC...
  SET_SCANNER_TELEGRAM_CHAT_ID=-1001234567890
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx

from set_scanner.config import TelegramConfig
from set_scanner.exceptions import NotificationError

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, text: str) -> None: ...


class LogNotifier:
    """Writes messages to the log instead of an external channel."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    async def send(self, text: str) -> None:
        logger.log(self.level, "Notification:\n%s", text)


class TelegramNotifier:
    """Sends HTML messages through the Telegram Bot API.

    Pass ``client=`` to share an ``httpx.AsyncClient`` (e.g. one built on
    ``httpx.MockTransport`` in tests); otherwise a client is opened per send.
    """

    def __init__(
        self,
        config: TelegramConfig,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not config.is_configured:
            raise ValueError("Telegram bot_token and chat_id must both be set.")
        self.config = config
        self._client = client

    @property
    def endpoint(self) -> str:
        return f"{self.config.api_base_url.rstrip('/')}/bot{self.config.bot_token}/sendMessage"

    async def send(self, text: str) -> None:
        """Deliver ``text``.

        Raises:
            NotificationError: On transport failure, a non-2xx status or an
                ``"ok": false`` response.
        """
        body = {"chat_id": self.config.chat_id, "text": text, "parse_mode": "HTML"}
        try:
            if self._client is not None:
                resp = await self._client.post(self.endpoint, json=body)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    resp = await client.post(self.endpoint, json=body)
        except httpx.HTTPError as exc:
            raise NotificationError(f"Telegram request failed: {type(exc).__name__}") from exc

        try:
            data = resp.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        if resp.status_code != 200 or not data.get("ok", False):
            raise NotificationError(
                f"Telegram rejected message: HTTP {resp.status_code} "
                f"{data.get('description', '')}".rstrip()
            )
        logger.debug("Telegram message delivered (%d chars).", len(text))


def build_notifier(config: TelegramConfig) -> Notifier:
    """``TelegramNotifier`` when enabled and configured, else ``LogNotifier``."""
    if config.enabled and config.is_configured:
        return TelegramNotifier(config)
    if config.enabled:
        logger.warning("Telegram enabled but token/chat_id missing; logging notifications instead.")
    return LogNotifier()
