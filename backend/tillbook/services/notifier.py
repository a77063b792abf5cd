# Overview: Outbound report delivery through the Telegram Bot API.

from __future__ import annotations

import logging
from typing import Callable, Protocol

import httpx

from ..errors import NotificationFailure

log = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, text: str) -> None:
        """Deliver text; raise NotificationFailure on any failure."""


class TelegramNotifier:
    """
    sendMessage client.

    Credentials are resolved on every send through `credentials()`, which
    returns (token, chat_id); either may be None when not configured yet.
    Every failure, including timeouts, surfaces as NotificationFailure.
    `timeout` bounds each httpx phase (connect, write, read, pool) separately,
    not the request as a whole.
    """

    def __init__(
        self,
        credentials: Callable[[], tuple[str | None, str | None]],
        *,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
        logger: logging.Logger | None = None,
    ):
        self._credentials = credentials
        self._log = logger or log
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def send(self, text: str) -> None:
        token, chat_id = self._credentials()
        if not token or not chat_id:
            raise NotificationFailure("Telegram is not configured (token/chat_id)")

        url = f"{self._api_base}/bot{token}/sendMessage"
        payload = {"chat_id": chat_id, "text": text, "parse_mode": "HTML"}

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(url, json=payload)
        except httpx.TimeoutException as exc:
            raise NotificationFailure(
                "Telegram API timed out",
                details={"timeout_seconds": self._timeout},
            ) from exc
        except httpx.HTTPError as exc:
            raise NotificationFailure(
                "Telegram API request failed",
                details={"cause": type(exc).__name__},
            ) from exc

        if response.status_code != 200:
            raise NotificationFailure(
                f"Telegram API error: {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        self._log.info("Report delivered to Telegram chat %s", chat_id)
