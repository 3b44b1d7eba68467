"""Minimal async Telegram Bot API client.

Only the handful of methods the moderation pipeline needs are exposed. All
calls are JSON POSTs to https://api.telegram.org/bot<token>/<method>.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from core.errors import EnforcementError

LOGGER = logging.getLogger(__name__)

API_BASE_URL = "https://api.telegram.org"


class TelegramApiError(EnforcementError):
    """A Bot API call failed at the transport level or returned ok=false."""

    def __init__(self, method: str, description: str, error_code: Optional[int] = None) -> None:
        super().__init__(f"{method} failed ({error_code or 'n/a'}): {description}")
        self.method = method
        self.description = description
        self.error_code = error_code


class BotApiClient:
    """Thin wrapper over httpx.AsyncClient that unwraps Bot API envelopes."""

    def __init__(
        self,
        bot_token: str,
        *,
        base_url: str = API_BASE_URL,
        timeout_seconds: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/bot{bot_token}"
        self._timeout = timeout_seconds
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)

    async def call(self, method: str, payload: Optional[dict[str, Any]] = None, *, timeout: Optional[float] = None) -> Any:
        """Invoke a Bot API method and return its ``result`` field."""

        request_timeout = timeout if timeout is not None else self._timeout
        try:
            response = await self._http.post(
                f"{self._endpoint}/{method}",
                json=payload or {},
                timeout=request_timeout,
            )
        except httpx.HTTPError as exc:
            # The exception text may embed the URL, which carries the token.
            raise TelegramApiError(method, type(exc).__name__) from None

        try:
            body = response.json()
        except ValueError:
            raise TelegramApiError(method, response.text[:200], response.status_code) from None

        if not isinstance(body, dict):
            raise TelegramApiError(method, "unexpected response shape", response.status_code)
        if response.status_code >= 400 or not body.get("ok", False):
            raise TelegramApiError(
                method,
                str(body.get("description", "unknown error")),
                body.get("error_code", response.status_code),
            )
        return body.get("result")

    async def get_updates(
        self,
        *,
        offset: Optional[int] = None,
        limit: int = 100,
        timeout: int = 0,
        allowed_updates: Optional[list[str]] = None,
    ) -> list[dict[str, Any]]:
        payload: dict[str, Any] = {"limit": limit, "timeout": timeout}
        if offset is not None:
            payload["offset"] = offset
        if allowed_updates is not None:
            payload["allowed_updates"] = allowed_updates
        # Long polls hold the connection for ``timeout`` seconds on the server side.
        result = await self.call("getUpdates", payload, timeout=self._timeout + timeout)
        return list(result or [])

    async def get_chat_member(self, chat_id: int, user_id: int) -> dict[str, Any]:
        return await self.call("getChatMember", {"chat_id": chat_id, "user_id": user_id})

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self.call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        disable_notification: bool = True,
        reply_to_message_id: Optional[int] = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_notification": disable_notification,
        }
        if reply_to_message_id is not None:
            payload["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        return await self.call("sendMessage", payload)

    async def aclose(self) -> None:
        await self._http.aclose()
