"""Chat-action adapter backed by the Bot API.

Implements the core ChatPort; every failure surfaces as an EnforcementError
subclass so the core gateway can apply its best-effort policy.
"""

from __future__ import annotations

from typing import Optional

from adapters.telegram_bot_api import BotApiClient


class TelegramChatGateway:
    """ChatPort implementation using getChatMember/deleteMessage/sendMessage."""

    def __init__(self, api: BotApiClient) -> None:
        self._api = api

    async def get_member_status(self, chat_id: int, user_id: int) -> str:
        member = await self._api.get_chat_member(chat_id, user_id)
        return str((member or {}).get("status", ""))

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        await self._api.delete_message(chat_id, message_id)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        silent: bool = True,
        reply_to: Optional[int] = None,
    ) -> None:
        await self._api.send_message(
            chat_id,
            text,
            disable_notification=silent,
            reply_to_message_id=reply_to,
        )
