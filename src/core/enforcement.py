"""Best-effort enforcement on top of the chat port.

Nothing in here raises: a failed delete degrades to "flagged but not
removed", a failed notice is simply missed, and an unverifiable admin is
treated as a regular member.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.errors import EnforcementError
from core.ports import ChatPort

LOGGER = logging.getLogger(__name__)

ADMIN_STATUSES = frozenset({"administrator", "creator"})


class EnforcementGateway:
    """Wraps a ChatPort with the pipeline's failure policy."""

    def __init__(self, chat: ChatPort) -> None:
        self._chat = chat

    async def is_admin(self, chat_id: int, user_id: int) -> bool:
        try:
            status = await self._chat.get_member_status(chat_id, user_id)
        except EnforcementError as exc:
            LOGGER.warning("Unable to verify admin status for user %s in chat %s: %s", user_id, chat_id, exc)
            return False
        return status in ADMIN_STATUSES

    async def delete_message(self, chat_id: int, message_id: int) -> bool:
        try:
            await self._chat.delete_message(chat_id, message_id)
        except EnforcementError as exc:
            LOGGER.error("Failed to delete message %s in chat %s: %s", message_id, chat_id, exc)
            return False
        return True

    async def notify(
        self,
        chat_id: int,
        text: str,
        *,
        reply_to: Optional[int] = None,
        silent: bool = True,
    ) -> bool:
        try:
            await self._chat.send_message(chat_id, text, silent=silent, reply_to=reply_to)
        except EnforcementError as exc:
            LOGGER.error("Failed to send notice to chat %s: %s", chat_id, exc)
            return False
        return True
