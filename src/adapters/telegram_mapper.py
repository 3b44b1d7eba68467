"""Telegram-to-core message mapping adapter.

This keeps Bot API payload details out of the core pipeline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from core.models import ChatRef, MessageEvent, Update, UserRef


def _user_from_payload(payload: Any) -> Optional[UserRef]:
    if not isinstance(payload, dict):
        return None
    user_id = payload.get("id")
    return UserRef(
        id=int(user_id) if user_id is not None else None,
        username=payload.get("username"),
        is_bot=bool(payload.get("is_bot", False)),
    )


def _chat_from_payload(payload: Any) -> Optional[ChatRef]:
    if not isinstance(payload, dict) or payload.get("id") is None:
        return None
    return ChatRef(
        id=int(payload["id"]),
        type=str(payload.get("type", "")),
        title=payload.get("title"),
    )


def _message_date(raw_date: Any) -> datetime:
    # Messages without a usable date are treated as sent now.
    if isinstance(raw_date, (int, float)):
        return datetime.fromtimestamp(raw_date, timezone.utc)
    return datetime.now(timezone.utc)


def build_event(message: dict[str, Any]) -> MessageEvent:
    """Build a core MessageEvent from a Bot API ``Message`` object."""

    new_members = tuple(
        user
        for user in (_user_from_payload(item) for item in message.get("new_chat_members") or [])
        if user is not None
    )
    return MessageEvent(
        chat=_chat_from_payload(message.get("chat")),
        message_id=int(message.get("message_id", 0)),
        sender=_user_from_payload(message.get("from")),
        date=_message_date(message.get("date")),
        text=message.get("text"),
        caption=message.get("caption"),
        new_members=new_members,
    )


def build_update(payload: dict[str, Any]) -> Update:
    """Map a Bot API ``Update``; non-message updates carry no event."""

    message = payload.get("message")
    event = build_event(message) if isinstance(message, dict) else None
    return Update(update_id=int(payload["update_id"]), event=event)
