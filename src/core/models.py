"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional

GROUP_CHAT_TYPES = frozenset({"group", "supergroup"})


def format_timestamp(value: datetime) -> str:
    """Serialize a timestamp as an ISO-8601 string in UTC."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def parse_timestamp(raw: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string, accepting a trailing ``Z``.

    Returns None for anything that is not a usable timestamp.
    """

    if not isinstance(raw, str) or not raw:
        return None
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class ProcessingMode(enum.Enum):
    """Where an event came from; backlog events never notify the chat."""

    LIVE = "live"
    BACKLOG = "backlog"


class EventOutcome(enum.Enum):
    """Terminal state of one event in the decision engine."""

    IGNORED = "ignored"
    EXEMPT_ADMIN = "exempt_admin"
    EXEMPT_TENURE = "exempt_tenure"
    CLASSIFICATION_FAILED = "classification_failed"
    RECORDED = "recorded"
    DELETED = "deleted"
    STORE_FAILED = "store_failed"


@dataclass(frozen=True)
class ChatRef:
    id: int
    type: str
    title: Optional[str] = None

    @property
    def is_group(self) -> bool:
        return self.type in GROUP_CHAT_TYPES


@dataclass(frozen=True)
class UserRef:
    id: Optional[int]
    username: Optional[str] = None
    is_bot: bool = False


@dataclass(frozen=True)
class MessageEvent:
    """Minimal message context used by the moderation pipeline."""

    chat: Optional[ChatRef]
    message_id: int
    sender: Optional[UserRef]
    date: datetime
    text: Optional[str] = None
    caption: Optional[str] = None
    new_members: tuple[UserRef, ...] = ()

    @property
    def content(self) -> str:
        """Message body, falling back to the caption, trimmed."""

        return (self.text or self.caption or "").strip()

    @property
    def sender_id(self) -> Optional[int]:
        return self.sender.id if self.sender else None


@dataclass(frozen=True)
class Update:
    """One delivered update; ``event`` is None for non-message updates."""

    update_id: int
    event: Optional[MessageEvent]


@dataclass(frozen=True)
class Classification:
    """Parsed oracle verdict."""

    score: int
    raw_answer: str


@dataclass(frozen=True)
class MembershipRecord:
    joined_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {"joinedAt": format_timestamp(self.joined_at)}


@dataclass(frozen=True)
class ClassificationRecord:
    """Persisted audit entry for one classified message.

    Keyed by (chat_id, message_id); the store upserts on that key.
    """

    chat_id: int
    chat_title: Optional[str]
    message_id: int
    user_id: Optional[int]
    username: Optional[str]
    text: str
    score: int
    raw_answer: str
    evaluated_at: datetime
    deleted: bool = False
    deleted_at: Optional[datetime] = None
    deletion_skipped: Optional[str] = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.chat_id, self.message_id)

    def mark_deleted(self, deleted_at: datetime) -> "ClassificationRecord":
        return replace(self, deleted=True, deleted_at=deleted_at)

    def mark_skipped(self, reason: str) -> "ClassificationRecord":
        return replace(self, deletion_skipped=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "chatId": self.chat_id,
            "chatTitle": self.chat_title,
            "messageId": self.message_id,
            "userId": self.user_id,
            "username": self.username,
            "text": self.text,
            "score": self.score,
            "rawAnswer": self.raw_answer,
            "evaluatedAt": format_timestamp(self.evaluated_at),
            "deleted": self.deleted,
            "deletedAt": format_timestamp(self.deleted_at) if self.deleted_at else None,
            "deletionSkipped": self.deletion_skipped,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassificationRecord":
        # Documents written by the first bot release used "raw" for the reply.
        raw_answer = data.get("rawAnswer", data.get("raw", ""))
        evaluated_at = parse_timestamp(data.get("evaluatedAt")) or datetime.fromtimestamp(0, timezone.utc)
        return cls(
            chat_id=int(data["chatId"]),
            chat_title=data.get("chatTitle"),
            message_id=int(data["messageId"]),
            user_id=data.get("userId"),
            username=data.get("username"),
            text=data.get("text", ""),
            score=int(data.get("score", 0)),
            raw_answer=raw_answer or "",
            evaluated_at=evaluated_at,
            deleted=bool(data.get("deleted", False)),
            deleted_at=parse_timestamp(data.get("deletedAt")),
            deletion_skipped=data.get("deletionSkipped"),
        )
