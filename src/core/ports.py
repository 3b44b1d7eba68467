"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for storage, chat and oracle adapters so
that the core can be reused with different backends.
"""

from __future__ import annotations

from datetime import datetime
from typing import AsyncIterator, Optional, Protocol

from core.models import ClassificationRecord, MembershipRecord, Update


class StatePort(Protocol):
    """Durable state operations required by the core pipeline.

    Mutating calls must be durable before they return and raise StoreError
    when they are not.
    """

    async def upsert_classification(self, record: ClassificationRecord) -> None:
        ...

    async def record_membership(self, chat_id: int, user_id: int, joined_at: datetime) -> bool:
        ...

    def get_membership(self, chat_id: int, user_id: int) -> Optional[MembershipRecord]:
        ...

    def all_classifications(self) -> list[ClassificationRecord]:
        ...


class OraclePort(Protocol):
    """Single-shot chat completion; raises ClassificationError on failure."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        ...


class ChatPort(Protocol):
    """Raw chat-platform primitives; failures raise EnforcementError."""

    async def get_member_status(self, chat_id: int, user_id: int) -> str:
        ...

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        silent: bool = True,
        reply_to: Optional[int] = None,
    ) -> None:
        ...


class UpdateSourcePort(Protocol):
    """Backlog fetch, acknowledgement and live stream of chat updates."""

    async def fetch_backlog(self, limit: int) -> list[Update]:
        ...

    async def acknowledge(self, offset: int) -> None:
        ...

    def stream(self) -> AsyncIterator[Update]:
        ...

    def stop(self) -> None:
        ...


class NoticePort(Protocol):
    """Chat-facing notice texts."""

    def deletion_notice(self, score: int) -> str:
        ...

    def unavailable_notice(self) -> str:
        ...
