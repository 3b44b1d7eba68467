from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from core.errors import ClassificationError, EnforcementError, StoreError
from core.models import (
    ChatRef,
    ClassificationRecord,
    MembershipRecord,
    MessageEvent,
    UserRef,
)

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)
GROUP = ChatRef(id=-1001, type="supergroup", title="Deals")


class FakeStore:
    def __init__(self) -> None:
        self.records: dict[tuple[int, int], ClassificationRecord] = {}
        self.members: dict[tuple[int, int], MembershipRecord] = {}
        self.writes = 0
        self.fail_upserts = False
        self.fail_membership_for: set[int] = set()

    async def upsert_classification(self, record: ClassificationRecord) -> None:
        if self.fail_upserts:
            raise StoreError("disk full")
        self.records[record.key] = record
        self.writes += 1

    async def record_membership(self, chat_id: int, user_id: int, joined_at: datetime) -> bool:
        if user_id in self.fail_membership_for:
            raise StoreError("disk full")
        current = self.members.get((chat_id, user_id))
        if current is not None and current.joined_at == joined_at:
            return False
        self.members[(chat_id, user_id)] = MembershipRecord(joined_at=joined_at)
        self.writes += 1
        return True

    def get_membership(self, chat_id: int, user_id: int) -> Optional[MembershipRecord]:
        return self.members.get((chat_id, user_id))

    def all_classifications(self) -> list[ClassificationRecord]:
        return list(self.records.values())


class FakeOracle:
    def __init__(self, reply: str = "0", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error is not None:
            raise self.error
        return self.reply


def failing_oracle() -> FakeOracle:
    return FakeOracle(error=ClassificationError("LLM request failed with status 503: busy"))


class FakeChat:
    def __init__(self) -> None:
        # user_id -> list of statuses returned on successive lookups
        self.statuses: dict[int, list[str]] = {}
        self.status_errors: set[int] = set()
        self.delete_fails = False
        self.send_fails = False
        self.deleted: list[tuple[int, int]] = []
        self.sent: list[dict] = []
        self.lookups: list[tuple[int, int]] = []

    def set_status(self, user_id: int, *statuses: str) -> None:
        self.statuses[user_id] = list(statuses)

    async def get_member_status(self, chat_id: int, user_id: int) -> str:
        self.lookups.append((chat_id, user_id))
        if user_id in self.status_errors:
            raise EnforcementError("getChatMember failed (400): user not found")
        queue = self.statuses.get(user_id)
        if not queue:
            return "member"
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        if self.delete_fails:
            raise EnforcementError("deleteMessage failed (400): message can't be deleted")
        self.deleted.append((chat_id, message_id))

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        silent: bool = True,
        reply_to: Optional[int] = None,
    ) -> None:
        if self.send_fails:
            raise EnforcementError("sendMessage failed (403): bot was kicked")
        self.sent.append({"chat_id": chat_id, "text": text, "silent": silent, "reply_to": reply_to})


def make_event(
    *,
    message_id: int = 10,
    text: Optional[str] = "hello everyone",
    caption: Optional[str] = None,
    user_id: Optional[int] = 42,
    username: Optional[str] = "newbie",
    chat: Optional[ChatRef] = GROUP,
    date: datetime = NOW,
    new_members: tuple[UserRef, ...] = (),
) -> MessageEvent:
    sender = UserRef(id=user_id, username=username) if user_id is not None else None
    return MessageEvent(
        chat=chat,
        message_id=message_id,
        sender=sender,
        date=date,
        text=text,
        caption=caption,
        new_members=new_members,
    )
