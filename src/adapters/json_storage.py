"""JSON document storage adapter.

Implements the core StatePort on top of a single JSON file holding two
collections:
- messages: classification records, upserted by (chatId, messageId)
- members: chatId -> userId -> {"joinedAt": ...}
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import datetime
from typing import Any, Callable, Optional

from core.errors import StoreError
from core.models import (
    ClassificationRecord,
    MembershipRecord,
    parse_timestamp,
)

LOGGER = logging.getLogger(__name__)


def _empty_document() -> dict[str, Any]:
    return {"messages": [], "members": {}}


class JsonStateStore:
    """Single-file store that flushes atomically on every mutation."""

    def __init__(
        self,
        path: str,
        flush_attempts: int = 3,
        retry_delay_seconds: float = 0.2,
    ) -> None:
        self._path = path
        self._flush_attempts = max(1, flush_attempts)
        self._retry_delay = retry_delay_seconds
        self._lock = asyncio.Lock()
        self._document: dict[str, Any] = _empty_document()

    @property
    def path(self) -> str:
        return self._path

    def init_db(self) -> None:
        """Load the document from disk, creating it when missing.

        Malformed collections are reset to empty rather than failing startup.
        """

        LOGGER.info("Bootstrapping database at %s", self._path)
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        if os.path.exists(self._path):
            with open(self._path, "r", encoding="utf-8") as handle:
                raw = handle.read()
            try:
                document = json.loads(raw) if raw.strip() else {}
            except json.JSONDecodeError as exc:
                raise StoreError(f"State file {self._path} is not valid JSON") from exc
            if not isinstance(document, dict):
                document = {}
        else:
            document = {}

        if not isinstance(document.get("messages"), list):
            document["messages"] = []
        if not isinstance(document.get("members"), dict):
            document["members"] = {}
        self._document = document
        self._write_document(self._serialize())
        LOGGER.info(
            "Database ready (%s classifications, %s chats with members)",
            len(document["messages"]),
            len(document["members"]),
        )

    async def upsert_classification(self, record: ClassificationRecord) -> None:
        """Replace the record with the same (chat_id, message_id) or append it."""

        entry = record.to_dict()

        def mutate() -> Callable[[], None]:
            messages: list = self._document["messages"]
            for index, existing in enumerate(messages):
                if existing.get("chatId") == record.chat_id and existing.get("messageId") == record.message_id:
                    messages[index] = entry

                    def undo_replace(i: int = index, previous: dict = existing) -> None:
                        messages[i] = previous

                    return undo_replace
            messages.append(entry)
            return messages.pop

        async with self._lock:
            await self._commit(mutate)
        LOGGER.info(
            "Persisted classification: chat=%s, message=%s, score=%s",
            record.chat_id,
            record.message_id,
            record.score,
        )

    async def record_membership(self, chat_id: int, user_id: int, joined_at: datetime) -> bool:
        """Store a join time; returns False when it was already recorded."""

        chat_key = str(chat_id)
        user_key = str(user_id)
        entry = MembershipRecord(joined_at=joined_at).to_dict()

        async with self._lock:
            members: dict = self._document["members"]
            chat_members = members.get(chat_key)
            previous = chat_members.get(user_key) if isinstance(chat_members, dict) else None
            if isinstance(previous, dict) and parse_timestamp(previous.get("joinedAt")) == joined_at:
                return False

            def mutate() -> Callable[[], None]:
                previous_chat = members.get(chat_key)
                updated = dict(previous_chat) if isinstance(previous_chat, dict) else {}
                updated[user_key] = entry
                members[chat_key] = updated

                def undo() -> None:
                    if previous_chat is None:
                        members.pop(chat_key, None)
                    else:
                        members[chat_key] = previous_chat

                return undo

            await self._commit(mutate)
        return True

    def get_membership(self, chat_id: int, user_id: int) -> Optional[MembershipRecord]:
        chat_members = self._document["members"].get(str(chat_id))
        if not isinstance(chat_members, dict):
            return None
        entry = chat_members.get(str(user_id))
        if not isinstance(entry, dict):
            return None
        joined_at = parse_timestamp(entry.get("joinedAt"))
        if joined_at is None:
            return None
        return MembershipRecord(joined_at=joined_at)

    def all_classifications(self) -> list[ClassificationRecord]:
        return [ClassificationRecord.from_dict(entry) for entry in self._document["messages"]]

    async def _commit(self, mutate: Callable[[], Callable[[], None]]) -> None:
        """Apply a mutation and flush it, rolling back if the flush never lands.

        Must be called with the write lock held.
        """

        undo = mutate()
        payload = self._serialize()
        last_error: Optional[BaseException] = None
        for attempt in range(1, self._flush_attempts + 1):
            try:
                await asyncio.to_thread(self._write_document, payload)
                return
            except OSError as exc:
                last_error = exc
                LOGGER.warning(
                    "Flush to %s failed (attempt %s/%s): %s",
                    self._path,
                    attempt,
                    self._flush_attempts,
                    exc,
                )
                if attempt < self._flush_attempts:
                    await asyncio.sleep(self._retry_delay)
        undo()
        raise StoreError(f"Could not persist state to {self._path}") from last_error

    def _serialize(self) -> str:
        return json.dumps(self._document, ensure_ascii=False, indent=2)

    def _write_document(self, payload: str) -> None:
        """Write atomically: temp file in the same directory, then replace."""

        directory = os.path.dirname(self._path) or "."
        fd, tmp_path = tempfile.mkstemp(prefix=".db-", suffix=".json", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

