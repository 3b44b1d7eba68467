"""Live event dispatch with a single writer per chat.

Every live event becomes its own task so a slow oracle call in one chat does
not hold up another chat. Events for the same chat are serialized on a
per-chat lock: a join recorded by one message is visible to the tenure
check of the next message from that chat.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from core.models import EventOutcome, MessageEvent, ProcessingMode
from core.processor import ModerationProcessor

LOGGER = logging.getLogger(__name__)

# Events without chat context still need a key; they are ignored quickly.
_NO_CHAT = 0


class LiveDispatcher:
    """Schedules live events and tracks in-flight work for shutdown."""

    def __init__(self, processor: ModerationProcessor) -> None:
        self._processor = processor
        self._locks: dict[int, asyncio.Lock] = {}
        # chat id -> events queued or running; a lock is dropped at zero
        self._users: dict[int, int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    @property
    def tracked_chats(self) -> int:
        return len(self._locks)

    def submit(self, event: MessageEvent) -> Optional[asyncio.Task]:
        """Schedule one event; returns None once the dispatcher is closed."""

        if self._closed:
            LOGGER.debug("Dispatcher closed; dropping message %s", event.message_id)
            return None
        task = asyncio.create_task(self._run(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, event: MessageEvent) -> Optional[EventOutcome]:
        chat_key = event.chat.id if event.chat else _NO_CHAT
        lock = self._locks.setdefault(chat_key, asyncio.Lock())
        self._users[chat_key] = self._users.get(chat_key, 0) + 1
        try:
            async with lock:
                try:
                    return await self._processor.handle(event, ProcessingMode.LIVE)
                except Exception:
                    LOGGER.exception("Error while processing message %s", event.message_id)
                    return None
        finally:
            self._users[chat_key] -= 1
            if not self._users[chat_key]:
                del self._users[chat_key]
                del self._locks[chat_key]

    async def drain(self) -> None:
        """Stop accepting events and wait for in-flight ones to finish."""

        self._closed = True
        if not self._tasks:
            return
        LOGGER.info("Waiting for %s in-flight events", len(self._tasks))
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
