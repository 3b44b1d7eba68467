"""Bot API update source: startup backlog plus long-poll live stream."""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from adapters.telegram_bot_api import BotApiClient, TelegramApiError
from adapters.telegram_mapper import build_update
from core.models import Update

LOGGER = logging.getLogger(__name__)

ALLOWED_UPDATES = ["message"]


class BotApiUpdateSource:
    """UpdateSourcePort implementation over getUpdates.

    The Bot API confirms updates implicitly: any getUpdates call with
    ``offset`` greater than an update id marks that update as consumed.
    """

    def __init__(
        self,
        api: BotApiClient,
        *,
        poll_timeout: int = 30,
        retry_delay_seconds: float = 5.0,
    ) -> None:
        self._api = api
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay_seconds
        self._offset: Optional[int] = None
        self._stopping = asyncio.Event()

    async def fetch_backlog(self, limit: int) -> list[Update]:
        raw_updates = await self._api.get_updates(
            limit=limit,
            timeout=0,
            allowed_updates=ALLOWED_UPDATES,
        )
        return [build_update(item) for item in raw_updates]

    async def acknowledge(self, offset: int) -> None:
        # The returned batch is discarded; the live stream fetches it again.
        await self._api.get_updates(offset=offset, limit=1, timeout=0)
        self._offset = offset

    async def stream(self) -> AsyncIterator[Update]:
        """Yield updates until stop() is called; polling errors are retried."""

        while not self._stopping.is_set():
            try:
                raw_updates = await self._poll()
            except TelegramApiError as exc:
                if self._stopping.is_set():
                    break
                LOGGER.error("Polling error: %s", exc)
                await self._sleep(self._retry_delay)
                continue
            if raw_updates is None:
                break

            for item in raw_updates:
                if self._stopping.is_set():
                    break
                self._offset = int(item["update_id"]) + 1
                yield build_update(item)

    async def _poll(self) -> Optional[list[dict]]:
        """Run one long poll, returning None when stop() interrupts it."""

        poll = asyncio.ensure_future(
            self._api.get_updates(
                offset=self._offset,
                timeout=self._poll_timeout,
                allowed_updates=ALLOWED_UPDATES,
            )
        )
        stopping = asyncio.ensure_future(self._stopping.wait())
        done, _ = await asyncio.wait({poll, stopping}, return_when=asyncio.FIRST_COMPLETED)
        if poll in done:
            stopping.cancel()
            return poll.result()
        poll.cancel()
        try:
            await poll
        except asyncio.CancelledError:
            pass
        return None

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        self._stopping.set()
