"""Startup backlog reconciliation.

Updates that arrived while the bot was offline are replayed once, strictly
in order, before live polling starts. Replay never talks back to the chat.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from core.config import BacklogConfig
from core.models import EventOutcome, ProcessingMode
from core.ports import UpdateSourcePort
from core.processor import ModerationProcessor

LOGGER = logging.getLogger(__name__)


@dataclass
class BacklogSummary:
    fetched: int = 0
    replayed: int = 0
    failed: int = 0
    outcomes: Counter = field(default_factory=Counter)
    next_offset: Optional[int] = None


class BacklogReconciler:
    """Drains the pending update batch through the processor in backlog mode."""

    def __init__(
        self,
        source: UpdateSourcePort,
        processor: ModerationProcessor,
        config: Optional[BacklogConfig] = None,
    ) -> None:
        self._source = source
        self._processor = processor
        self._config = config or BacklogConfig()

    async def reconcile(self) -> BacklogSummary:
        summary = BacklogSummary()
        try:
            updates = await self._source.fetch_backlog(self._config.limit)
        except Exception:
            LOGGER.exception("Failed to fetch backlog updates")
            return summary

        summary.fetched = len(updates)
        LOGGER.info("Fetched %s backlog updates", summary.fetched)
        if not updates:
            return summary

        last_update_id: Optional[int] = None
        for update in updates:
            last_update_id = update.update_id
            if update.event is None:
                continue
            try:
                outcome = await self._processor.handle(update.event, ProcessingMode.BACKLOG)
            except Exception:
                summary.failed += 1
                LOGGER.exception("Error while replaying backlog update %s", update.update_id)
                continue
            summary.replayed += 1
            summary.outcomes[outcome] += 1

        # The acknowledgement fetch is what moves the server-side offset; the
        # updates it returns are discarded and picked up again by the stream.
        if last_update_id is not None:
            summary.next_offset = last_update_id + 1
            try:
                await self._source.acknowledge(summary.next_offset)
            except Exception:
                LOGGER.exception("Failed to acknowledge backlog up to update %s", last_update_id)

        LOGGER.info(
            "Backlog replay complete: updates=%s, replayed=%s, deleted=%s, failed=%s",
            summary.fetched,
            summary.replayed,
            summary.outcomes[EventOutcome.DELETED],
            summary.failed,
        )
        return summary
