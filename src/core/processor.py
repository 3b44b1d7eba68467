"""Core moderation pipeline.

This module is integration-agnostic. It only relies on ports for storage,
chat actions and scoring, enabling other transports without changes here.

Each event walks a fixed sequence:
1) Fast-exit for missing chat context or non-group chats
2) Record join times carried by the message
3) Fast-exit for empty text
4) Exemptions (chat admin, tenure past the grace period)
5) Classification
6) Enforcement for scores above the threshold
7) Persist the classification record
8) Live-mode notice when the message was removed
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from core.config import ModerationConfig
from core.enforcement import EnforcementGateway
from core.errors import ClassificationError, StoreError
from core.membership import MembershipTracker
from core.models import (
    ChatRef,
    Classification,
    ClassificationRecord,
    EventOutcome,
    MessageEvent,
    ProcessingMode,
)
from core.ports import NoticePort, StatePort
from core.scoring import ScoringClient

LOGGER = logging.getLogger(__name__)

SKIP_CHAT_ADMIN = "chat_admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ModerationProcessor:
    """Decides exempt/classify/delete/notify for one message event."""

    def __init__(
        self,
        store: StatePort,
        membership: MembershipTracker,
        scoring: ScoringClient,
        enforcement: EnforcementGateway,
        notices: NoticePort,
        config: Optional[ModerationConfig] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._membership = membership
        self._scoring = scoring
        self._enforcement = enforcement
        self._notices = notices
        self._config = config or ModerationConfig()
        self._clock = clock

    async def handle(self, event: MessageEvent, mode: ProcessingMode) -> EventOutcome:
        """Process one message event through the moderation pipeline."""

        chat = event.chat
        if chat is None or not chat.is_group:
            return EventOutcome.IGNORED

        # Join bookkeeping runs before the text check: service messages that
        # announce new members carry no text at all.
        for member in event.new_members:
            try:
                await self._membership.record_join(chat.id, member, event.date)
            except StoreError:
                LOGGER.exception(
                    "Failed to record join time for user %s in chat %s",
                    member.id if member.id is not None else "unknown",
                    chat.id,
                )

        text = event.content
        if not text:
            return EventOutcome.IGNORED

        LOGGER.info(
            "Received message %s in chat %s (%s) [%s]",
            event.message_id,
            chat.id,
            chat.title or "untitled",
            mode.value,
        )

        sender_id = event.sender_id
        if sender_id is not None:
            if await self._enforcement.is_admin(chat.id, sender_id):
                LOGGER.info(
                    "Skipping classification for admin message %s from %s in chat %s",
                    event.message_id,
                    sender_id,
                    chat.id,
                )
                return EventOutcome.EXEMPT_ADMIN
            if self._membership.has_exceeded_grace_period(
                chat.id, sender_id, event.date, self._config.grace_period
            ):
                LOGGER.info(
                    "Skipping classification for message %s from longstanding member %s in chat %s",
                    event.message_id,
                    sender_id,
                    chat.id,
                )
                return EventOutcome.EXEMPT_TENURE

        try:
            classification = await self._scoring.classify(text)
        except ClassificationError as exc:
            LOGGER.error("Failed to classify message %s in chat %s: %s", event.message_id, chat.id, exc)
            if mode is ProcessingMode.LIVE:
                await self._enforcement.notify(
                    chat.id,
                    self._notices.unavailable_notice(),
                    reply_to=event.message_id,
                )
            return EventOutcome.CLASSIFICATION_FAILED

        LOGGER.info(
            "Classification result for message %s: score=%s, raw=%r",
            event.message_id,
            classification.score,
            classification.raw_answer,
        )

        record = self._build_record(chat, event, text, classification)
        record = await self._enforce(record)

        try:
            await self._store.upsert_classification(record)
        except StoreError:
            LOGGER.exception("Failed to persist classification for message %s in chat %s", event.message_id, chat.id)
            return EventOutcome.STORE_FAILED

        if not record.deleted:
            return EventOutcome.RECORDED

        if mode is ProcessingMode.LIVE:
            await self._enforcement.notify(chat.id, self._notices.deletion_notice(record.score))
        return EventOutcome.DELETED

    def _build_record(
        self,
        chat: ChatRef,
        event: MessageEvent,
        text: str,
        classification: Classification,
    ) -> ClassificationRecord:
        return ClassificationRecord(
            chat_id=chat.id,
            chat_title=chat.title,
            message_id=event.message_id,
            user_id=event.sender_id,
            username=event.sender.username if event.sender else None,
            text=text,
            score=classification.score,
            raw_answer=classification.raw_answer,
            evaluated_at=self._clock(),
        )

    async def _enforce(self, record: ClassificationRecord) -> ClassificationRecord:
        if record.score <= self._config.delete_threshold:
            return record

        # Admin status is re-queried here rather than reusing the earlier
        # answer, so a promotion during classification is honoured.
        if record.user_id is not None and await self._enforcement.is_admin(record.chat_id, record.user_id):
            LOGGER.info(
                "Skipping deletion for message %s; sender %s is administrator",
                record.message_id,
                record.user_id,
            )
            return record.mark_skipped(SKIP_CHAT_ADMIN)

        LOGGER.info(
            "Score %s exceeds threshold. Attempting to delete message %s in chat %s",
            record.score,
            record.message_id,
            record.chat_id,
        )
        if not await self._enforcement.delete_message(record.chat_id, record.message_id):
            return record

        LOGGER.info("Message %s in chat %s deleted due to high ad score", record.message_id, record.chat_id)
        return record.mark_deleted(self._clock())
