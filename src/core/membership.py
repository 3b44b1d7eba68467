"""Membership-age tracking (core domain).

Tenure is the only exemption that lives in our own state: admins are looked
up on the chat, but join times are recorded as we observe them.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from core.config import GRACE_PERIOD
from core.models import UserRef
from core.ports import StatePort

LOGGER = logging.getLogger(__name__)


class MembershipTracker:
    """Records join times and answers tenure exemption questions."""

    def __init__(self, store: StatePort) -> None:
        self._store = store

    async def record_join(self, chat_id: int, user: Optional[UserRef], joined_at: datetime) -> None:
        if user is None or user.id is None:
            return
        written = await self._store.record_membership(chat_id, user.id, joined_at)
        if written:
            LOGGER.info(
                "Recorded join time for user %s in chat %s at %s",
                user.id,
                chat_id,
                joined_at.isoformat(),
            )

    def has_exceeded_grace_period(
        self,
        chat_id: int,
        user_id: int,
        reference_time: datetime,
        grace_period: timedelta = GRACE_PERIOD,
    ) -> bool:
        """Return True when the user joined at least ``grace_period`` ago.

        Users we never saw join are not exempt: unknown tenure is classified.
        """

        record = self._store.get_membership(chat_id, user_id)
        if record is None:
            return False
        return reference_time - record.joined_at >= grace_period
