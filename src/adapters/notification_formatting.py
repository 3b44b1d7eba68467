"""Chat-facing notice formatting.

Keeping the wording here prevents drift between call sites and keeps the
core free of user-facing strings. Notices are sent as plain text, so no
escaping is required.
"""

from __future__ import annotations

from core.scoring import MAX_SCORE

DELETION_TEMPLATE = "疑似廣告訊息已刪除（評分 {score} / {max_score}）。"
UNAVAILABLE_TEXT = "暫時無法判斷此訊息是否為廣告，請稍後再試。"


class ChatNotices:
    """Default notice texts used by the decision engine."""

    def __init__(
        self,
        deletion_template: str = DELETION_TEMPLATE,
        unavailable_text: str = UNAVAILABLE_TEXT,
    ) -> None:
        self._deletion_template = deletion_template
        self._unavailable_text = unavailable_text

    def deletion_notice(self, score: int) -> str:
        return self._deletion_template.format(score=score, max_score=MAX_SCORE)

    def unavailable_notice(self) -> str:
        return self._unavailable_text
