from __future__ import annotations

from adapters.notification_formatting import ChatNotices


def test_deletion_notice_reports_score_out_of_ten() -> None:
    notice = ChatNotices().deletion_notice(9)
    assert "9 / 10" in notice


def test_custom_templates_are_used() -> None:
    notices = ChatNotices(deletion_template="removed ({score}/{max_score})", unavailable_text="try later")
    assert notices.deletion_notice(10) == "removed (10/10)"
    assert notices.unavailable_notice() == "try later"
