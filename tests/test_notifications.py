"""
Tests for `services/notification_service.py` and `services/email_sender.py`.

Covers contract rules:
- Each event maps to exactly one template.
- Missing context falls back to documented defaults.
- Dispatch never raises: send failures and missing recipients are logged.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
import requests

from services.email_sender import (
    EmailDeliveryError,
    HttpEmailSender,
    LoggingEmailSender,
    build_email_sender,
)
from services.notification_service import (
    EVENT_TEMPLATES,
    NotificationDispatcher,
    NotificationEvent,
    build_context,
    template_for,
)

from fakes import RecordingEmailSender

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_every_event_has_one_template() -> None:
    assert set(EVENT_TEMPLATES) == set(NotificationEvent)
    templates = [spec.template for spec in EVENT_TEMPLATES.values()]
    assert len(templates) == len(set(templates))


@pytest.mark.parametrize(
    "event,template",
    [
        (NotificationEvent.LEAD_SUBMITTED, "consultation_request_received"),
        (NotificationEvent.LEAD_UNDER_REVIEW, "profile_under_review"),
        (NotificationEvent.LEAD_APPROVED, "lead_selected"),
        (NotificationEvent.LEAD_REJECTED, "consultation_rejected"),
        (NotificationEvent.CONSULTATION_CONFIRMED, "consultation_confirmed"),
        (NotificationEvent.NEW_TIMES_REQUESTED, "consultation_reschedule_request"),
        (NotificationEvent.NEW_TIMES_SUBMITTED, "consultation_times_received"),
        (NotificationEvent.CONSULTATION_COMPLETED, "consultation_completed"),
        (NotificationEvent.PAYMENT_RECEIVED, "payment_received_welcome"),
        (NotificationEvent.REGISTRATION_COMPLETED, "onboarding_completion"),
        (NotificationEvent.ONBOARDING_SUBMITTED, "onboarding_submitted_pending_approval"),
        (NotificationEvent.ONBOARDING_APPROVED, "profile_unlocked_tracker_active"),
    ],
)
def test_template_for(event, template) -> None:
    assert template_for(event) == template


def test_build_context_defaults() -> None:
    context = build_context(
        NotificationEvent.LEAD_REJECTED,
        {"client_name": None, "rejection_reason": "   "},
        business_name="Apply Bureau",
        support_email="support@applybureau.com",
        now=NOW,
    )

    assert context == {
        "client_name": "Valued Client",
        "rejection_reason": "We are unable to take on new clients with this profile at this time.",
        "business_name": "Apply Bureau",
        "support_email": "support@applybureau.com",
        "current_year": 2025,
    }


def test_build_context_caller_values_win() -> None:
    context = build_context(
        NotificationEvent.CONSULTATION_CONFIRMED,
        {"client_name": "Jane", "meeting_link": "https://meet.example/abc", "business_name": "Other"},
        business_name="Apply Bureau",
        support_email="support@applybureau.com",
        now=NOW,
    )
    assert context["client_name"] == "Jane"
    assert context["meeting_link"] == "https://meet.example/abc"
    assert context["meeting_type"] == "video"
    assert context["business_name"] == "Other"


def test_dispatch_sends_inline(settings) -> None:
    sender = RecordingEmailSender()
    dispatcher = NotificationDispatcher(sender, settings, clock=lambda: NOW)

    dispatcher.dispatch(NotificationEvent.LEAD_UNDER_REVIEW, "jane@example.com", {"client_name": "Jane"})

    to, template, context = sender.sent[0]
    assert to == "jane@example.com"
    assert template == "profile_under_review"
    assert context["client_name"] == "Jane"
    assert context["business_name"] == settings.business_name


def test_dispatch_without_recipient_is_skipped(settings, caplog) -> None:
    sender = RecordingEmailSender()
    dispatcher = NotificationDispatcher(sender, settings)

    dispatcher.dispatch(NotificationEvent.LEAD_APPROVED, None)

    assert sender.sent == []
    assert "Notification skipped" in caplog.text


def test_dispatch_swallows_send_failure(settings, caplog) -> None:
    dispatcher = NotificationDispatcher(RecordingEmailSender(fail=True), settings)

    dispatcher.dispatch(NotificationEvent.LEAD_APPROVED, "jane@example.com")

    assert any(
        r.levelname == "ERROR" and r.getMessage() == "Email send failed" for r in caplog.records
    )


def test_dispatch_on_executor(settings) -> None:
    sender = RecordingEmailSender()
    dispatcher = NotificationDispatcher(
        sender, settings, executor=ThreadPoolExecutor(max_workers=1)
    )

    dispatcher.dispatch(NotificationEvent.PAYMENT_RECEIVED, "jane@example.com", {"payment_amount": "499"})
    dispatcher.shutdown()

    assert sender.templates() == ["payment_received_welcome"]
    assert sender.last("payment_received_welcome")["token_expiry"] == "7 days"


def test_http_sender_posts_json() -> None:
    session = MagicMock(spec=requests.Session)
    sender = HttpEmailSender("https://mail.test/send", "key-123", timeout=3, session=session)

    sender.send("jane@example.com", "lead_selected", {"client_name": "Jane"})

    session.post.assert_called_once_with(
        "https://mail.test/send",
        json={"to": "jane@example.com", "template": "lead_selected", "variables": {"client_name": "Jane"}},
        headers={"Content-Type": "application/json", "Authorization": "Bearer key-123"},
        timeout=3,
    )
    session.post.return_value.raise_for_status.assert_called_once()


def test_http_sender_wraps_request_errors() -> None:
    session = MagicMock(spec=requests.Session)
    session.post.side_effect = requests.ConnectionError("connection refused")
    sender = HttpEmailSender("https://mail.test/send", session=session)

    with pytest.raises(EmailDeliveryError):
        sender.send("jane@example.com", "lead_selected", {})


def test_logging_sender(caplog) -> None:
    LoggingEmailSender().send("jane@example.com", "lead_selected", {})
    assert "Email service not configured" in caplog.text


def test_build_email_sender(settings) -> None:
    assert isinstance(build_email_sender(settings), LoggingEmailSender)

    configured = build_email_sender(
        type(settings)(
            registration_token_secret="s",
            session_token_secret="s",
            email_service_url="https://mail.test/send",
        )
    )
    assert isinstance(configured, HttpEmailSender)
