"""
Notification dispatch.

Maps each pipeline event to exactly one email template and a context payload,
then hands it to the email collaborator. Dispatch is fire-and-forget: a failed
send is logged and swallowed and never reaches the transition that caused it.

Event table (event -> template):

    lead_submitted          -> consultation_request_received
    lead_under_review       -> profile_under_review
    lead_approved           -> lead_selected
    lead_rejected           -> consultation_rejected
    consultation_confirmed  -> consultation_confirmed
    new_times_requested     -> consultation_reschedule_request
    new_times_submitted     -> consultation_times_received
    consultation_completed  -> consultation_completed
    payment_received        -> payment_received_welcome
    registration_completed  -> onboarding_completion
    onboarding_submitted    -> onboarding_submitted_pending_approval
    onboarding_approved     -> profile_unlocked_tracker_active

Missing context fields fall back to the documented defaults below instead of
failing the send.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from config.settings import Settings
from domain.time import utc_now
from services.email_sender import EmailSender

logger = logging.getLogger(__name__)


class NotificationEvent(str, Enum):
    LEAD_SUBMITTED = "lead_submitted"
    LEAD_UNDER_REVIEW = "lead_under_review"
    LEAD_APPROVED = "lead_approved"
    LEAD_REJECTED = "lead_rejected"
    CONSULTATION_CONFIRMED = "consultation_confirmed"
    NEW_TIMES_REQUESTED = "new_times_requested"
    NEW_TIMES_SUBMITTED = "new_times_submitted"
    CONSULTATION_COMPLETED = "consultation_completed"
    PAYMENT_RECEIVED = "payment_received"
    REGISTRATION_COMPLETED = "registration_completed"
    ONBOARDING_SUBMITTED = "onboarding_submitted"
    ONBOARDING_APPROVED = "onboarding_approved"


@dataclass(frozen=True, slots=True)
class TemplateSpec:
    template: str
    defaults: Mapping[str, str] = field(default_factory=dict)


_CLIENT_NAME = {"client_name": "Valued Client"}

EVENT_TEMPLATES: Mapping[NotificationEvent, TemplateSpec] = {
    NotificationEvent.LEAD_SUBMITTED: TemplateSpec(
        "consultation_request_received",
        {**_CLIENT_NAME, "preferred_times": "To be confirmed"},
    ),
    NotificationEvent.LEAD_UNDER_REVIEW: TemplateSpec(
        "profile_under_review",
        {**_CLIENT_NAME},
    ),
    NotificationEvent.LEAD_APPROVED: TemplateSpec(
        "lead_selected",
        {**_CLIENT_NAME, "registration_url": "", "token_expiry": "72 hours"},
    ),
    NotificationEvent.LEAD_REJECTED: TemplateSpec(
        "consultation_rejected",
        {
            **_CLIENT_NAME,
            "rejection_reason": "We are unable to take on new clients with this profile at this time.",
        },
    ),
    NotificationEvent.CONSULTATION_CONFIRMED: TemplateSpec(
        "consultation_confirmed",
        {
            **_CLIENT_NAME,
            "meeting_time": "To be confirmed",
            "meeting_link": "Meeting link will be shared before the call",
            "meeting_type": "video",
        },
    ),
    NotificationEvent.NEW_TIMES_REQUESTED: TemplateSpec(
        "consultation_reschedule_request",
        {
            **_CLIENT_NAME,
            "reason": "The proposed times are no longer available.",
            "reschedule_link": "",
        },
    ),
    NotificationEvent.NEW_TIMES_SUBMITTED: TemplateSpec(
        "consultation_times_received",
        {**_CLIENT_NAME, "preferred_times": "To be confirmed"},
    ),
    NotificationEvent.CONSULTATION_COMPLETED: TemplateSpec(
        "consultation_completed",
        {
            **_CLIENT_NAME,
            "outcome": "completed",
            "next_steps": "Our team will follow up with next steps shortly.",
            "selected_tier": "To be determined",
        },
    ),
    NotificationEvent.PAYMENT_RECEIVED: TemplateSpec(
        "payment_received_welcome",
        {
            **_CLIENT_NAME,
            "payment_amount": "",
            "package_tier": "Standard",
            "registration_url": "",
            "token_expiry": "7 days",
        },
    ),
    NotificationEvent.REGISTRATION_COMPLETED: TemplateSpec(
        "onboarding_completion",
        {**_CLIENT_NAME, "dashboard_url": ""},
    ),
    NotificationEvent.ONBOARDING_SUBMITTED: TemplateSpec(
        "onboarding_submitted_pending_approval",
        {**_CLIENT_NAME, "review_timeline": "1-2 business days"},
    ),
    NotificationEvent.ONBOARDING_APPROVED: TemplateSpec(
        "profile_unlocked_tracker_active",
        {**_CLIENT_NAME, "dashboard_url": ""},
    ),
}


def template_for(event: NotificationEvent) -> str:
    return EVENT_TEMPLATES[event].template


def build_context(
    event: NotificationEvent,
    context: Optional[Mapping[str, Any]],
    *,
    business_name: str,
    support_email: str,
    now: datetime,
) -> Dict[str, Any]:
    """Merge caller context over the event's defaults and the shared fields."""

    merged: Dict[str, Any] = dict(EVENT_TEMPLATES[event].defaults)
    for key, value in (context or {}).items():
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        merged[key] = value
    merged.setdefault("business_name", business_name)
    merged.setdefault("support_email", support_email)
    merged.setdefault("current_year", now.year)
    return merged


class NotificationDispatcher:
    """
    Dispatch pipeline notifications.

    With an executor, sends are submitted and the call returns immediately;
    without one they run inline (the tests rely on that).
    """

    def __init__(
        self,
        sender: EmailSender,
        settings: Settings,
        *,
        executor: Optional[Executor] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._sender = sender
        self._settings = settings
        self._executor = executor
        self._clock = clock

    @property
    def settings(self) -> Settings:
        return self._settings

    def dispatch(
        self,
        event: NotificationEvent,
        recipient: Optional[str],
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        """Fire-and-forget. Never raises."""

        try:
            if not recipient:
                logger.warning("Notification skipped: no recipient", extra={"event": event.value})
                return
            template = template_for(event)
            payload = build_context(
                event,
                context,
                business_name=self._settings.business_name,
                support_email=self._settings.support_email,
                now=self._clock(),
            )
            if self._executor is None:
                self._send(event, recipient, template, payload)
            else:
                self._executor.submit(self._send, event, recipient, template, payload)
        except Exception:
            logger.error(
                "Notification dispatch failed",
                extra={"event": event.value, "recipient": recipient},
                exc_info=True,
            )

    def _send(
        self,
        event: NotificationEvent,
        recipient: str,
        template: str,
        payload: Mapping[str, Any],
    ) -> None:
        try:
            self._sender.send(recipient, template, payload)
        except Exception:
            logger.error(
                "Email send failed",
                extra={"event": event.value, "template": template, "recipient": recipient},
                exc_info=True,
            )
            return
        logger.info(
            "Email sent",
            extra={"event": event.value, "template": template, "recipient": recipient},
        )

    def shutdown(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)


__all__ = [
    "NotificationEvent",
    "TemplateSpec",
    "EVENT_TEMPLATES",
    "template_for",
    "build_context",
    "NotificationDispatcher",
]
