"""
Pipeline service: guarded status transitions for leads and consultations.

Every transition is a single conditional update keyed on the expected current
state (`LeadStore.update_where`). The guard is also checked up front so the
common case fails fast with a precise conflict, but correctness rests on the
conditional update: when two admins act on the same lead at once, exactly one
update matches and the other receives a TransitionConflict.

Each successful transition triggers exactly one notification. Notification
failures are swallowed by the dispatcher and never undo the transition.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional, Sequence

from config.settings import Settings
from domain.errors import NotFoundError, TransitionConflict, ValidationFailure
from domain.lead import LeadRecord, LeadSubmission, normalize_time_slots
from domain.pipeline import (
    SCHEDULING_STATUSES,
    VALID_SLOT_INDEXES,
    ConsultationAction,
    ConsultationOutcome,
    ConsultationStatus,
    PipelineAction,
    PipelineStatus,
    Transition,
    WorkflowStage,
    consultation_transition,
    legacy_status,
    pipeline_transition,
    require_scheduling_open,
)
from domain.time import utc_now
from repositories.contracts import LeadPage, LeadStore
from services.notification_service import NotificationDispatcher, NotificationEvent
from services.token_service import IssuedToken, RegistrationTokenService

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100

_SCHEDULING_VALUES = sorted(s.value for s in SCHEDULING_STATUSES)


def format_expiry(expires_at: datetime) -> str:
    return expires_at.strftime("%B %d, %Y at %H:%M UTC")


def _join_slots(slots: Sequence[Optional[str]]) -> str:
    return ", ".join(s for s in slots if s)


class PipelineService:
    def __init__(
        self,
        *,
        leads: LeadStore,
        approval_tokens: RegistrationTokenService,
        payment_tokens: RegistrationTokenService,
        notifier: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._leads = leads
        self._approval_tokens = approval_tokens
        self._payment_tokens = payment_tokens
        self._notifier = notifier
        self._settings = settings
        self._clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_lead(self, lead_id: str) -> LeadRecord:
        lead = self._leads.get(lead_id)
        if lead is None:
            raise NotFoundError("Lead", lead_id)
        return lead

    def list_leads(
        self,
        *,
        pipeline_status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> LeadPage:
        if page < 1:
            raise ValidationFailure("page must be >= 1", field="page")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValidationFailure(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")
        if pipeline_status is not None:
            try:
                pipeline_status = PipelineStatus(pipeline_status).value
            except ValueError:
                raise ValidationFailure(
                    f"Unknown pipeline status: {pipeline_status}", field="pipeline_status"
                ) from None
        return self._leads.list(
            pipeline_status=pipeline_status,
            search=(search or "").strip() or None,
            page=page,
            limit=limit,
        )

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    def submit_lead(self, submission: LeadSubmission) -> LeadRecord:
        """Create a lead from the public consultation form."""

        existing = self._leads.find_active_by_email(submission.email)
        if existing is not None:
            raise TransitionConflict(
                current=existing.pipeline_status.value,
                attempted=PipelineStatus.LEAD.value,
                message="An active consultation request already exists for this email",
            )

        slots = normalize_time_slots(submission.preferred_slots)
        now = self._clock()
        values: Dict[str, Any] = {
            "full_name": submission.full_name,
            "email": submission.email,
            "phone": submission.phone,
            "linkedin_url": submission.linkedin_url,
            "role_targets": submission.role_targets,
            "location_preferences": submission.location_preferences,
            "minimum_salary": submission.minimum_salary,
            "target_market": submission.target_market,
            "employment_status": submission.employment_status,
            "package_interest": submission.package_interest,
            "area_of_concern": submission.area_of_concern,
            "message": submission.message,
            "preferred_time_1": slots[0],
            "preferred_time_2": slots[1],
            "preferred_time_3": slots[2],
            "pipeline_status": PipelineStatus.LEAD,
            "status": legacy_status(PipelineStatus.LEAD),
            "consultation_status": ConsultationStatus.PENDING,
            "workflow_stage": WorkflowStage.CONSULTATION_REQUESTED,
            "token_used": False,
            "created_at": now,
            "updated_at": now,
        }
        lead = self._leads.create(values)
        logger.info("Lead submitted", extra={"lead_id": lead.id})

        self._notifier.dispatch(
            NotificationEvent.LEAD_SUBMITTED,
            lead.email,
            {
                "client_name": lead.full_name,
                "consultation_id": lead.id,
                "preferred_times": _join_slots(lead.time_slots),
            },
        )
        return lead

    # ------------------------------------------------------------------
    # Pipeline edges
    # ------------------------------------------------------------------

    def mark_under_review(self, lead_id: str, admin_id: str) -> LeadRecord:
        now = self._clock()
        lead = self._advance(
            lead_id,
            PipelineAction.MARK_UNDER_REVIEW,
            {"reviewed_at": now, "reviewed_by": admin_id},
            admin_id=admin_id,
        )
        self._notifier.dispatch(
            NotificationEvent.LEAD_UNDER_REVIEW,
            lead.email,
            {"client_name": lead.full_name},
        )
        return lead

    def approve(self, lead_id: str, admin_id: str) -> LeadRecord:
        """
        Approve a lead under review and issue its registration token.

        The token is minted before the conditional update; if another admin
        wins the race the unpersisted token is simply discarded.
        """

        current = self.get_lead(lead_id)
        pipeline_transition(PipelineAction.APPROVE).check(current.pipeline_status)

        issued = self._approval_tokens.issue(current.id, current.email)
        now = self._clock()
        lead = self._advance(
            lead_id,
            PipelineAction.APPROVE,
            {
                "approved_at": now,
                "approved_by": admin_id,
                **self._token_columns(issued),
            },
            admin_id=admin_id,
            current=current,
        )
        self._notifier.dispatch(
            NotificationEvent.LEAD_APPROVED,
            lead.email,
            {
                "client_name": lead.full_name,
                "registration_url": self._registration_url(issued.token),
                "token_expiry": format_expiry(issued.expires_at),
            },
        )
        return lead

    def reject(self, lead_id: str, admin_id: str, reason: Optional[str] = None) -> LeadRecord:
        now = self._clock()
        lead = self._advance(
            lead_id,
            PipelineAction.REJECT,
            {
                "rejected_at": now,
                "rejected_by": admin_id,
                "rejection_reason": reason,
                # A rejected lead must not keep a redeemable token.
                "registration_token": None,
            },
            admin_id=admin_id,
            conflict_message="Cannot reject a registered client",
        )
        self._notifier.dispatch(
            NotificationEvent.LEAD_REJECTED,
            lead.email,
            {"client_name": lead.full_name, "rejection_reason": reason},
        )
        return lead

    # ------------------------------------------------------------------
    # Consultation edges
    # ------------------------------------------------------------------

    def confirm_time_slot(
        self,
        lead_id: str,
        slot: int,
        admin_id: str,
        *,
        meeting_link: Optional[str] = None,
        meeting_type: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> LeadRecord:
        if not isinstance(slot, int) or isinstance(slot, bool) or slot not in VALID_SLOT_INDEXES:
            raise ValidationFailure(
                "selected_time_slot must be 1, 2 or 3", field="selected_time_slot"
            )

        current = self.get_lead(lead_id)
        chosen = current.time_slot(slot)
        if chosen is None:
            raise ValidationFailure(
                f"Preferred time slot {slot} is empty", field="selected_time_slot"
            )

        changes: Dict[str, Any] = {
            "selected_time_slot": slot,
            "confirmed_time": chosen,
            "meeting_link": meeting_link,
            "meeting_type": meeting_type or "video",
            "confirmed_by": admin_id,
            "workflow_stage": WorkflowStage.CONSULTATION_SCHEDULED,
        }
        if admin_notes is not None:
            changes["admin_notes"] = admin_notes

        lead = self._move_consultation(
            current,
            ConsultationAction.CONFIRM_TIME,
            changes,
            admin_id=admin_id,
            # The slot value was read above; it must not change underneath us.
            extra_expected={f"preferred_time_{slot}": chosen},
        )
        self._notifier.dispatch(
            NotificationEvent.CONSULTATION_CONFIRMED,
            lead.email,
            {
                "client_name": lead.full_name,
                "meeting_time": lead.confirmed_time,
                "meeting_link": lead.meeting_link,
                "meeting_type": lead.meeting_type,
            },
        )
        return lead

    def request_new_times(
        self, lead_id: str, admin_id: str, reason: Optional[str] = None
    ) -> LeadRecord:
        current = self.get_lead(lead_id)
        lead = self._move_consultation(
            current,
            ConsultationAction.REQUEST_NEW_TIMES,
            {
                "selected_time_slot": None,
                "confirmed_time": None,
                "workflow_stage": WorkflowStage.NEW_TIMES_REQUESTED,
            },
            admin_id=admin_id,
        )
        self._notifier.dispatch(
            NotificationEvent.NEW_TIMES_REQUESTED,
            lead.email,
            {
                "client_name": lead.full_name,
                "reason": reason,
                "reschedule_link": self._settings.link(f"consultation/{lead.id}/reschedule"),
            },
        )
        return lead

    def resubmit_time_slots(self, lead_id: str, slots: Sequence[Optional[str]]) -> LeadRecord:
        """Client side of awaiting_new_times -> pending."""

        cleaned = normalize_time_slots(tuple(slots))
        if cleaned[0] is None:
            raise ValidationFailure(
                "At least one preferred time slot is required", field="preferred_slots"
            )

        current = self.get_lead(lead_id)
        lead = self._move_consultation(
            current,
            ConsultationAction.RESUBMIT_TIMES,
            {
                "preferred_time_1": cleaned[0],
                "preferred_time_2": cleaned[1],
                "preferred_time_3": cleaned[2],
                "workflow_stage": WorkflowStage.CONSULTATION_REQUESTED,
            },
        )
        self._notifier.dispatch(
            NotificationEvent.NEW_TIMES_SUBMITTED,
            lead.email,
            {"client_name": lead.full_name, "preferred_times": _join_slots(lead.time_slots)},
        )
        return lead

    def mark_consultation_outcome(
        self,
        lead_id: str,
        outcome: str,
        admin_id: str,
        *,
        notes: Optional[str] = None,
        selected_tier: Optional[str] = None,
        next_steps: Optional[str] = None,
    ) -> LeadRecord:
        try:
            parsed = ConsultationOutcome(outcome)
        except ValueError:
            raise ValidationFailure(
                "Consultation outcome must be proceeding or not_proceeding", field="outcome"
            ) from None

        proceeding = parsed is ConsultationOutcome.PROCEEDING
        changes: Dict[str, Any] = {
            "consultation_outcome": parsed,
            "workflow_stage": (
                WorkflowStage.AWAITING_PAYMENT if proceeding else WorkflowStage.CONSULTATION_COMPLETED
            ),
        }
        if notes is not None:
            changes["admin_notes"] = notes
        if proceeding and selected_tier:
            changes["package_tier"] = selected_tier

        current = self.get_lead(lead_id)
        lead = self._move_consultation(
            current, ConsultationAction.MARK_OUTCOME, changes, admin_id=admin_id
        )
        self._notifier.dispatch(
            NotificationEvent.CONSULTATION_COMPLETED,
            lead.email,
            {
                "client_name": lead.full_name,
                "outcome": parsed.value,
                "selected_tier": selected_tier,
                "next_steps": next_steps,
            },
        )
        return lead

    def record_payment(
        self,
        lead_id: str,
        amount: Any,
        admin_id: str,
        *,
        method: Optional[str] = None,
        reference: Optional[str] = None,
        package_tier: Optional[str] = None,
    ) -> LeadRecord:
        """
        Record payment for a proceeding consultation and issue a fresh
        registration token (payment window).
        """

        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise ValidationFailure("Payment amount must be a number", field="payment_amount") from None
        if not value.is_finite() or value <= 0:
            raise ValidationFailure("Payment amount must be positive", field="payment_amount")

        current = self.get_lead(lead_id)
        pipeline_transition(PipelineAction.RECORD_PAYMENT).check(current.pipeline_status)
        payment_edge = consultation_transition(ConsultationAction.RECORD_PAYMENT)
        payment_edge.check(current.consultation_status)
        if current.consultation_outcome is not ConsultationOutcome.PROCEEDING:
            raise TransitionConflict(
                current=current.consultation_status.value,
                attempted=payment_edge.target.value,
                expected=f"{ConsultationStatus.COMPLETED.value} ({ConsultationOutcome.PROCEEDING.value})",
                message="Payment can only be recorded for a consultation completed as proceeding",
            )

        issued = self._payment_tokens.issue(current.id, current.email)
        now = self._clock()
        tier = package_tier or current.package_tier
        changes: Dict[str, Any] = {
            "payment_amount": value,
            "payment_method": method,
            "payment_reference": reference,
            "payment_received": True,
            "payment_received_at": now,
            "payment_confirmed_by": admin_id,
            "package_tier": tier,
            "workflow_stage": WorkflowStage.AWAITING_REGISTRATION,
            "pipeline_status": PipelineStatus.APPROVED,
            "status": legacy_status(PipelineStatus.APPROVED),
            **self._token_columns(issued),
        }
        if current.approved_at is None:
            changes["approved_at"] = now
            changes["approved_by"] = admin_id

        lead = self._move_consultation(
            current,
            ConsultationAction.RECORD_PAYMENT,
            changes,
            admin_id=admin_id,
            extra_expected={"consultation_outcome": ConsultationOutcome.PROCEEDING},
        )
        self._notifier.dispatch(
            NotificationEvent.PAYMENT_RECEIVED,
            lead.email,
            {
                "client_name": lead.full_name,
                "payment_amount": str(value),
                "package_tier": tier,
                "registration_url": self._registration_url(issued.token),
                "token_expiry": format_expiry(issued.expires_at),
            },
        )
        return lead

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _registration_url(self, token: str) -> str:
        return self._settings.link(f"register?token={token}")

    @staticmethod
    def _token_columns(issued: IssuedToken) -> Dict[str, Any]:
        return {
            "registration_token": issued.token,
            "token_expires_at": issued.expires_at,
            "token_used": False,
        }

    def _advance(
        self,
        lead_id: str,
        action: PipelineAction,
        changes: Mapping[str, Any],
        *,
        admin_id: Optional[str] = None,
        current: Optional[LeadRecord] = None,
        conflict_message: Optional[str] = None,
    ) -> LeadRecord:
        transition = pipeline_transition(action)
        if current is None:
            current = self.get_lead(lead_id)
        transition.check(current.pipeline_status, message=self._message_for(current, conflict_message))

        target = transition.target
        full_changes: Dict[str, Any] = {
            **changes,
            "pipeline_status": target,
            "status": legacy_status(target),
            "updated_at": self._clock(),
        }
        updated = self._leads.update_where(
            lead_id, {"pipeline_status": transition.source_values()}, full_changes
        )
        if updated is None:
            self._raise_lost_race(lead_id, transition, "pipeline_status", conflict_message)

        logger.info(
            "Lead pipeline transition",
            extra={
                "lead_id": lead_id,
                "action": action.value,
                "from_status": current.pipeline_status.value,
                "to_status": target.value,
                "admin_id": admin_id,
            },
        )
        return updated

    def _move_consultation(
        self,
        current: LeadRecord,
        action: ConsultationAction,
        changes: Mapping[str, Any],
        *,
        admin_id: Optional[str] = None,
        extra_expected: Optional[Mapping[str, Any]] = None,
    ) -> LeadRecord:
        transition = consultation_transition(action)
        require_scheduling_open(current.pipeline_status, transition.target)
        transition.check(current.consultation_status)

        expected: Dict[str, Any] = {
            "consultation_status": transition.source_values(),
            "pipeline_status": _SCHEDULING_VALUES,
        }
        if extra_expected:
            expected.update(extra_expected)
        full_changes: Dict[str, Any] = {
            **changes,
            "consultation_status": transition.target,
            "updated_at": self._clock(),
        }

        updated = self._leads.update_where(current.id, expected, full_changes)
        if updated is None:
            self._raise_lost_race(current.id, transition, "consultation_status")

        logger.info(
            "Consultation transition",
            extra={
                "lead_id": current.id,
                "action": action.value,
                "from_status": current.consultation_status.value,
                "to_status": transition.target.value,
                "admin_id": admin_id,
            },
        )
        return updated

    @staticmethod
    def _message_for(current: LeadRecord, conflict_message: Optional[str]) -> Optional[str]:
        if conflict_message and current.pipeline_status is PipelineStatus.CLIENT:
            return conflict_message
        return None

    def _raise_lost_race(
        self,
        lead_id: str,
        transition: Transition,
        column: str,
        conflict_message: Optional[str] = None,
    ) -> None:
        """The conditional update matched nothing: report why."""

        latest = self._leads.get(lead_id)
        if latest is None:
            raise NotFoundError("Lead", lead_id)
        if column == "consultation_status":
            require_scheduling_open(latest.pipeline_status, transition.target)

        current_value = getattr(latest, column)
        logger.info(
            "Conditional update lost",
            extra={"lead_id": lead_id, "column": column, "current": current_value.value},
        )
        if column == "pipeline_status":
            message = self._message_for(latest, conflict_message)
        else:
            message = None
        raise TransitionConflict(
            current=current_value.value,
            attempted=transition.target.value,
            expected=transition.expected_label(),
            message=message,
        )


__all__ = ["PipelineService", "format_expiry", "MAX_PAGE_SIZE"]
