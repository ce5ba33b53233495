"""
Domain: lead/client pipeline state machine (pure).

Two orthogonal axes live on a single LeadRecord:

Pipeline status (coarse lifecycle):
    lead -> under_review -> approved -> client
    any non-client state -> rejected
  `rejected` and `client` are terminal.

Consultation status (scheduling sub-state, only meaningful while the pipeline
status is lead / under_review / approved):
    pending -> confirmed -> completed -> payment_received
    pending|confirmed -> awaiting_new_times -> pending

Every edge is described by a Transition: the set of source states it accepts
and the target state it writes. Services express the guard as a conditional
update keyed on `sources`, so the check and the write cannot race.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Mapping, Optional

from domain.errors import TransitionConflict


class PipelineStatus(str, Enum):
    LEAD = "lead"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    CLIENT = "client"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[PipelineStatus] = frozenset(
    {PipelineStatus.REJECTED, PipelineStatus.CLIENT}
)

# Pipeline statuses during which the consultation sub-state may still move.
SCHEDULING_STATUSES: FrozenSet[PipelineStatus] = frozenset(
    {PipelineStatus.LEAD, PipelineStatus.UNDER_REVIEW, PipelineStatus.APPROVED}
)


# The legacy `status` column is never written on its own; it is always derived
# from pipeline_status in the same update.
_LEGACY_STATUS: Mapping[PipelineStatus, str] = {
    PipelineStatus.LEAD: "pending",
    PipelineStatus.UNDER_REVIEW: "under_review",
    PipelineStatus.APPROVED: "approved",
    PipelineStatus.REJECTED: "rejected",
    PipelineStatus.CLIENT: "completed",
}


def legacy_status(status: PipelineStatus) -> str:
    """Project the canonical pipeline status onto the legacy `status` column."""

    return _LEGACY_STATUS[status]


class ConsultationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    AWAITING_NEW_TIMES = "awaiting_new_times"
    COMPLETED = "completed"
    PAYMENT_RECEIVED = "payment_received"


class ConsultationOutcome(str, Enum):
    PROCEEDING = "proceeding"
    NOT_PROCEEDING = "not_proceeding"


class WorkflowStage(str, Enum):
    CONSULTATION_REQUESTED = "consultation_requested"
    CONSULTATION_SCHEDULED = "initial_consultation_scheduled"
    NEW_TIMES_REQUESTED = "admin_requested_new_times"
    CONSULTATION_COMPLETED = "consultation_completed"
    AWAITING_PAYMENT = "awaiting_payment"
    AWAITING_REGISTRATION = "payment_received_awaiting_registration"
    CLIENT_REGISTERED = "client_registered_awaiting_onboarding"


class PipelineAction(str, Enum):
    MARK_UNDER_REVIEW = "mark_under_review"
    APPROVE = "approve"
    REJECT = "reject"
    RECORD_PAYMENT = "record_payment"
    COMPLETE_REGISTRATION = "complete_registration"


class ConsultationAction(str, Enum):
    CONFIRM_TIME = "confirm_time"
    REQUEST_NEW_TIMES = "request_new_times"
    RESUBMIT_TIMES = "resubmit_times"
    MARK_OUTCOME = "mark_outcome"
    RECORD_PAYMENT = "record_payment"


@dataclass(frozen=True, slots=True)
class Transition:
    """A single guarded edge: accepted source states and the state written."""

    sources: FrozenSet[Enum]
    target: Enum

    def allows(self, current: Enum) -> bool:
        return current in self.sources

    def expected_label(self) -> str:
        return "|".join(sorted(s.value for s in self.sources))

    def check(self, current: Enum, *, message: Optional[str] = None) -> None:
        """Raise TransitionConflict unless `current` is an accepted source."""

        if not self.allows(current):
            raise TransitionConflict(
                current=current.value,
                attempted=self.target.value,
                expected=self.expected_label(),
                message=message,
            )

    def source_values(self) -> list[str]:
        return sorted(s.value for s in self.sources)


PIPELINE_TRANSITIONS: Mapping[PipelineAction, Transition] = {
    PipelineAction.MARK_UNDER_REVIEW: Transition(
        sources=frozenset({PipelineStatus.LEAD}),
        target=PipelineStatus.UNDER_REVIEW,
    ),
    PipelineAction.APPROVE: Transition(
        sources=frozenset({PipelineStatus.UNDER_REVIEW}),
        target=PipelineStatus.APPROVED,
    ),
    # Rejection is blocked only for registered clients.
    PipelineAction.REJECT: Transition(
        sources=frozenset(set(PipelineStatus) - {PipelineStatus.CLIENT}),
        target=PipelineStatus.REJECTED,
    ),
    # Payment issues its own registration token, so the lead lands in
    # `approved` regardless of whether an admin approved it earlier.
    PipelineAction.RECORD_PAYMENT: Transition(
        sources=SCHEDULING_STATUSES,
        target=PipelineStatus.APPROVED,
    ),
    PipelineAction.COMPLETE_REGISTRATION: Transition(
        sources=frozenset({PipelineStatus.APPROVED}),
        target=PipelineStatus.CLIENT,
    ),
}


CONSULTATION_TRANSITIONS: Mapping[ConsultationAction, Transition] = {
    ConsultationAction.CONFIRM_TIME: Transition(
        sources=frozenset({ConsultationStatus.PENDING}),
        target=ConsultationStatus.CONFIRMED,
    ),
    ConsultationAction.REQUEST_NEW_TIMES: Transition(
        sources=frozenset({ConsultationStatus.PENDING, ConsultationStatus.CONFIRMED}),
        target=ConsultationStatus.AWAITING_NEW_TIMES,
    ),
    ConsultationAction.RESUBMIT_TIMES: Transition(
        sources=frozenset({ConsultationStatus.AWAITING_NEW_TIMES}),
        target=ConsultationStatus.PENDING,
    ),
    ConsultationAction.MARK_OUTCOME: Transition(
        sources=frozenset({ConsultationStatus.CONFIRMED}),
        target=ConsultationStatus.COMPLETED,
    ),
    ConsultationAction.RECORD_PAYMENT: Transition(
        sources=frozenset({ConsultationStatus.COMPLETED}),
        target=ConsultationStatus.PAYMENT_RECEIVED,
    ),
}


def pipeline_transition(action: PipelineAction) -> Transition:
    return PIPELINE_TRANSITIONS[action]


def consultation_transition(action: ConsultationAction) -> Transition:
    return CONSULTATION_TRANSITIONS[action]


def require_scheduling_open(status: PipelineStatus, attempted: ConsultationStatus) -> None:
    """Consultation edges are only valid while the lead is still in the pipeline."""

    if status not in SCHEDULING_STATUSES:
        raise TransitionConflict(
            current=status.value,
            attempted=attempted.value,
            expected="|".join(sorted(s.value for s in SCHEDULING_STATUSES)),
            message=(
                f"Consultation cannot move to {attempted.value} while the lead is "
                f"{status.value}"
            ),
        )


MAX_TIME_SLOTS = 3
VALID_SLOT_INDEXES: FrozenSet[int] = frozenset({1, 2, 3})


__all__ = [
    "PipelineStatus",
    "TERMINAL_STATUSES",
    "SCHEDULING_STATUSES",
    "legacy_status",
    "ConsultationStatus",
    "ConsultationOutcome",
    "WorkflowStage",
    "PipelineAction",
    "ConsultationAction",
    "Transition",
    "PIPELINE_TRANSITIONS",
    "CONSULTATION_TRANSITIONS",
    "pipeline_transition",
    "consultation_transition",
    "require_scheduling_open",
    "MAX_TIME_SLOTS",
    "VALID_SLOT_INDEXES",
]
