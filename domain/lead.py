"""
Domain: LeadRecord entity (a.k.a. consultation request).

A single record follows a prospect from the public booking form through admin
review, consultation scheduling, payment and registration.

Invariants enforced here:
- Timestamps are UTC.
- `registration_token` is non-null only while pipeline_status is approved and
  token_used is false.
- A `client` record never carries a registration token.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from domain.errors import ValidationFailure
from domain.pipeline import (
    MAX_TIME_SLOTS,
    ConsultationOutcome,
    ConsultationStatus,
    PipelineStatus,
    WorkflowStage,
    legacy_status,
)
from domain.time import require_utc_timestamp

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(value: Optional[str]) -> str:
    """Trim, lowercase and validate an email address."""

    email = (value or "").strip().lower()
    if not email:
        raise ValidationFailure("Email is required", field="email")
    if not EMAIL_PATTERN.match(email):
        raise ValidationFailure("Invalid email format", field="email")
    return email


def normalize_time_slots(slots: Optional[Tuple[Optional[str], ...]]) -> Tuple[Optional[str], ...]:
    """
    Clean up to three candidate time slots, padded with None to length 3.

    Empty strings are dropped and remaining slots keep their submission order.
    """

    cleaned = [s.strip() for s in (slots or ()) if s is not None and s.strip()]
    if len(cleaned) > MAX_TIME_SLOTS:
        raise ValidationFailure(
            f"At most {MAX_TIME_SLOTS} preferred time slots may be submitted",
            field="preferred_slots",
        )
    padded: list[Optional[str]] = list(cleaned) + [None] * (MAX_TIME_SLOTS - len(cleaned))
    return tuple(padded)


@dataclass(frozen=True, slots=True)
class LeadSubmission:
    """Validated public consultation request, before it is persisted."""

    full_name: str
    email: str
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    role_targets: Optional[str] = None
    location_preferences: Optional[str] = None
    minimum_salary: Optional[str] = None
    target_market: Optional[str] = None
    employment_status: Optional[str] = None
    package_interest: Optional[str] = None
    area_of_concern: Optional[str] = None
    message: Optional[str] = None
    preferred_slots: Tuple[Optional[str], ...] = ()

    @classmethod
    def create(cls, *, full_name: Optional[str], email: Optional[str], **fields) -> "LeadSubmission":
        name = (full_name or "").strip()
        if not name:
            raise ValidationFailure("Full name is required", field="full_name")
        slots = normalize_time_slots(tuple(fields.pop("preferred_slots", None) or ()))
        return cls(full_name=name, email=normalize_email(email), preferred_slots=slots, **fields)


@dataclass(frozen=True, slots=True)
class LeadRecord:
    id: str
    full_name: str
    email: str
    pipeline_status: PipelineStatus
    consultation_status: ConsultationStatus
    created_at: datetime

    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    role_targets: Optional[str] = None
    location_preferences: Optional[str] = None
    minimum_salary: Optional[str] = None
    target_market: Optional[str] = None
    employment_status: Optional[str] = None
    package_interest: Optional[str] = None
    area_of_concern: Optional[str] = None
    message: Optional[str] = None

    # Consultation scheduling
    preferred_time_1: Optional[str] = None
    preferred_time_2: Optional[str] = None
    preferred_time_3: Optional[str] = None
    selected_time_slot: Optional[int] = None
    confirmed_time: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_type: Optional[str] = None
    workflow_stage: Optional[WorkflowStage] = None
    consultation_outcome: Optional[ConsultationOutcome] = None
    admin_notes: Optional[str] = None
    package_tier: Optional[str] = None

    # Payment
    payment_amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    payment_received: bool = False
    payment_received_at: Optional[datetime] = None
    payment_confirmed_by: Optional[str] = None

    # Pipeline bookkeeping
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    confirmed_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    registered_at: Optional[datetime] = None
    user_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    # Registration token
    registration_token: Optional[str] = field(default=None, repr=False)
    token_expires_at: Optional[datetime] = None
    token_used: bool = False

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        for name in (
            "payment_received_at",
            "reviewed_at",
            "approved_at",
            "rejected_at",
            "registered_at",
            "updated_at",
            "token_expires_at",
        ):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)

        if self.registration_token is not None and (
            self.pipeline_status is not PipelineStatus.APPROVED or self.token_used
        ):
            raise ValueError(
                "registration_token may only be set on an approved lead with an unused token"
            )

    @property
    def status(self) -> str:
        """Legacy coarse status, always derived from pipeline_status."""

        return legacy_status(self.pipeline_status)

    @property
    def time_slots(self) -> Tuple[Optional[str], Optional[str], Optional[str]]:
        return (self.preferred_time_1, self.preferred_time_2, self.preferred_time_3)

    def time_slot(self, index: int) -> Optional[str]:
        return self.time_slots[index - 1]


__all__ = [
    "EMAIL_PATTERN",
    "normalize_email",
    "normalize_time_slots",
    "LeadSubmission",
    "LeadRecord",
]
