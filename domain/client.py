"""
Domain: ClientIdentity (registered client account).

Created exactly once per lead, at registration completion. The email is
inherited from the LeadRecord and never changes afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

from .time import require_utc_timestamp

CLIENT_ROLE = "client"

# Columns a client may edit through the self-service profile endpoints.
EDITABLE_PROFILE_FIELDS: Tuple[str, ...] = (
    "full_name",
    "phone",
    "linkedin_url",
    "current_job",
    "target_job",
    "years_of_experience",
    "country",
    "user_location",
    "role_targets",
    "location_preferences",
    "minimum_salary",
    "age",
    "profile_pic_url",
    "employment_status",
    "target_market",
    "pdf_url",
)


@dataclass(frozen=True, slots=True)
class ClientIdentity:
    """
    Registered client account.

    Gate flags:
    - onboarding_completed: set by the client's first questionnaire submission.
    - profile_unlocked: set only by an admin, after onboarding_completed.
      Rows unlocked without a submission exist and classify as NOT_STARTED.
    """

    id: str
    lead_id: str
    email: str
    full_name: str
    passcode_hash: str = field(repr=False)
    role: str = CLIENT_ROLE

    # Profile
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    current_job: Optional[str] = None
    target_job: Optional[str] = None
    years_of_experience: Optional[str] = None
    country: Optional[str] = None
    user_location: Optional[str] = None
    role_targets: Optional[str] = None
    location_preferences: Optional[str] = None
    minimum_salary: Optional[str] = None
    age: Optional[str] = None
    profile_pic_url: Optional[str] = None
    employment_status: Optional[str] = None
    target_market: Optional[str] = None
    pdf_url: Optional[str] = None

    # Discovery gate
    onboarding_completed: bool = False
    onboarding_completed_at: Optional[datetime] = None
    profile_unlocked: bool = False
    profile_unlocked_at: Optional[datetime] = None
    profile_unlocked_by: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        """Validate timestamps are UTC-aware."""
        for name in ("onboarding_completed_at", "profile_unlocked_at", "created_at", "updated_at"):
            value = getattr(self, name)
            if value is not None:
                require_utc_timestamp(name, value)
