"""
Domain: onboarding questionnaire and the Discovery Mode gate (pure).

The gate is independent of profile completion. It has exactly three states:

- NOT_STARTED: questionnaire not submitted; tracker hidden.
- PENDING_REVIEW: questionnaire submitted, admin has not unlocked the profile.
- UNLOCKED: admin approved the answers; tracker and execution features visible.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from domain.errors import ValidationFailure
from domain.time import require_utc_timestamp


class DiscoveryState(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    PENDING_REVIEW = "PENDING_REVIEW"
    UNLOCKED = "UNLOCKED"


class ExecutionStatus(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    ACTIVE = "active"


def classify_discovery(onboarding_completed: bool, profile_unlocked: bool) -> DiscoveryState:
    """
    Single source of truth for the Discovery Mode state.

    `profile_unlocked` without `onboarding_completed` is unreachable through the
    approval flow; it is treated as NOT_STARTED so the tracker stays hidden.
    """

    if not onboarding_completed:
        return DiscoveryState.NOT_STARTED
    if not profile_unlocked:
        return DiscoveryState.PENDING_REVIEW
    return DiscoveryState.UNLOCKED


_NEXT_STEPS: Mapping[DiscoveryState, str] = {
    DiscoveryState.NOT_STARTED: "Complete the onboarding questionnaire to begin.",
    DiscoveryState.PENDING_REVIEW: (
        "Your onboarding answers are under review. We will unlock your "
        "Application Tracker once the review is complete."
    ),
    DiscoveryState.UNLOCKED: "Your Application Tracker is active.",
}


def next_steps_for(state: DiscoveryState) -> str:
    return _NEXT_STEPS[state]


REQUIRED_ANSWERS: Tuple[str, ...] = (
    "target_job_titles",
    "target_industries",
    "target_locations",
    "target_salary_range",
    "years_of_experience",
    "key_technical_skills",
    "job_search_timeline",
    "career_goals_short_term",
    "biggest_career_challenges",
    "support_areas_needed",
)

SCORE_ANSWERS: Tuple[str, ...] = (
    "salary_negotiation_comfort",
    "networking_comfort",
    "interview_confidence",
)

OPTIONAL_ANSWERS: Tuple[str, ...] = (
    "target_company_sizes",
    "remote_work_preference",
    "willing_to_relocate",
    "current_salary",
    "education_level",
    "certifications",
    "soft_skills",
    "career_goals_long_term",
    "preferred_communication",
    "additional_notes",
)

ALL_ANSWERS: Tuple[str, ...] = REQUIRED_ANSWERS + SCORE_ANSWERS + OPTIONAL_ANSWERS

SCORE_MIN = 1
SCORE_MAX = 10


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, set)):
        return not any(str(v).strip() for v in value)
    return not str(value).strip()


def validate_answers(answers: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Validate questionnaire answers and return the subset that is persisted.

    Raises ValidationFailure on the first problem so nothing is written.
    """

    for name in REQUIRED_ANSWERS:
        if _is_blank(answers.get(name)):
            raise ValidationFailure(f"{name} is required", field=name)

    try:
        years = float(answers["years_of_experience"])
    except (TypeError, ValueError):
        raise ValidationFailure(
            "years_of_experience must be a number", field="years_of_experience"
        ) from None
    if years < 0:
        raise ValidationFailure(
            "years_of_experience cannot be negative", field="years_of_experience"
        )

    for name in SCORE_ANSWERS:
        value = answers.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or not SCORE_MIN <= value <= SCORE_MAX:
            raise ValidationFailure(
                f"{name} must be an integer between {SCORE_MIN} and {SCORE_MAX}", field=name
            )

    return {name: answers[name] for name in ALL_ANSWERS if name in answers}


@dataclass(frozen=True, slots=True)
class OnboardingRecord:
    client_id: str
    answers: Mapping[str, Any]
    execution_status: ExecutionStatus
    submitted_at: datetime
    approved_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    admin_notes: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("submitted_at", self.submitted_at)
        if self.approved_at is not None:
            require_utc_timestamp("approved_at", self.approved_at)


@dataclass(frozen=True, slots=True)
class DiscoveryStatus:
    """The single queryable gate status shared by client and admin views."""

    discovery_state: DiscoveryState
    onboarding_completed: bool
    profile_unlocked: bool

    @classmethod
    def of(cls, onboarding_completed: bool, profile_unlocked: bool) -> "DiscoveryStatus":
        return cls(
            discovery_state=classify_discovery(onboarding_completed, profile_unlocked),
            onboarding_completed=onboarding_completed,
            profile_unlocked=profile_unlocked,
        )

    @property
    def can_access_tracker(self) -> bool:
        return self.discovery_state is DiscoveryState.UNLOCKED

    @property
    def show_discovery_mode(self) -> bool:
        return self.discovery_state is not DiscoveryState.UNLOCKED

    @property
    def next_steps(self) -> str:
        return next_steps_for(self.discovery_state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "discovery_state": self.discovery_state.value,
            "onboarding_completed": self.onboarding_completed,
            "profile_unlocked": self.profile_unlocked,
            "can_access_tracker": self.can_access_tracker,
            "show_discovery_mode": self.show_discovery_mode,
            "next_steps": self.next_steps,
        }
