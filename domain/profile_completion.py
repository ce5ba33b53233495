"""
Domain: profile completion and feature gating (pure).

The completion report is computed from a ProfileView, an explicit projection of
the client account (seeded from its consultation request). Field paths in the
required/optional lists resolve against that view with dotted lookup, so the
lists below are the single source of truth for what "complete" means.

percentage = round(80 * required_present / 13 + 20 * optional_present / 4)

A value is present iff it is not None and its string form is non-empty after
trimming. 0 and False count as present.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from domain.client import ClientIdentity

REQUIRED_FIELDS: Tuple[str, ...] = (
    "full_name",
    "email",
    "consultation_data.phone",
    "consultation_data.linkedin_url",
    "consultation_data.current_job",
    "consultation_data.target_job",
    "consultation_data.years_of_experience",
    "consultation_data.country",
    "consultation_data.user_location",
    "consultation_data.role_targets",
    "consultation_data.location_preferences",
    "consultation_data.minimum_salary",
    "consultation_data.pdf_url",
)

OPTIONAL_FIELDS: Tuple[str, ...] = (
    "consultation_data.age",
    "consultation_data.profile_pic_url",
    "consultation_data.employment_status",
    "consultation_data.target_market",
)

REQUIRED_WEIGHT = 80
OPTIONAL_WEIGHT = 20

# Feature -> minimum percentage. full_access is gated on is_complete instead.
FEATURE_THRESHOLDS: Mapping[str, int] = {
    "application_tracking": 40,
    "interview_hub": 60,
    "document_vault": 80,
}


@dataclass(frozen=True, slots=True)
class ConsultationData:
    phone: Optional[Any] = None
    linkedin_url: Optional[Any] = None
    current_job: Optional[Any] = None
    target_job: Optional[Any] = None
    years_of_experience: Optional[Any] = None
    country: Optional[Any] = None
    user_location: Optional[Any] = None
    role_targets: Optional[Any] = None
    location_preferences: Optional[Any] = None
    minimum_salary: Optional[Any] = None
    pdf_url: Optional[Any] = None
    age: Optional[Any] = None
    profile_pic_url: Optional[Any] = None
    employment_status: Optional[Any] = None
    target_market: Optional[Any] = None


@dataclass(frozen=True, slots=True)
class ProfileView:
    full_name: Optional[Any] = None
    email: Optional[Any] = None
    consultation_data: ConsultationData = field(default_factory=ConsultationData)

    def resolve(self, path: str) -> Any:
        """Dotted-path lookup; unknown segments resolve to None."""

        node: Any = self
        for part in path.split("."):
            if node is None:
                return None
            if isinstance(node, Mapping):
                node = node.get(part)
            else:
                node = getattr(node, part, None)
        return node

    def to_dict(self) -> Dict[str, Any]:
        return {
            "full_name": self.full_name,
            "email": self.email,
            "consultation_data": {
                f.name: getattr(self.consultation_data, f.name)
                for f in fields(ConsultationData)
            },
        }


def _present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def merge_profile(client: ClientIdentity) -> ProfileView:
    """
    Build the ProfileView for a client.

    Registration copies the consultation answers onto the account, so the
    account row is the only source: a field the client clears stays cleared.
    """

    return ProfileView(
        full_name=client.full_name,
        email=client.email,
        consultation_data=ConsultationData(
            **{f.name: getattr(client, f.name, None) for f in fields(ConsultationData)}
        ),
    )


@dataclass(frozen=True, slots=True)
class CompletionReport:
    percentage: int
    is_complete: bool
    required_completed: int
    required_total: int
    optional_completed: int
    optional_total: int
    missing_fields: List[str]
    features_unlocked: Dict[str, bool]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "percentage": self.percentage,
            "is_complete": self.is_complete,
            "required_completed": self.required_completed,
            "required_total": self.required_total,
            "optional_completed": self.optional_completed,
            "optional_total": self.optional_total,
            "missing_fields": list(self.missing_fields),
            "features_unlocked": dict(self.features_unlocked),
        }


def compute_completion(view: ProfileView) -> CompletionReport:
    """Compute the completion report. Pure and cheap; never cached."""

    missing: List[str] = []
    required_present = 0
    for path in REQUIRED_FIELDS:
        if _present(view.resolve(path)):
            required_present += 1
        else:
            missing.append(path)

    optional_present = sum(1 for path in OPTIONAL_FIELDS if _present(view.resolve(path)))

    required_total = len(REQUIRED_FIELDS)
    optional_total = len(OPTIONAL_FIELDS)
    percentage = round(
        REQUIRED_WEIGHT * required_present / required_total
        + OPTIONAL_WEIGHT * optional_present / optional_total
    )
    is_complete = required_present == required_total

    features = {name: percentage >= threshold for name, threshold in FEATURE_THRESHOLDS.items()}
    features["full_access"] = is_complete

    return CompletionReport(
        percentage=percentage,
        is_complete=is_complete,
        required_completed=required_present,
        required_total=required_total,
        optional_completed=optional_present,
        optional_total=optional_total,
        missing_fields=missing,
        features_unlocked=features,
    )


__all__ = [
    "REQUIRED_FIELDS",
    "OPTIONAL_FIELDS",
    "FEATURE_THRESHOLDS",
    "ConsultationData",
    "ProfileView",
    "merge_profile",
    "CompletionReport",
    "compute_completion",
]
