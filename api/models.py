"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from domain.application import JobApplication
from domain.client import ClientIdentity
from domain.lead import LeadRecord
from domain.onboarding import DiscoveryStatus, OnboardingRecord
from domain.profile_completion import CompletionReport


# ============================================================================
# Lead / Consultation Models
# ============================================================================

class LeadSubmissionRequest(BaseModel):
    """Public consultation request form."""
    full_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
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
    preferred_slots: List[str] = Field(default_factory=list, max_length=3)

    class Config:
        json_schema_extra = {
            "example": {
                "full_name": "Jane Doe",
                "email": "jane@example.com",
                "phone": "+1 416 555 0100",
                "role_targets": "Senior Product Manager",
                "preferred_slots": ["2025-03-01T15:00:00Z", "2025-03-02T18:00:00Z"],
            }
        }


class LeadResponse(BaseModel):
    """Lead / consultation record as returned to admins."""
    id: str
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
    message: Optional[str] = None
    pipeline_status: str
    status: str
    consultation_status: str
    workflow_stage: Optional[str] = None
    consultation_outcome: Optional[str] = None
    preferred_time_1: Optional[str] = None
    preferred_time_2: Optional[str] = None
    preferred_time_3: Optional[str] = None
    selected_time_slot: Optional[int] = None
    confirmed_time: Optional[str] = None
    meeting_link: Optional[str] = None
    meeting_type: Optional[str] = None
    package_tier: Optional[str] = None
    payment_amount: Optional[Decimal] = None
    payment_received: bool = False
    token_expires_at: Optional[datetime] = None
    token_used: bool = False
    reviewed_by: Optional[str] = None
    approved_by: Optional[str] = None
    confirmed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    user_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, lead: LeadRecord) -> "LeadResponse":
        return cls(
            id=lead.id,
            full_name=lead.full_name,
            email=lead.email,
            phone=lead.phone,
            linkedin_url=lead.linkedin_url,
            role_targets=lead.role_targets,
            location_preferences=lead.location_preferences,
            minimum_salary=lead.minimum_salary,
            target_market=lead.target_market,
            employment_status=lead.employment_status,
            package_interest=lead.package_interest,
            message=lead.message,
            pipeline_status=lead.pipeline_status.value,
            status=lead.status,
            consultation_status=lead.consultation_status.value,
            workflow_stage=lead.workflow_stage.value if lead.workflow_stage else None,
            consultation_outcome=(
                lead.consultation_outcome.value if lead.consultation_outcome else None
            ),
            preferred_time_1=lead.preferred_time_1,
            preferred_time_2=lead.preferred_time_2,
            preferred_time_3=lead.preferred_time_3,
            selected_time_slot=lead.selected_time_slot,
            confirmed_time=lead.confirmed_time,
            meeting_link=lead.meeting_link,
            meeting_type=lead.meeting_type,
            package_tier=lead.package_tier,
            payment_amount=lead.payment_amount,
            payment_received=lead.payment_received,
            token_expires_at=lead.token_expires_at,
            token_used=lead.token_used,
            reviewed_by=lead.reviewed_by,
            approved_by=lead.approved_by,
            confirmed_by=lead.confirmed_by,
            rejection_reason=lead.rejection_reason,
            user_id=lead.user_id,
            created_at=lead.created_at,
            updated_at=lead.updated_at,
        )


class LeadMutationResponse(BaseModel):
    """Every admin mutation returns the updated record plus a message."""
    lead: LeadResponse
    message: str


class LeadListResponse(BaseModel):
    items: List[LeadResponse]
    total_count: int
    page: int
    limit: int


class RejectLeadRequest(BaseModel):
    reason: Optional[str] = None


class ConfirmTimeRequest(BaseModel):
    selected_time_slot: int
    meeting_link: Optional[str] = None
    meeting_type: Optional[str] = None
    admin_notes: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "selected_time_slot": 2,
                "meeting_link": "https://meet.google.com/abc-defg-hij",
                "meeting_type": "video",
            }
        }


class RequestNewTimesRequest(BaseModel):
    reason: Optional[str] = None


class ResubmitTimesRequest(BaseModel):
    preferred_slots: List[str] = Field(..., min_length=1, max_length=3)


class ConsultationOutcomeRequest(BaseModel):
    outcome: str
    admin_notes: Optional[str] = None
    selected_tier: Optional[str] = None
    next_steps: Optional[str] = None


class RecordPaymentRequest(BaseModel):
    payment_amount: Decimal
    payment_method: Optional[str] = None
    payment_reference: Optional[str] = None
    package_tier: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "payment_amount": "499.00",
                "payment_method": "interac_etransfer",
                "payment_reference": "ET-2025-0042",
                "package_tier": "Tier 2",
            }
        }


# ============================================================================
# Registration Models
# ============================================================================

class RegistrationVerifyResponse(BaseModel):
    valid: bool
    lead_id: str
    email: str
    full_name: str
    expires_at: datetime


class CompleteRegistrationRequest(BaseModel):
    token: str
    passcode: str
    confirm_passcode: Optional[str] = None
    full_name: Optional[str] = None
    phone: Optional[str] = None
    linkedin_url: Optional[str] = None
    current_job: Optional[str] = None
    target_job: Optional[str] = None
    years_of_experience: Optional[str] = None
    country: Optional[str] = None
    user_location: Optional[str] = None
    age: Optional[str] = None

    def profile_fields(self) -> Dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in (
                "phone",
                "linkedin_url",
                "current_job",
                "target_job",
                "years_of_experience",
                "country",
                "user_location",
                "age",
            )
            if getattr(self, name) is not None
        }


class ClientResponse(BaseModel):
    id: str
    lead_id: str
    email: str
    full_name: str
    role: str
    onboarding_completed: bool
    profile_unlocked: bool

    @classmethod
    def from_identity(cls, client: ClientIdentity) -> "ClientResponse":
        return cls(
            id=client.id,
            lead_id=client.lead_id,
            email=client.email,
            full_name=client.full_name,
            role=client.role,
            onboarding_completed=client.onboarding_completed,
            profile_unlocked=client.profile_unlocked,
        )


class CompleteRegistrationResponse(BaseModel):
    client: ClientResponse
    message: str


# ============================================================================
# Profile / Onboarding Models
# ============================================================================

class CompletionResponse(BaseModel):
    percentage: int
    is_complete: bool
    required_completed: int
    required_total: int
    optional_completed: int
    optional_total: int
    missing_fields: List[str]
    features_unlocked: Dict[str, bool]

    @classmethod
    def from_report(cls, report: CompletionReport) -> "CompletionResponse":
        return cls(**report.to_dict())


class DiscoveryStatusResponse(BaseModel):
    discovery_state: str
    onboarding_completed: bool
    profile_unlocked: bool
    can_access_tracker: bool
    show_discovery_mode: bool
    next_steps: str

    @classmethod
    def from_status(cls, status: DiscoveryStatus) -> "DiscoveryStatusResponse":
        return cls(**status.to_dict())


class ProfileResponse(BaseModel):
    """Profile data always travels with its completion and gate status."""
    client: ClientResponse
    profile: Dict[str, Any]
    completion: CompletionResponse
    discovery: DiscoveryStatusResponse


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = None
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
    employment_status: Optional[str] = None
    target_market: Optional[str] = None

    class Config:
        extra = "forbid"


class OnboardingRequest(BaseModel):
    """20-question concierge onboarding questionnaire."""
    target_job_titles: Optional[List[str]] = None
    target_industries: Optional[List[str]] = None
    target_locations: Optional[List[str]] = None
    target_salary_range: Optional[str] = None
    years_of_experience: Optional[float] = None
    key_technical_skills: Optional[List[str]] = None
    job_search_timeline: Optional[str] = None
    career_goals_short_term: Optional[str] = None
    biggest_career_challenges: Optional[List[str]] = None
    support_areas_needed: Optional[List[str]] = None
    salary_negotiation_comfort: Optional[int] = None
    networking_comfort: Optional[int] = None
    interview_confidence: Optional[int] = None
    target_company_sizes: Optional[List[str]] = None
    remote_work_preference: Optional[str] = None
    willing_to_relocate: Optional[bool] = None
    current_salary: Optional[str] = None
    education_level: Optional[str] = None
    certifications: Optional[List[str]] = None
    soft_skills: Optional[List[str]] = None
    career_goals_long_term: Optional[str] = None
    preferred_communication: Optional[str] = None
    additional_notes: Optional[str] = None


class OnboardingResponse(BaseModel):
    client_id: str
    execution_status: str
    submitted_at: datetime
    approved_at: Optional[datetime] = None
    answers: Dict[str, Any]
    discovery: Optional[DiscoveryStatusResponse] = None
    message: Optional[str] = None

    @classmethod
    def from_record(
        cls,
        record: OnboardingRecord,
        discovery: Optional[DiscoveryStatus] = None,
        message: Optional[str] = None,
    ) -> "OnboardingResponse":
        return cls(
            client_id=record.client_id,
            execution_status=record.execution_status.value,
            submitted_at=record.submitted_at,
            approved_at=record.approved_at,
            answers=dict(record.answers),
            discovery=DiscoveryStatusResponse.from_status(discovery) if discovery else None,
            message=message,
        )


class UnlockProfileRequest(BaseModel):
    admin_notes: Optional[str] = None


class UnlockProfileResponse(BaseModel):
    """Admin unlock result: the updated account, its gate status and a message."""
    client: ClientResponse
    discovery: DiscoveryStatusResponse
    message: str


class PendingReviewResponse(BaseModel):
    client: ClientResponse
    submitted_at: Optional[datetime] = None
    answers: Dict[str, Any] = Field(default_factory=dict)


class PendingReviewListResponse(BaseModel):
    items: List[PendingReviewResponse]
    total_count: int


# ============================================================================
# Application Tracker Models
# ============================================================================

class ApplicationCreateRequest(BaseModel):
    company_name: str = Field(..., min_length=1)
    job_title: str = Field(..., min_length=1)
    job_url: Optional[str] = None
    notes: Optional[str] = None
    status: str = "applied"
    applied_at: Optional[datetime] = None


class ApplicationResponse(BaseModel):
    id: str
    company_name: str
    job_title: str
    status: str
    job_url: Optional[str] = None
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_application(cls, application: JobApplication) -> "ApplicationResponse":
        return cls(
            id=application.id,
            company_name=application.company_name,
            job_title=application.job_title,
            status=application.status.value,
            job_url=application.job_url,
            notes=application.notes,
            applied_at=application.applied_at,
            created_at=application.created_at,
        )


class ApplicationListResponse(BaseModel):
    items: List[ApplicationResponse]
    total_count: int


class ApplicationUpdateRequest(BaseModel):
    status: Optional[str] = None
    notes: Optional[str] = None
    job_url: Optional[str] = None

    class Config:
        extra = "forbid"
        json_schema_extra = {
            "example": {
                "status": "interviewing",
                "notes": "Panel interview on Friday",
            }
        }


class ApplicationStatsResponse(BaseModel):
    total_applications: int
    applications_this_week: int
    status_breakdown: Dict[str, int]
    response_rate: int
    offer_rate: int
