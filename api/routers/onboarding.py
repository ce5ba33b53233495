"""
Onboarding API Endpoints.

Client questionnaire submission and Discovery status, plus the admin review
and profile unlock.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import (
    Principal,
    get_onboarding_service,
    require_admin,
    require_client,
)
from api.models import (
    ClientResponse,
    DiscoveryStatusResponse,
    OnboardingRequest,
    OnboardingResponse,
    PendingReviewListResponse,
    PendingReviewResponse,
    UnlockProfileRequest,
    UnlockProfileResponse,
)
from services.onboarding_service import OnboardingService

router = APIRouter()


@router.get(
    "/client/onboarding/status",
    response_model=DiscoveryStatusResponse,
    summary="Get Discovery Status",
)
def get_my_status(
    client: Principal = Depends(require_client),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return DiscoveryStatusResponse.from_status(service.get_status(client.id))


@router.post(
    "/client/onboarding",
    response_model=OnboardingResponse,
    status_code=201,
    summary="Submit Onboarding Questionnaire",
    description="Stores the 20-question questionnaire and moves the client into Discovery Mode."
)
def submit_onboarding(
    request: OnboardingRequest,
    client: Principal = Depends(require_client),
    service: OnboardingService = Depends(get_onboarding_service),
):
    """
    Submit the concierge onboarding questionnaire.

    **Required answers:** target job titles, industries, locations, salary
    range, years of experience, key technical skills, job search timeline,
    short-term goals, biggest challenges, support areas.

    Comfort and confidence scores must be between 1 and 10.
    """
    result = service.submit_questionnaire(client.id, request.model_dump(exclude_none=True))
    return OnboardingResponse.from_record(
        result.record,
        discovery=result.status,
        message="Onboarding submitted. Your profile is pending review.",
    )


@router.get(
    "/admin/onboarding/pending",
    response_model=PendingReviewListResponse,
    summary="List Onboardings Pending Review",
    description="Clients who submitted the questionnaire and are waiting for an unlock, oldest first."
)
def list_pending_reviews(
    admin: Principal = Depends(require_admin),
    service: OnboardingService = Depends(get_onboarding_service),
):
    items = [
        PendingReviewResponse(
            client=ClientResponse.from_identity(item.client),
            submitted_at=item.questionnaire.submitted_at if item.questionnaire else None,
            answers=dict(item.questionnaire.answers) if item.questionnaire else {},
        )
        for item in service.list_pending_reviews()
    ]
    return PendingReviewListResponse(items=items, total_count=len(items))


@router.get(
    "/admin/clients/{client_id}/onboarding",
    response_model=OnboardingResponse,
    summary="Get Client Onboarding Answers",
)
def get_client_onboarding(
    client_id: str,
    admin: Principal = Depends(require_admin),
    service: OnboardingService = Depends(get_onboarding_service),
):
    record = service.get_questionnaire(client_id)
    return OnboardingResponse.from_record(record, discovery=service.get_status(client_id))


@router.get(
    "/admin/clients/{client_id}/discovery-status",
    response_model=DiscoveryStatusResponse,
    summary="Get Client Discovery Status",
)
def get_client_status(
    client_id: str,
    admin: Principal = Depends(require_admin),
    service: OnboardingService = Depends(get_onboarding_service),
):
    return DiscoveryStatusResponse.from_status(service.get_status(client_id))


@router.post(
    "/admin/clients/{client_id}/unlock",
    response_model=UnlockProfileResponse,
    summary="Unlock Client Profile",
    description="Approves the onboarding questionnaire and unlocks the Application Tracker."
)
def unlock_profile(
    client_id: str,
    request: Optional[UnlockProfileRequest] = None,
    admin: Principal = Depends(require_admin),
    service: OnboardingService = Depends(get_onboarding_service),
):
    notes = request.admin_notes if request else None
    approval = service.approve_onboarding(client_id, admin.id, notes)
    return UnlockProfileResponse(
        client=ClientResponse.from_identity(approval.client),
        discovery=DiscoveryStatusResponse.from_status(approval.status),
        message="Profile unlocked. The Application Tracker is now active.",
    )
