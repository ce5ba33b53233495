"""
Client Profile API Endpoints.

Every response carries the recomputed completion report and the Discovery
status next to the profile data.
"""

from fastapi import APIRouter, Depends, File, UploadFile

from api.dependencies import (
    Principal,
    get_onboarding_service,
    get_profile_service,
    require_client,
)
from api.models import (
    ClientResponse,
    CompletionResponse,
    DiscoveryStatusResponse,
    ProfileResponse,
    ProfileUpdateRequest,
)
from services.onboarding_service import OnboardingService
from services.profile_service import ProfileService, ProfileSnapshot, read_upload

router = APIRouter()


def _profile_response(snapshot: ProfileSnapshot, onboarding: OnboardingService) -> ProfileResponse:
    return ProfileResponse(
        client=ClientResponse.from_identity(snapshot.client),
        profile=snapshot.view.to_dict(),
        completion=CompletionResponse.from_report(snapshot.completion),
        discovery=DiscoveryStatusResponse.from_status(onboarding.get_status(snapshot.client.id)),
    )


@router.get(
    "/client/profile",
    response_model=ProfileResponse,
    summary="Get My Profile",
)
def get_profile(
    client: Principal = Depends(require_client),
    service: ProfileService = Depends(get_profile_service),
    onboarding: OnboardingService = Depends(get_onboarding_service),
):
    return _profile_response(service.get_profile(client.id), onboarding)


@router.patch(
    "/client/profile",
    response_model=ProfileResponse,
    summary="Update My Profile",
    description="Partial update of editable profile fields. Email cannot be changed."
)
def update_profile(
    request: ProfileUpdateRequest,
    client: Principal = Depends(require_client),
    service: ProfileService = Depends(get_profile_service),
    onboarding: OnboardingService = Depends(get_onboarding_service),
):
    snapshot = service.update_profile(client.id, request.model_dump(exclude_unset=True))
    return _profile_response(snapshot, onboarding)


@router.get(
    "/client/profile/completion",
    response_model=CompletionResponse,
    summary="Get Profile Completion",
)
def get_completion(
    client: Principal = Depends(require_client),
    service: ProfileService = Depends(get_profile_service),
):
    return CompletionResponse.from_report(service.get_completion(client.id))


@router.post(
    "/client/profile/resume",
    response_model=ProfileResponse,
    summary="Upload Resume",
    description="Uploads a PDF or Word resume (max 10 MB) and stores its URL on the profile."
)
def upload_resume(
    file: UploadFile = File(...),
    client: Principal = Depends(require_client),
    service: ProfileService = Depends(get_profile_service),
    onboarding: OnboardingService = Depends(get_onboarding_service),
):
    content = read_upload(file.file)
    snapshot = service.attach_resume(client.id, content, file.filename or "")
    return _profile_response(snapshot, onboarding)


@router.post(
    "/client/profile/picture",
    response_model=ProfileResponse,
    summary="Upload Profile Picture",
)
def upload_picture(
    file: UploadFile = File(...),
    client: Principal = Depends(require_client),
    service: ProfileService = Depends(get_profile_service),
    onboarding: OnboardingService = Depends(get_onboarding_service),
):
    content = read_upload(file.file)
    snapshot = service.attach_profile_picture(client.id, content, file.filename or "")
    return _profile_response(snapshot, onboarding)
