"""
Registration API Endpoints.

Redeem a registration token (from the approval or payment email) for a
client account.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_registration_service
from api.models import (
    ClientResponse,
    CompleteRegistrationRequest,
    CompleteRegistrationResponse,
    RegistrationVerifyResponse,
)
from services.registration_service import RegistrationService

router = APIRouter()


@router.get(
    "/register/verify",
    response_model=RegistrationVerifyResponse,
    summary="Verify Registration Token",
    description="Checks a registration token and returns the data the registration form pre-fills."
)
def verify_token(
    token: str = Query(..., min_length=1),
    service: RegistrationService = Depends(get_registration_service),
):
    """
    Verify a registration token without consuming it.

    Rejected tokens return 401 with `code` one of `Malformed`, `Expired`,
    `AlreadyUsed`, `NotFound` or `AlreadyRegistered`.
    """
    prefill = service.verify_registration(token)
    return RegistrationVerifyResponse(
        valid=True,
        lead_id=prefill.lead_id,
        email=prefill.email,
        full_name=prefill.full_name,
        expires_at=prefill.expires_at,
    )


@router.post(
    "/register/complete",
    response_model=CompleteRegistrationResponse,
    status_code=201,
    summary="Complete Registration",
    description="Creates the client account and consumes the token. A token can be redeemed once."
)
def complete_registration(
    request: CompleteRegistrationRequest,
    service: RegistrationService = Depends(get_registration_service),
):
    client = service.complete_registration(
        request.token,
        request.passcode,
        confirm_passcode=request.confirm_passcode,
        full_name=request.full_name,
        profile=request.profile_fields(),
    )
    return CompleteRegistrationResponse(
        client=ClientResponse.from_identity(client),
        message="Registration complete. Please log in to start onboarding.",
    )
