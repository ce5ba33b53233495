"""
Application Tracker API Endpoints.

Locked (403) until an admin unlocks the client's profile.
"""

from fastapi import APIRouter, Depends, Response

from api.dependencies import Principal, get_application_service, require_client
from api.models import (
    ApplicationCreateRequest,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatsResponse,
    ApplicationUpdateRequest,
)
from services.application_service import ApplicationTrackerService

router = APIRouter()


@router.get(
    "/client/applications",
    response_model=ApplicationListResponse,
    summary="List My Applications",
)
def list_applications(
    client: Principal = Depends(require_client),
    service: ApplicationTrackerService = Depends(get_application_service),
):
    applications = service.list_applications(client.id)
    return ApplicationListResponse(
        items=[ApplicationResponse.from_application(a) for a in applications],
        total_count=len(applications),
    )


@router.post(
    "/client/applications",
    response_model=ApplicationResponse,
    status_code=201,
    summary="Add Application",
)
def add_application(
    request: ApplicationCreateRequest,
    client: Principal = Depends(require_client),
    service: ApplicationTrackerService = Depends(get_application_service),
):
    application = service.add_application(
        client.id,
        company_name=request.company_name,
        job_title=request.job_title,
        job_url=request.job_url,
        notes=request.notes,
        status=request.status,
        applied_at=request.applied_at,
    )
    return ApplicationResponse.from_application(application)


@router.get(
    "/client/applications/stats",
    response_model=ApplicationStatsResponse,
    summary="Application Stats",
    description="Totals, this week's count (weeks start Monday UTC), status breakdown and response/offer rates."
)
def application_stats(
    client: Principal = Depends(require_client),
    service: ApplicationTrackerService = Depends(get_application_service),
):
    return ApplicationStatsResponse(**service.application_stats(client.id).to_dict())


@router.patch(
    "/client/applications/{application_id}",
    response_model=ApplicationResponse,
    summary="Update Application",
)
def update_application(
    application_id: str,
    request: ApplicationUpdateRequest,
    client: Principal = Depends(require_client),
    service: ApplicationTrackerService = Depends(get_application_service),
):
    """
    Update status, notes or job URL of one of your applications.

    Only fields present in the body are changed; send `null` to clear notes or the URL.
    """
    application = service.update_application(
        client.id, application_id, request.model_dump(exclude_unset=True)
    )
    return ApplicationResponse.from_application(application)


@router.delete(
    "/client/applications/{application_id}",
    status_code=204,
    summary="Delete Application",
)
def delete_application(
    application_id: str,
    client: Principal = Depends(require_client),
    service: ApplicationTrackerService = Depends(get_application_service),
):
    service.delete_application(client.id, application_id)
    return Response(status_code=204)
