"""
Leads API Endpoints.

Public consultation intake and the admin pipeline: review, approve, reject.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import Principal, get_pipeline_service, require_admin
from api.models import (
    LeadListResponse,
    LeadMutationResponse,
    LeadResponse,
    LeadSubmissionRequest,
    RejectLeadRequest,
)
from domain.lead import LeadSubmission
from services.pipeline_service import PipelineService

router = APIRouter()


@router.post(
    "/leads",
    response_model=LeadMutationResponse,
    status_code=201,
    summary="Submit Consultation Request",
    description="Public booking form. Creates a lead with up to three preferred consultation times."
)
def submit_lead(
    request: LeadSubmissionRequest,
    service: PipelineService = Depends(get_pipeline_service),
):
    """
    Submit a consultation request from the public booking form.

    **Rules:**
    - `full_name` and a valid `email` are required
    - At most 3 `preferred_slots`
    - Only one active request per email; a second one returns 400
    """
    submission = LeadSubmission.create(**request.model_dump())
    lead = service.submit_lead(submission)
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="Consultation request received",
    )


@router.get(
    "/admin/leads",
    response_model=LeadListResponse,
    summary="List Leads",
    description="Paged lead list for the admin dashboard, newest first."
)
def list_leads(
    pipeline_status: Optional[str] = Query(None, description="Filter by pipeline status"),
    search: Optional[str] = Query(None, description="Case-insensitive match on name or email"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    result = service.list_leads(
        pipeline_status=pipeline_status, search=search, page=page, limit=limit
    )
    return LeadListResponse(
        items=[LeadResponse.from_record(lead) for lead in result.items],
        total_count=result.total,
        page=result.page,
        limit=result.limit,
    )


@router.get(
    "/admin/leads/{lead_id}",
    response_model=LeadResponse,
    summary="Get Lead",
)
def get_lead(
    lead_id: str,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    return LeadResponse.from_record(service.get_lead(lead_id))


@router.post(
    "/admin/leads/{lead_id}/review",
    response_model=LeadMutationResponse,
    summary="Mark Lead Under Review",
    description="lead -> under_review. Any other current status returns 400."
)
def mark_under_review(
    lead_id: str,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    lead = service.mark_under_review(lead_id, admin.id)
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="Lead marked as under review",
    )


@router.post(
    "/admin/leads/{lead_id}/approve",
    response_model=LeadMutationResponse,
    summary="Approve Lead",
    description="under_review -> approved. Issues a 72 hour registration token and emails the link."
)
def approve_lead(
    lead_id: str,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    """
    Approve a lead that is under review.

    The registration token itself is never returned; it only travels in the
    approval email. The response carries `token_expires_at`.
    """
    lead = service.approve(lead_id, admin.id)
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="Lead approved. Registration link sent.",
    )


@router.post(
    "/admin/leads/{lead_id}/reject",
    response_model=LeadMutationResponse,
    summary="Reject Lead",
    description="Any non-client status -> rejected. Clears any outstanding registration token."
)
def reject_lead(
    lead_id: str,
    request: Optional[RejectLeadRequest] = None,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    reason = request.reason if request else None
    lead = service.reject(lead_id, admin.id, reason)
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="Lead rejected",
    )
