"""
Consultations API Endpoints.

Scheduling edges of a lead's consultation: confirm a time, request new times,
record the outcome and the payment. The reschedule endpoint is public; the
client reaches it from the link in the "new times requested" email.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import Principal, get_pipeline_service, require_admin
from api.models import (
    ConfirmTimeRequest,
    ConsultationOutcomeRequest,
    LeadMutationResponse,
    LeadResponse,
    RecordPaymentRequest,
    RequestNewTimesRequest,
    ResubmitTimesRequest,
)
from services.pipeline_service import PipelineService

router = APIRouter()


@router.post(
    "/admin/consultations/{lead_id}/confirm",
    response_model=LeadMutationResponse,
    summary="Confirm Consultation Time",
    description="pending -> confirmed, picking one of the lead's preferred slots (1-3)."
)
def confirm_time(
    lead_id: str,
    request: ConfirmTimeRequest,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    """
    Confirm one of the client's preferred consultation times.

    **Validation:**
    - `selected_time_slot` must be 1, 2 or 3 and point at a non-empty slot
    - The consultation must be `pending` and the lead still in scheduling
      (lead, under_review or approved)
    """
    lead = service.confirm_time_slot(
        lead_id,
        request.selected_time_slot,
        admin.id,
        meeting_link=request.meeting_link,
        meeting_type=request.meeting_type,
        admin_notes=request.admin_notes,
    )
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message=f"Consultation confirmed for {lead.confirmed_time}",
    )


@router.post(
    "/admin/consultations/{lead_id}/request-new-times",
    response_model=LeadMutationResponse,
    summary="Request New Times",
    description="pending|confirmed -> awaiting_new_times. Clears the confirmed slot."
)
def request_new_times(
    lead_id: str,
    request: Optional[RequestNewTimesRequest] = None,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    lead = service.request_new_times(lead_id, admin.id, request.reason if request else None)
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="New consultation times requested from client",
    )


@router.post(
    "/consultations/{lead_id}/reschedule",
    response_model=LeadMutationResponse,
    summary="Submit New Times",
    description="Client resubmits up to three preferred times: awaiting_new_times -> pending."
)
def resubmit_times(
    lead_id: str,
    request: ResubmitTimesRequest,
    service: PipelineService = Depends(get_pipeline_service),
):
    lead = service.resubmit_time_slots(lead_id, request.preferred_slots)
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="New consultation times received",
    )


@router.post(
    "/admin/consultations/{lead_id}/outcome",
    response_model=LeadMutationResponse,
    summary="Record Consultation Outcome",
    description="confirmed -> completed with outcome proceeding or not_proceeding."
)
def record_outcome(
    lead_id: str,
    request: ConsultationOutcomeRequest,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    lead = service.mark_consultation_outcome(
        lead_id,
        request.outcome,
        admin.id,
        notes=request.admin_notes,
        selected_tier=request.selected_tier,
        next_steps=request.next_steps,
    )
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message=f"Consultation marked as {request.outcome}",
    )


@router.post(
    "/admin/consultations/{lead_id}/payment",
    response_model=LeadMutationResponse,
    summary="Record Payment",
    description="completed (proceeding) -> payment_received. Issues a 7 day registration token."
)
def record_payment(
    lead_id: str,
    request: RecordPaymentRequest,
    admin: Principal = Depends(require_admin),
    service: PipelineService = Depends(get_pipeline_service),
):
    """
    Record a confirmed payment and send the registration link.

    **Example request:**
    ```json
    {
      "payment_amount": "499.00",
      "payment_method": "interac_etransfer",
      "payment_reference": "ET-2025-0042",
      "package_tier": "Tier 2"
    }
    ```
    """
    lead = service.record_payment(
        lead_id,
        request.payment_amount,
        admin.id,
        method=request.payment_method,
        reference=request.payment_reference,
        package_tier=request.package_tier,
    )
    return LeadMutationResponse(
        lead=LeadResponse.from_record(lead),
        message="Payment recorded. Registration link sent.",
    )
