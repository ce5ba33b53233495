"""
Lead repository (persistence).

This module provides *only* persistence operations for LeadRecord rows in the
`consultation_requests` table. No business rules (transition guards, token
issuance) belong here; the services decide what to write and what the row
must look like beforehand.
"""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.lead import LeadRecord
from domain.pipeline import (
    SCHEDULING_STATUSES,
    ConsultationOutcome,
    ConsultationStatus,
    PipelineStatus,
    WorkflowStage,
)
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.client import raise_for_error
from repositories.contracts import LeadPage, split_expected

# Supabase table name for lead / consultation records.
# Keep this aligned with your database schema.
LEADS_TABLE: str = "consultation_requests"

_ACTIVE_STATUSES = sorted(s.value for s in SCHEDULING_STATUSES)

# PostgREST `or=` filters use these as syntax.
_SEARCH_UNSAFE = re.compile(r"[,()*%]")


def serialize_value(value: Any) -> Any:
    """Convert a domain value into its JSON column representation."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return to_iso_utc(value)
    if isinstance(value, Decimal):
        return str(value)
    return value


def serialize_changes(changes: Mapping[str, Any]) -> Dict[str, Any]:
    return {column: serialize_value(value) for column, value in changes.items()}


def _optional_enum(enum_cls, value: Any):
    if value is None or value == "":
        return None
    return enum_cls(str(value))


def row_to_lead(row: Mapping[str, Any]) -> LeadRecord:
    """Convert a Supabase row into a domain LeadRecord."""

    def get_optional(key: str) -> Optional[str]:
        value = row.get(key)
        return str(value) if value not in (None, "") else None

    amount = row.get("payment_amount")
    slot = row.get("selected_time_slot")

    return LeadRecord(
        id=str(row["id"]),
        full_name=str(row.get("full_name") or ""),
        email=str(row["email"]),
        pipeline_status=PipelineStatus(str(row.get("pipeline_status") or PipelineStatus.LEAD.value)),
        consultation_status=ConsultationStatus(
            str(row.get("consultation_status") or ConsultationStatus.PENDING.value)
        ),
        created_at=parse_utc_datetime(row["created_at"]),

        # Contact and targeting
        phone=get_optional("phone"),
        linkedin_url=get_optional("linkedin_url"),
        role_targets=get_optional("role_targets"),
        location_preferences=get_optional("location_preferences"),
        minimum_salary=get_optional("minimum_salary"),
        target_market=get_optional("target_market"),
        employment_status=get_optional("employment_status"),
        package_interest=get_optional("package_interest"),
        area_of_concern=get_optional("area_of_concern"),
        message=get_optional("message"),

        # Scheduling
        preferred_time_1=get_optional("preferred_time_1"),
        preferred_time_2=get_optional("preferred_time_2"),
        preferred_time_3=get_optional("preferred_time_3"),
        selected_time_slot=int(slot) if slot is not None else None,
        confirmed_time=get_optional("confirmed_time"),
        meeting_link=get_optional("meeting_link"),
        meeting_type=get_optional("meeting_type"),
        workflow_stage=_optional_enum(WorkflowStage, row.get("workflow_stage")),
        consultation_outcome=_optional_enum(ConsultationOutcome, row.get("consultation_outcome")),
        admin_notes=get_optional("admin_notes"),
        package_tier=get_optional("package_tier"),

        # Payment
        payment_amount=Decimal(str(amount)) if amount is not None else None,
        payment_method=get_optional("payment_method"),
        payment_reference=get_optional("payment_reference"),
        payment_received=bool(row.get("payment_received", False)),
        payment_received_at=parse_utc_datetime(row.get("payment_received_at")),
        payment_confirmed_by=get_optional("payment_confirmed_by"),

        # Bookkeeping
        reviewed_at=parse_utc_datetime(row.get("reviewed_at")),
        reviewed_by=get_optional("reviewed_by"),
        approved_at=parse_utc_datetime(row.get("approved_at")),
        approved_by=get_optional("approved_by"),
        confirmed_by=get_optional("confirmed_by"),
        rejected_at=parse_utc_datetime(row.get("rejected_at")),
        rejected_by=get_optional("rejected_by"),
        rejection_reason=get_optional("rejection_reason"),
        registered_at=parse_utc_datetime(row.get("registered_at")),
        user_id=get_optional("user_id"),
        updated_at=parse_utc_datetime(row.get("updated_at")),

        # Token
        registration_token=get_optional("registration_token"),
        token_expires_at=parse_utc_datetime(row.get("token_expires_at")),
        token_used=bool(row.get("token_used", False)),
    )


class SupabaseLeadRepository:
    """LeadStore backed by the `consultation_requests` table."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def _table(self):
        return self._client.table(LEADS_TABLE)

    def create(self, values: Mapping[str, Any]) -> LeadRecord:
        """
        Insert a new lead and return the stored row.

        Raises:
        - RuntimeError if Supabase returns an error response.
        """

        response = self._table().insert(serialize_changes(values)).execute()
        rows = raise_for_error(response, "insert lead")
        if not rows:
            raise RuntimeError("Failed to insert lead: no row returned")
        return row_to_lead(rows[0])

    def get(self, lead_id: str) -> Optional[LeadRecord]:
        response = self._table().select("*").eq("id", lead_id).limit(1).execute()
        rows = raise_for_error(response, "fetch lead")
        if not rows:
            return None
        return row_to_lead(rows[0])

    def find_active_by_email(self, email: str) -> Optional[LeadRecord]:
        """Return the lead for `email` that is still moving through the pipeline, if any."""

        response = (
            self._table()
            .select("*")
            .eq("email", email)
            .in_("pipeline_status", _ACTIVE_STATUSES)
            .limit(1)
            .execute()
        )
        rows = raise_for_error(response, "fetch lead by email")
        if not rows:
            return None
        return row_to_lead(rows[0])

    def list(
        self,
        *,
        pipeline_status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> LeadPage:
        """
        List leads newest first, with optional status filter and name/email search.
        """

        offset = (page - 1) * limit
        query = self._table().select("*", count="exact")
        if pipeline_status is not None:
            query = query.eq("pipeline_status", pipeline_status)
        if search:
            term = _SEARCH_UNSAFE.sub(" ", search).strip()
            if term:
                query = query.or_(f"full_name.ilike.*{term}*,email.ilike.*{term}*")

        response = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        rows = raise_for_error(response, "list leads")
        total = getattr(response, "count", None)
        return LeadPage(
            items=[row_to_lead(row) for row in rows],
            total=total if total is not None else len(rows),
            page=page,
            limit=limit,
        )

    def update_where(
        self,
        lead_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[LeadRecord]:
        """
        Conditional update: `UPDATE ... WHERE id = :id AND <expected>` in one request.

        Returns the updated LeadRecord, or None if no row matched.
        """

        equal, member = split_expected(expected)
        query = self._table().update(serialize_changes(changes)).eq("id", lead_id)
        for column, value in equal.items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, serialize_value(value))
        for column, values in member.items():
            query = query.in_(column, [serialize_value(v) for v in values])

        response = query.execute()
        rows = raise_for_error(response, "update lead")
        if not rows:
            return None
        return row_to_lead(rows[0])


__all__ = [
    "LEADS_TABLE",
    "serialize_value",
    "serialize_changes",
    "row_to_lead",
    "SupabaseLeadRepository",
]
