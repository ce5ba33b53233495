"""
Application tracker repository (`client_applications`).
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.application import ApplicationStatus, JobApplication
from domain.time import parse_utc_datetime
from repositories.client import raise_for_error
from repositories.lead_repository import serialize_changes

APPLICATIONS_TABLE: str = "client_applications"


def row_to_application(row: Mapping[str, Any]) -> JobApplication:
    return JobApplication(
        id=str(row["id"]),
        client_id=str(row["client_id"]),
        company_name=str(row["company_name"]),
        job_title=str(row["job_title"]),
        status=ApplicationStatus(str(row.get("status") or ApplicationStatus.APPLIED.value)),
        created_at=parse_utc_datetime(row["created_at"]),
        job_url=row.get("job_url"),
        notes=row.get("notes"),
        applied_at=parse_utc_datetime(row.get("applied_at")),
    )


class SupabaseApplicationRepository:
    def __init__(self, client: Client) -> None:
        self._client = client

    def list_for_client(self, client_id: str) -> List[JobApplication]:
        response = (
            self._client.table(APPLICATIONS_TABLE)
            .select("*")
            .eq("client_id", client_id)
            .order("created_at", desc=True)
            .execute()
        )
        rows = raise_for_error(response, "list applications")
        return [row_to_application(row) for row in rows]

    def create(self, values: Mapping[str, Any]) -> JobApplication:
        response = self._client.table(APPLICATIONS_TABLE).insert(serialize_changes(values)).execute()
        rows = raise_for_error(response, "insert application")
        if not rows:
            raise RuntimeError("Failed to insert application: no row returned")
        return row_to_application(rows[0])

    def update(
        self, client_id: str, application_id: str, changes: Mapping[str, Any]
    ) -> Optional[JobApplication]:
        """Update one of the client's applications; None if it is not theirs or does not exist."""

        response = (
            self._client.table(APPLICATIONS_TABLE)
            .update(serialize_changes(changes))
            .eq("id", application_id)
            .eq("client_id", client_id)
            .execute()
        )
        rows = raise_for_error(response, "update application")
        if not rows:
            return None
        return row_to_application(rows[0])

    def delete(self, client_id: str, application_id: str) -> bool:
        response = (
            self._client.table(APPLICATIONS_TABLE)
            .delete()
            .eq("id", application_id)
            .eq("client_id", client_id)
            .execute()
        )
        rows = raise_for_error(response, "delete application")
        return bool(rows)


__all__ = ["APPLICATIONS_TABLE", "row_to_application", "SupabaseApplicationRepository"]
