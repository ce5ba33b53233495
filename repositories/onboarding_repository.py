"""
Onboarding repository (`client_onboarding_20q`).

One row per client holding the questionnaire answers and the execution status
the admin review moves from pending_approval to active.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from supabase import Client  # type: ignore[import-not-found]

from domain.onboarding import ALL_ANSWERS, ExecutionStatus, OnboardingRecord
from domain.time import parse_utc_datetime
from repositories.client import raise_for_error
from repositories.lead_repository import serialize_changes

ONBOARDING_TABLE: str = "client_onboarding_20q"


def row_to_onboarding(row: Mapping[str, Any]) -> OnboardingRecord:
    answers: Dict[str, Any] = {name: row[name] for name in ALL_ANSWERS if name in row}
    return OnboardingRecord(
        id=str(row["id"]) if row.get("id") is not None else None,
        client_id=str(row["user_id"]),
        answers=answers,
        execution_status=ExecutionStatus(str(row.get("execution_status") or "pending_approval")),
        submitted_at=parse_utc_datetime(row.get("completed_at") or row.get("created_at")),
        approved_at=parse_utc_datetime(row.get("approved_at")),
        approved_by=row.get("approved_by"),
        admin_notes=row.get("admin_notes"),
    )


class SupabaseOnboardingRepository:
    def __init__(self, client: Client) -> None:
        self._client = client

    def _table(self):
        return self._client.table(ONBOARDING_TABLE)

    def get_by_client(self, client_id: str) -> Optional[OnboardingRecord]:
        response = self._table().select("*").eq("user_id", client_id).limit(1).execute()
        rows = raise_for_error(response, "fetch onboarding")
        if not rows:
            return None
        return row_to_onboarding(rows[0])

    def save(self, client_id: str, values: Mapping[str, Any]) -> OnboardingRecord:
        """Insert or replace the questionnaire row for `client_id`."""

        payload = serialize_changes(values)
        payload["user_id"] = client_id
        response = self._table().upsert(payload, on_conflict="user_id").execute()
        rows = raise_for_error(response, "save onboarding")
        if not rows:
            raise RuntimeError("Failed to save onboarding: no row returned")
        return row_to_onboarding(rows[0])

    def update(self, client_id: str, changes: Mapping[str, Any]) -> Optional[OnboardingRecord]:
        response = (
            self._table().update(serialize_changes(changes)).eq("user_id", client_id).execute()
        )
        rows = raise_for_error(response, "update onboarding")
        if not rows:
            return None
        return row_to_onboarding(rows[0])


__all__ = ["ONBOARDING_TABLE", "row_to_onboarding", "SupabaseOnboardingRepository"]
