"""
Client repository for registered client accounts (`registered_users`).

The table carries unique constraints on `email` and `lead_id`; a violation is
surfaced as DuplicateRecordError so registration can report AlreadyRegistered.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional

from postgrest.exceptions import APIError  # type: ignore[import-not-found]
from supabase import Client  # type: ignore[import-not-found]

from domain.client import CLIENT_ROLE, ClientIdentity
from domain.time import parse_utc_datetime
from repositories.client import raise_for_error
from repositories.contracts import DuplicateRecordError, split_expected
from repositories.lead_repository import serialize_changes, serialize_value

CLIENTS_TABLE: str = "registered_users"

_UNIQUE_VIOLATION = "23505"

_TEXT_FIELDS = (
    "phone",
    "linkedin_url",
    "current_job",
    "target_job",
    "years_of_experience",
    "country",
    "user_location",
    "role_targets",
    "location_preferences",
    "minimum_salary",
    "age",
    "profile_pic_url",
    "employment_status",
    "target_market",
    "pdf_url",
    "profile_unlocked_by",
)


def row_to_client(row: Mapping[str, Any]) -> ClientIdentity:
    """Convert a Supabase row into a domain ClientIdentity."""

    text = {
        name: (str(row[name]) if row.get(name) not in (None, "") else None)
        for name in _TEXT_FIELDS
    }
    return ClientIdentity(
        id=str(row["id"]),
        lead_id=str(row["lead_id"]),
        email=str(row["email"]),
        full_name=str(row.get("full_name") or ""),
        passcode_hash=str(row.get("passcode_hash") or ""),
        role=str(row.get("role") or CLIENT_ROLE),
        onboarding_completed=bool(row.get("onboarding_completed", False)),
        onboarding_completed_at=parse_utc_datetime(row.get("onboarding_completed_at")),
        profile_unlocked=bool(row.get("profile_unlocked", False)),
        profile_unlocked_at=parse_utc_datetime(row.get("profile_unlocked_at")),
        created_at=parse_utc_datetime(row.get("created_at")),
        updated_at=parse_utc_datetime(row.get("updated_at")),
        **text,
    )


class SupabaseClientRepository:
    """ClientStore backed by the `registered_users` table."""

    def __init__(self, client: Client) -> None:
        self._client = client

    def _table(self):
        return self._client.table(CLIENTS_TABLE)

    def create(self, values: Mapping[str, Any]) -> ClientIdentity:
        """
        Insert a client account.

        Raises:
        - DuplicateRecordError if the email or lead_id is already registered.
        - RuntimeError if Supabase returns any other error.
        """

        try:
            response = self._table().insert(serialize_changes(values)).execute()
        except APIError as e:
            if getattr(e, "code", None) == _UNIQUE_VIOLATION:
                raise DuplicateRecordError(CLIENTS_TABLE, str(getattr(e, "message", e))) from e
            raise RuntimeError(f"Failed to insert client: {e}") from e

        rows = raise_for_error(response, "insert client")
        if not rows:
            raise RuntimeError("Failed to insert client: no row returned")
        return row_to_client(rows[0])

    def _get_by(self, column: str, value: str) -> Optional[ClientIdentity]:
        response = self._table().select("*").eq(column, value).limit(1).execute()
        rows = raise_for_error(response, "fetch client")
        if not rows:
            return None
        return row_to_client(rows[0])

    def get(self, client_id: str) -> Optional[ClientIdentity]:
        return self._get_by("id", client_id)

    def get_by_email(self, email: str) -> Optional[ClientIdentity]:
        return self._get_by("email", email)

    def update(self, client_id: str, changes: Mapping[str, Any]) -> Optional[ClientIdentity]:
        return self.update_where(client_id, {}, changes)

    def update_where(
        self,
        client_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[ClientIdentity]:
        equal, member = split_expected(expected)
        query = self._table().update(serialize_changes(changes)).eq("id", client_id)
        for column, value in equal.items():
            if value is None:
                query = query.is_(column, "null")
            else:
                query = query.eq(column, serialize_value(value))
        for column, values in member.items():
            query = query.in_(column, [serialize_value(v) for v in values])

        rows = raise_for_error(query.execute(), "update client")
        if not rows:
            return None
        return row_to_client(rows[0])

    def list_pending_onboarding(self) -> List[ClientIdentity]:
        """Clients whose questionnaire is submitted and awaiting an admin unlock, oldest first."""

        response = (
            self._table()
            .select("*")
            .eq("onboarding_completed", True)
            .eq("profile_unlocked", False)
            .order("onboarding_completed_at", desc=False)
            .execute()
        )
        rows = raise_for_error(response, "list pending onboarding")
        return [row_to_client(row) for row in rows]


__all__ = ["CLIENTS_TABLE", "row_to_client", "SupabaseClientRepository"]
