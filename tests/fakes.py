"""
In-memory stand-ins for the storage and email collaborators.

Rows are kept in their serialized (column) form and mapped back through the
same `row_to_*` functions the Supabase repositories use. Every store guards
its rows with a lock so `update_where` is a real compare-and-set, which the
concurrency tests depend on.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple

from repositories.application_repository import row_to_application
from repositories.client_repository import CLIENTS_TABLE, row_to_client
from repositories.contracts import DuplicateRecordError, LeadPage, StoredFile
from repositories.lead_repository import (
    _ACTIVE_STATUSES,
    row_to_lead,
    serialize_changes,
    serialize_value,
)
from repositories.onboarding_repository import row_to_onboarding

TEST_SECRET = "test-registration-secret-0123456789abcdef"

ADMIN_ID = "admin-1"


def _new_id() -> str:
    return str(uuid.uuid4())


def _matches(row: Mapping[str, Any], expected: Mapping[str, Any]) -> bool:
    for column, value in expected.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            if row.get(column) not in [serialize_value(v) for v in value]:
                return False
        elif row.get(column) != serialize_value(value):
            return False
    return True


class FixedClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, now: Optional[datetime] = None) -> None:
        self.now = now or datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)


class InMemoryLeadStore:
    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.update_calls = 0

    def create(self, values):
        row = serialize_changes(values)
        row["id"] = _new_id()
        with self._lock:
            self.rows[row["id"]] = row
        return row_to_lead(row)

    def get(self, lead_id):
        with self._lock:
            row = self.rows.get(lead_id)
            return row_to_lead(row) if row is not None else None

    def find_active_by_email(self, email):
        with self._lock:
            for row in self.rows.values():
                if row["email"] == email and row.get("pipeline_status") in _ACTIVE_STATUSES:
                    return row_to_lead(row)
        return None

    def list(self, *, pipeline_status=None, search=None, page=1, limit=20):
        with self._lock:
            rows = list(self.rows.values())
        if pipeline_status is not None:
            rows = [r for r in rows if r.get("pipeline_status") == pipeline_status]
        if search:
            term = search.lower()
            rows = [
                r for r in rows
                if term in (r.get("full_name") or "").lower() or term in r["email"].lower()
            ]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        offset = (page - 1) * limit
        return LeadPage(
            items=[row_to_lead(r) for r in rows[offset:offset + limit]],
            total=len(rows),
            page=page,
            limit=limit,
        )

    def update_where(self, lead_id, expected, changes):
        with self._lock:
            self.update_calls += 1
            row = self.rows.get(lead_id)
            if row is None or not _matches(row, expected):
                return None
            row.update(serialize_changes(changes))
            return row_to_lead(row)


class FailingUpdateLeadStore(InMemoryLeadStore):
    """Lead store whose conditional updates raise, for invalidation failures."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_updates = False

    def update_where(self, lead_id, expected, changes):
        if self.fail_updates:
            raise RuntimeError("Failed to update lead: connection reset")
        return super().update_where(lead_id, expected, changes)


class InMemoryClientStore:
    """Enforces the unique constraints on `email` and `lead_id`."""

    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def create(self, values):
        row = serialize_changes(values)
        with self._lock:
            for existing in self.rows.values():
                if existing["email"] == row["email"]:
                    raise DuplicateRecordError(CLIENTS_TABLE, f"email={row['email']}")
                if existing["lead_id"] == row["lead_id"]:
                    raise DuplicateRecordError(CLIENTS_TABLE, f"lead_id={row['lead_id']}")
            row["id"] = _new_id()
            self.rows[row["id"]] = row
        return row_to_client(row)

    def get(self, client_id):
        with self._lock:
            row = self.rows.get(client_id)
            return row_to_client(row) if row is not None else None

    def get_by_email(self, email):
        with self._lock:
            for row in self.rows.values():
                if row["email"] == email:
                    return row_to_client(row)
        return None

    def update(self, client_id, changes):
        return self.update_where(client_id, {}, changes)

    def update_where(self, client_id, expected, changes):
        with self._lock:
            row = self.rows.get(client_id)
            if row is None or not _matches(row, expected):
                return None
            row.update(serialize_changes(changes))
            return row_to_client(row)

    def list_pending_onboarding(self):
        with self._lock:
            rows = [
                r for r in self.rows.values()
                if r.get("onboarding_completed") and not r.get("profile_unlocked")
            ]
            rows.sort(key=lambda r: r.get("onboarding_completed_at") or "")
            return [row_to_client(r) for r in rows]


class InMemoryOnboardingStore:
    def __init__(self) -> None:
        self.rows: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()
        self.fail_saves = False

    def get_by_client(self, client_id):
        with self._lock:
            row = self.rows.get(client_id)
            return row_to_onboarding(row) if row is not None else None

    def save(self, client_id, values):
        if self.fail_saves:
            raise RuntimeError("Failed to save onboarding: timeout")
        with self._lock:
            row = dict(self.rows.get(client_id) or {"id": _new_id()})
            row.update(serialize_changes(values))
            row["user_id"] = client_id
            self.rows[client_id] = row
            return row_to_onboarding(row)

    def update(self, client_id, changes):
        with self._lock:
            row = self.rows.get(client_id)
            if row is None:
                return None
            row.update(serialize_changes(changes))
            return row_to_onboarding(row)


class InMemoryApplicationStore:
    def __init__(self) -> None:
        self.rows: List[Dict[str, Any]] = []

    def list_for_client(self, client_id):
        rows = [r for r in self.rows if r["client_id"] == client_id]
        rows.sort(key=lambda r: r["created_at"], reverse=True)
        return [row_to_application(r) for r in rows]

    def create(self, values):
        row = serialize_changes(values)
        row["id"] = _new_id()
        self.rows.append(row)
        return row_to_application(row)

    def update(self, client_id, application_id, changes):
        for row in self.rows:
            if row["id"] == application_id and row["client_id"] == client_id:
                row.update(serialize_changes(changes))
                return row_to_application(row)
        return None

    def delete(self, client_id, application_id):
        for index, row in enumerate(self.rows):
            if row["id"] == application_id and row["client_id"] == client_id:
                del self.rows[index]
                return True
        return False


class RecordingFileStorage:
    def __init__(self) -> None:
        self.uploads: List[Tuple[str, str, str, int]] = []

    def upload(self, content, *, bucket, path, content_type):
        self.uploads.append((bucket, path, content_type, len(content)))
        return StoredFile(url=f"https://storage.test/{bucket}/{path}", path=path)


class RecordingEmailSender:
    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Tuple[str, str, Dict[str, Any]]] = []
        self.fail = fail

    def send(self, to, template, context):
        if self.fail:
            raise RuntimeError("email service unavailable")
        self.sent.append((to, template, dict(context)))

    def templates(self) -> List[str]:
        return [template for _, template, _ in self.sent]

    def last(self, template: str) -> Dict[str, Any]:
        for _, sent_template, context in reversed(self.sent):
            if sent_template == template:
                return context
        raise AssertionError(f"no email sent with template {template}")
