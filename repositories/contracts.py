"""
Storage contracts consumed by the services.

Services depend on these protocols, never on supabase-py directly, so the
Supabase repositories and the in-memory test doubles are interchangeable.

Conditional update semantics (`update_where`):
- `expected` maps column -> value. A scalar means equality, a list/tuple/set
  means "column IN values".
- The row is updated only if `id` matches and every expected column matches,
  in a single statement. The updated record is returned, or None when no row
  matched (missing id or a lost compare-and-set).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Protocol, Tuple

from domain.application import JobApplication
from domain.client import ClientIdentity
from domain.lead import LeadRecord
from domain.onboarding import OnboardingRecord


class DuplicateRecordError(RuntimeError):
    """A unique constraint rejected an insert."""

    def __init__(self, table: str, detail: str) -> None:
        super().__init__(f"Duplicate record in {table}: {detail}")
        self.table = table
        self.detail = detail


@dataclass(frozen=True, slots=True)
class LeadPage:
    items: List[LeadRecord]
    total: int
    page: int
    limit: int


class LeadStore(Protocol):
    def create(self, values: Mapping[str, Any]) -> LeadRecord: ...

    def get(self, lead_id: str) -> Optional[LeadRecord]: ...

    def find_active_by_email(self, email: str) -> Optional[LeadRecord]: ...

    def list(
        self,
        *,
        pipeline_status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> LeadPage: ...

    def update_where(
        self,
        lead_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[LeadRecord]: ...


class ClientStore(Protocol):
    def create(self, values: Mapping[str, Any]) -> ClientIdentity: ...

    def get(self, client_id: str) -> Optional[ClientIdentity]: ...

    def get_by_email(self, email: str) -> Optional[ClientIdentity]: ...

    def update(self, client_id: str, changes: Mapping[str, Any]) -> Optional[ClientIdentity]: ...

    def update_where(
        self,
        client_id: str,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
    ) -> Optional[ClientIdentity]: ...

    def list_pending_onboarding(self) -> List[ClientIdentity]: ...


class OnboardingStore(Protocol):
    def get_by_client(self, client_id: str) -> Optional[OnboardingRecord]: ...

    def save(self, client_id: str, values: Mapping[str, Any]) -> OnboardingRecord: ...

    def update(self, client_id: str, changes: Mapping[str, Any]) -> Optional[OnboardingRecord]: ...


class ApplicationStore(Protocol):
    def list_for_client(self, client_id: str) -> List[JobApplication]: ...

    def create(self, values: Mapping[str, Any]) -> JobApplication: ...

    def update(
        self, client_id: str, application_id: str, changes: Mapping[str, Any]
    ) -> Optional[JobApplication]: ...

    def delete(self, client_id: str, application_id: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class StoredFile:
    url: str
    path: str


class FileStorage(Protocol):
    def upload(
        self, content: bytes, *, bucket: str, path: str, content_type: str
    ) -> StoredFile: ...


def split_expected(expected: Mapping[str, Any]) -> Tuple[dict, dict]:
    """Separate equality filters from IN filters."""

    equal: dict = {}
    member: dict = {}
    for column, value in expected.items():
        if isinstance(value, (list, tuple, set, frozenset)):
            member[column] = list(value)
        else:
            equal[column] = value
    return equal, member


__all__ = [
    "DuplicateRecordError",
    "LeadPage",
    "LeadStore",
    "ClientStore",
    "OnboardingStore",
    "ApplicationStore",
    "StoredFile",
    "FileStorage",
    "split_expected",
]
