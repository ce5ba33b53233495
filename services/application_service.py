"""
Application Tracker service.

Reachable only when the client's Discovery state is UNLOCKED; every other
state raises AccessDenied carrying the current state.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from domain.application import (
    ApplicationStats,
    ApplicationStatus,
    JobApplication,
    summarize_applications,
)
from domain.client import ClientIdentity
from domain.errors import AccessDenied, NotFoundError, ValidationFailure
from domain.onboarding import DiscoveryStatus
from domain.time import utc_now
from repositories.contracts import ApplicationStore, ClientStore

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("status", "notes", "job_url")


class ApplicationTrackerService:
    def __init__(
        self,
        *,
        clients: ClientStore,
        applications: ApplicationStore,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clients = clients
        self._applications = applications
        self._clock = clock

    def _require_unlocked(self, client_id: str) -> ClientIdentity:
        client = self._clients.get(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        status = DiscoveryStatus.of(client.onboarding_completed, client.profile_unlocked)
        if not status.can_access_tracker:
            raise AccessDenied(
                "Application Tracker is locked until your onboarding is approved",
                discovery_state=status.discovery_state.value,
                next_steps=status.next_steps,
            )
        return client

    def list_applications(self, client_id: str) -> List[JobApplication]:
        self._require_unlocked(client_id)
        return self._applications.list_for_client(client_id)

    def add_application(
        self,
        client_id: str,
        *,
        company_name: str,
        job_title: str,
        job_url: Optional[str] = None,
        notes: Optional[str] = None,
        status: str = ApplicationStatus.APPLIED.value,
        applied_at: Optional[datetime] = None,
    ) -> JobApplication:
        company = (company_name or "").strip()
        title = (job_title or "").strip()
        if not company:
            raise ValidationFailure("company_name is required", field="company_name")
        if not title:
            raise ValidationFailure("job_title is required", field="job_title")
        try:
            parsed_status = ApplicationStatus(status)
        except ValueError:
            raise ValidationFailure(f"Unknown application status: {status}", field="status") from None

        self._require_unlocked(client_id)
        now = self._clock()
        application = self._applications.create(
            {
                "client_id": client_id,
                "company_name": company,
                "job_title": title,
                "job_url": job_url,
                "notes": notes,
                "status": parsed_status,
                "applied_at": applied_at or now,
                "created_at": now,
            }
        )
        logger.info(
            "Application added",
            extra={"client_id": client_id, "application_id": application.id},
        )
        return application

    def update_application(
        self,
        client_id: str,
        application_id: str,
        changes: Mapping[str, Any],
    ) -> JobApplication:
        """
        Edit one of the client's applications.

        Accepts status, notes and job_url. Raises ValidationFailure for anything
        else and NotFoundError when the application is not the client's.
        """

        cleaned: Dict[str, Any] = {}
        for name, value in changes.items():
            if name not in UPDATABLE_FIELDS:
                raise ValidationFailure(f"Field cannot be updated: {name}", field=name)
            if name == "status":
                try:
                    cleaned[name] = ApplicationStatus(value)
                except ValueError:
                    raise ValidationFailure(
                        f"Unknown application status: {value}", field="status"
                    ) from None
            else:
                cleaned[name] = (str(value).strip() or None) if value is not None else None
        if not cleaned:
            raise ValidationFailure("No changes supplied")

        self._require_unlocked(client_id)
        updated = self._applications.update(client_id, application_id, cleaned)
        if updated is None:
            raise NotFoundError("Application", application_id)
        logger.info(
            "Application updated",
            extra={"client_id": client_id, "application_id": application_id, "fields": sorted(cleaned)},
        )
        return updated

    def delete_application(self, client_id: str, application_id: str) -> None:
        self._require_unlocked(client_id)
        if not self._applications.delete(client_id, application_id):
            raise NotFoundError("Application", application_id)
        logger.info(
            "Application deleted",
            extra={"client_id": client_id, "application_id": application_id},
        )

    def application_stats(self, client_id: str) -> ApplicationStats:
        self._require_unlocked(client_id)
        return summarize_applications(self._applications.list_for_client(client_id), self._clock())


__all__ = ["ApplicationTrackerService"]
