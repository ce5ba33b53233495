"""
Domain: job application tracked for an unlocked client, and the tracker summary.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, Optional

from .time import require_utc_timestamp


class ApplicationStatus(str, Enum):
    APPLIED = "applied"
    INTERVIEWING = "interviewing"
    OFFER = "offer"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


@dataclass(frozen=True, slots=True)
class JobApplication:
    id: str
    client_id: str
    company_name: str
    job_title: str
    status: ApplicationStatus
    created_at: datetime
    job_url: Optional[str] = None
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if self.applied_at is not None:
            require_utc_timestamp("applied_at", self.applied_at)


@dataclass(frozen=True, slots=True)
class ApplicationStats:
    total: int
    this_week: int
    status_breakdown: Dict[str, int]
    response_rate: int
    offer_rate: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "total_applications": self.total,
            "applications_this_week": self.this_week,
            "status_breakdown": dict(self.status_breakdown),
            "response_rate": self.response_rate,
            "offer_rate": self.offer_rate,
        }


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 UTC of the week containing `now`."""

    require_utc_timestamp("now", now)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight - timedelta(days=midnight.weekday())


def summarize_applications(applications: Iterable[JobApplication], now: datetime) -> ApplicationStats:
    """
    Tracker summary.

    - this_week counts applications whose applied_at (or created_at) falls in the current ISO week.
    - response_rate is the share of interviewing + offer, offer_rate the share of offer,
      both rounded whole percentages and 0 for an empty tracker.
    """

    week_start = start_of_week(now)
    breakdown = {status.value: 0 for status in ApplicationStatus}
    total = 0
    this_week = 0
    for application in applications:
        total += 1
        breakdown[application.status.value] += 1
        if (application.applied_at or application.created_at) >= week_start:
            this_week += 1

    responded = breakdown[ApplicationStatus.INTERVIEWING.value] + breakdown[ApplicationStatus.OFFER.value]
    return ApplicationStats(
        total=total,
        this_week=this_week,
        status_breakdown=breakdown,
        response_rate=round(100 * responded / total) if total else 0,
        offer_rate=round(100 * breakdown[ApplicationStatus.OFFER.value] / total) if total else 0,
    )


__all__ = [
    "ApplicationStatus",
    "JobApplication",
    "ApplicationStats",
    "start_of_week",
    "summarize_applications",
]
