"""
Onboarding service: questionnaire submission, admin approval and the single
queryable Discovery status.

Gate flags live on the client account:
- onboarding_completed flips on the first accepted submission.
- profile_unlocked flips once, by an admin, and only after onboarding_completed.

Both flips are conditional updates, so a submission racing an approval (or two
approvals racing each other) cannot produce an unlocked-but-not-onboarded
account or a double unlock. Rows unlocked elsewhere without a submission read
as NOT_STARTED until the client submits the questionnaire.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from config.settings import Settings
from domain.client import ClientIdentity
from domain.errors import NotFoundError, TransitionConflict
from domain.onboarding import (
    DiscoveryState,
    DiscoveryStatus,
    ExecutionStatus,
    OnboardingRecord,
    validate_answers,
)
from domain.time import utc_now
from repositories.contracts import ClientStore, OnboardingStore
from services.notification_service import NotificationDispatcher, NotificationEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class OnboardingSubmission:
    record: OnboardingRecord
    status: DiscoveryStatus


@dataclass(frozen=True, slots=True)
class OnboardingApproval:
    client: ClientIdentity
    status: DiscoveryStatus


@dataclass(frozen=True, slots=True)
class PendingReview:
    client: ClientIdentity
    questionnaire: Optional[OnboardingRecord]


class OnboardingService:
    def __init__(
        self,
        *,
        clients: ClientStore,
        onboarding: OnboardingStore,
        notifier: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clients = clients
        self._onboarding = onboarding
        self._notifier = notifier
        self._settings = settings
        self._clock = clock

    def _require_client(self, client_id: str) -> ClientIdentity:
        client = self._clients.get(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    def get_status(self, client_id: str) -> DiscoveryStatus:
        client = self._require_client(client_id)
        return DiscoveryStatus.of(client.onboarding_completed, client.profile_unlocked)

    def get_questionnaire(self, client_id: str) -> OnboardingRecord:
        self._require_client(client_id)
        record = self._onboarding.get_by_client(client_id)
        if record is None:
            raise NotFoundError("Onboarding", client_id)
        return record

    def list_pending_reviews(self) -> List[PendingReview]:
        """Admin queue: clients in PENDING_REVIEW with their answers, oldest submission first."""

        return [
            PendingReview(client=client, questionnaire=self._onboarding.get_by_client(client.id))
            for client in self._clients.list_pending_onboarding()
        ]

    def submit_questionnaire(
        self, client_id: str, answers: Mapping[str, Any]
    ) -> OnboardingSubmission:
        """
        Store questionnaire answers and move the client to PENDING_REVIEW.

        Resubmission while pending review is governed by
        ALLOW_ONBOARDING_RESUBMISSION; after unlock it is always refused.
        """

        validated = validate_answers(answers)
        client = self._require_client(client_id)
        state = DiscoveryStatus.of(client.onboarding_completed, client.profile_unlocked).discovery_state

        if state is DiscoveryState.UNLOCKED:
            raise TransitionConflict(
                current=state.value,
                attempted=DiscoveryState.PENDING_REVIEW.value,
                expected=DiscoveryState.NOT_STARTED.value,
                message="Onboarding cannot be resubmitted after the profile is unlocked",
            )
        resubmission = state is DiscoveryState.PENDING_REVIEW
        if resubmission and not self._settings.allow_onboarding_resubmission:
            raise TransitionConflict(
                current=state.value,
                attempted=DiscoveryState.PENDING_REVIEW.value,
                expected=DiscoveryState.NOT_STARTED.value,
                message="Onboarding questionnaire has already been submitted",
            )

        now = self._clock()
        if resubmission:
            expected = {"onboarding_completed": True, "profile_unlocked": False}
            changes = {"updated_at": now}
        else:
            expected = {"onboarding_completed": False}
            changes = {"onboarding_completed": True, "onboarding_completed_at": now, "updated_at": now}

        claimed = self._clients.update_where(client_id, expected, changes)
        if claimed is None:
            self._raise_gate_conflict(client_id, DiscoveryState.PENDING_REVIEW)

        try:
            record = self._onboarding.save(
                client_id,
                {
                    **validated,
                    "execution_status": ExecutionStatus.PENDING_APPROVAL,
                    "completed_at": now,
                },
            )
        except Exception:
            if not resubmission:
                self._clients.update_where(
                    client_id,
                    {"onboarding_completed": True},
                    {"onboarding_completed": False, "onboarding_completed_at": None},
                )
            logger.error("Onboarding answers could not be saved", extra={"client_id": client_id}, exc_info=True)
            raise

        logger.info(
            "Onboarding submitted",
            extra={"client_id": client_id, "resubmission": resubmission},
        )
        self._notifier.dispatch(
            NotificationEvent.ONBOARDING_SUBMITTED,
            claimed.email,
            {"client_name": claimed.full_name},
        )
        return OnboardingSubmission(
            record=record,
            status=DiscoveryStatus.of(claimed.onboarding_completed, claimed.profile_unlocked),
        )

    def approve_onboarding(
        self, client_id: str, admin_id: str, notes: Optional[str] = None
    ) -> OnboardingApproval:
        """Admin unlock: PENDING_REVIEW -> UNLOCKED."""

        client = self._require_client(client_id)
        state = DiscoveryStatus.of(client.onboarding_completed, client.profile_unlocked).discovery_state
        if state is not DiscoveryState.PENDING_REVIEW:
            raise self._gate_conflict(state, DiscoveryState.UNLOCKED)

        now = self._clock()
        unlocked = self._clients.update_where(
            client_id,
            {"onboarding_completed": True, "profile_unlocked": False},
            {
                "profile_unlocked": True,
                "profile_unlocked_at": now,
                "profile_unlocked_by": admin_id,
                "updated_at": now,
            },
        )
        if unlocked is None:
            self._raise_gate_conflict(client_id, DiscoveryState.UNLOCKED)

        try:
            self._onboarding.update(
                client_id,
                {
                    "execution_status": ExecutionStatus.ACTIVE,
                    "approved_at": now,
                    "approved_by": admin_id,
                    "admin_notes": notes,
                },
            )
        except Exception:
            logger.error(
                "Profile unlocked but onboarding execution status was not updated",
                extra={"client_id": client_id},
                exc_info=True,
            )

        logger.info("Profile unlocked", extra={"client_id": client_id, "admin_id": admin_id})
        self._notifier.dispatch(
            NotificationEvent.ONBOARDING_APPROVED,
            unlocked.email,
            {
                "client_name": unlocked.full_name,
                "dashboard_url": self._settings.link("dashboard"),
            },
        )
        return OnboardingApproval(
            client=unlocked,
            status=DiscoveryStatus.of(unlocked.onboarding_completed, unlocked.profile_unlocked),
        )

    @staticmethod
    def _gate_conflict(current: DiscoveryState, attempted: DiscoveryState) -> TransitionConflict:
        if current is DiscoveryState.NOT_STARTED:
            message = "Client has not completed onboarding yet"
        elif current is DiscoveryState.UNLOCKED:
            message = "Profile is already unlocked"
        else:
            message = None
        expected = (
            DiscoveryState.PENDING_REVIEW if attempted is DiscoveryState.UNLOCKED else DiscoveryState.NOT_STARTED
        )
        return TransitionConflict(
            current=current.value,
            attempted=attempted.value,
            expected=expected.value,
            message=message,
        )

    def _raise_gate_conflict(self, client_id: str, attempted: DiscoveryState) -> None:
        latest = self._require_client(client_id)
        current = DiscoveryStatus.of(latest.onboarding_completed, latest.profile_unlocked).discovery_state
        raise self._gate_conflict(current, attempted)


__all__ = ["OnboardingService", "OnboardingSubmission", "OnboardingApproval", "PendingReview"]
