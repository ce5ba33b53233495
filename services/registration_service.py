"""
Registration service: redeem a registration token for a client account.

complete_registration:
1. Verify the token (stateless, then stateful).
2. Validate the passcode.
3. Create the ClientIdentity. The store's unique constraints on lead_id and
   email make a second concurrent completion fail here (AlreadyRegistered).
4. Invalidate the token in the same conditional update that moves the lead
   approved -> client and copies the registration profile onto it.
5. If invalidation fails the account still exists; the failure is logged at
   CRITICAL by the token service and registration proceeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

import bcrypt

from config.settings import Settings
from domain.client import CLIENT_ROLE, ClientIdentity
from domain.errors import TokenErrorKind, TokenRejected, ValidationFailure
from domain.pipeline import PipelineStatus, WorkflowStage, legacy_status
from domain.time import utc_now
from repositories.contracts import ClientStore, DuplicateRecordError
from services.notification_service import NotificationDispatcher, NotificationEvent
from services.token_service import RegistrationTokenService

logger = logging.getLogger(__name__)

MIN_PASSCODE_LENGTH = 8
BCRYPT_ROUNDS = 12

# Profile fields a client may supply while registering.
REGISTRATION_PROFILE_FIELDS = (
    "phone",
    "linkedin_url",
    "current_job",
    "target_job",
    "years_of_experience",
    "country",
    "user_location",
    "age",
)

# Subset of the above that also exists on the consultation request row.
LEAD_CONTACT_FIELDS = ("phone", "linkedin_url")


@dataclass(frozen=True, slots=True)
class RegistrationPrefill:
    lead_id: str
    email: str
    full_name: str
    expires_at: datetime


def hash_passcode(passcode: str, rounds: int = BCRYPT_ROUNDS) -> str:
    return bcrypt.hashpw(passcode.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def check_passcode(passcode: str, passcode_hash: str) -> bool:
    return bcrypt.checkpw(passcode.encode("utf-8"), passcode_hash.encode("utf-8"))


def validate_passcode(passcode: Optional[str], confirm: Optional[str] = None) -> str:
    if not passcode or len(passcode) < MIN_PASSCODE_LENGTH:
        raise ValidationFailure(
            f"Passcode must be at least {MIN_PASSCODE_LENGTH} characters", field="passcode"
        )
    if confirm is not None and confirm != passcode:
        raise ValidationFailure("Passcodes do not match", field="confirm_passcode")
    # bcrypt only looks at the first 72 bytes.
    if len(passcode.encode("utf-8")) > 72:
        raise ValidationFailure("Passcode must be at most 72 bytes", field="passcode")
    return passcode


class RegistrationService:
    def __init__(
        self,
        *,
        clients: ClientStore,
        tokens: RegistrationTokenService,
        notifier: NotificationDispatcher,
        settings: Settings,
        bcrypt_rounds: int = BCRYPT_ROUNDS,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clients = clients
        self._tokens = tokens
        self._notifier = notifier
        self._settings = settings
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock

    def verify_registration(self, token: Optional[str]) -> RegistrationPrefill:
        """Check a token and return what the registration form pre-fills."""

        verification = self._tokens.verify(token)
        claims = verification.require_valid()
        lead = verification.lead
        return RegistrationPrefill(
            lead_id=claims.lead_id,
            email=claims.email,
            full_name=lead.full_name if lead is not None else "",
            expires_at=claims.expires_at,
        )

    def complete_registration(
        self,
        token: Optional[str],
        passcode: Optional[str],
        *,
        confirm_passcode: Optional[str] = None,
        full_name: Optional[str] = None,
        profile: Optional[Mapping[str, Any]] = None,
    ) -> ClientIdentity:
        verification = self._tokens.verify(token)
        claims = verification.require_valid()
        lead = verification.lead
        if lead is None:
            raise TokenRejected(TokenErrorKind.NOT_FOUND)

        validate_passcode(passcode, confirm_passcode)

        profile_values: Dict[str, Any] = {}
        for key, value in (profile or {}).items():
            if key not in REGISTRATION_PROFILE_FIELDS:
                raise ValidationFailure(f"Unknown profile field: {key}", field=key)
            if value is not None and str(value).strip():
                profile_values[key] = str(value).strip()

        name = (full_name or "").strip() or lead.full_name
        now = self._clock()

        # Targeting answers from the consultation form seed the account.
        seeded = {
            field_name: getattr(lead, field_name)
            for field_name in (
                "phone",
                "linkedin_url",
                "role_targets",
                "location_preferences",
                "minimum_salary",
                "target_market",
                "employment_status",
            )
            if getattr(lead, field_name) is not None
        }

        try:
            client = self._clients.create(
                {
                    **seeded,
                    **profile_values,
                    "lead_id": lead.id,
                    "email": claims.email,
                    "full_name": name,
                    "passcode_hash": hash_passcode(passcode, self._bcrypt_rounds),
                    "role": CLIENT_ROLE,
                    "onboarding_completed": False,
                    "profile_unlocked": False,
                    "created_at": now,
                    "updated_at": now,
                }
            )
        except DuplicateRecordError:
            logger.warning("Registration rejected: account already exists", extra={"lead_id": lead.id})
            raise TokenRejected(TokenErrorKind.ALREADY_REGISTERED) from None

        self._tokens.invalidate(
            lead.id,
            token=token,
            expected={"pipeline_status": PipelineStatus.APPROVED},
            also_set={
                **{k: v for k, v in profile_values.items() if k in LEAD_CONTACT_FIELDS},
                "full_name": name,
                "pipeline_status": PipelineStatus.CLIENT,
                "status": legacy_status(PipelineStatus.CLIENT),
                "workflow_stage": WorkflowStage.CLIENT_REGISTERED,
                "registered_at": now,
                "user_id": client.id,
                "updated_at": now,
            },
        )
        logger.info(
            "Registration completed",
            extra={"lead_id": lead.id, "client_id": client.id},
        )

        self._notifier.dispatch(
            NotificationEvent.REGISTRATION_COMPLETED,
            client.email,
            {
                "client_name": client.full_name,
                "dashboard_url": self._settings.link("dashboard"),
            },
        )
        return client


__all__ = [
    "MIN_PASSCODE_LENGTH",
    "BCRYPT_ROUNDS",
    "RegistrationPrefill",
    "RegistrationService",
    "hash_passcode",
    "check_passcode",
    "validate_passcode",
]
