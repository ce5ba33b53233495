"""
Registration token service.

Issues, verifies and invalidates the single-use, time-limited tokens that gate
account creation on admin approval (72 hour window) or payment confirmation
(7 day window). Both windows are instances of the same service with a
different `ttl`.

Tokens are HS256 JWTs carrying:
    sub / lead_id, email, type="registration", purpose, iat, exp, jti

Verification order:
1. Claims that cannot be read at all -> Malformed.
2. The claimed lead is already a client -> AlreadyRegistered, whatever the
   token's own signature or expiry.
3. Signature / expiry failures -> Malformed / Expired.
4. Stateful check against the stored lead: lookup failure -> NotFound (fail
   closed); token_used -> AlreadyUsed; lead no longer approved -> NotFound;
   stored token differs from the presented one -> AlreadyUsed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping, Optional

import jwt

from domain.errors import TokenErrorKind, TokenRejected
from domain.lead import LeadRecord
from domain.pipeline import PipelineStatus
from domain.time import utc_now
from repositories.contracts import LeadStore

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_TYPE = "registration"

PURPOSE_LEAD_APPROVAL = "lead_approval"
PURPOSE_PAYMENT = "payment_confirmation"


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class RegistrationClaims:
    lead_id: str
    email: str
    purpose: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenVerification:
    valid: bool
    claims: Optional[RegistrationClaims] = None
    lead: Optional[LeadRecord] = None
    error: Optional[TokenErrorKind] = None

    def require_valid(self) -> RegistrationClaims:
        if not self.valid or self.claims is None:
            raise TokenRejected(self.error or TokenErrorKind.MALFORMED)
        return self.claims


class RegistrationTokenService:
    def __init__(
        self,
        *,
        secret: str,
        ttl: timedelta,
        leads: LeadStore,
        purpose: str = PURPOSE_LEAD_APPROVAL,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if not secret:
            raise ValueError("secret must be a non-empty string")
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        self._secret = secret
        self._ttl = ttl
        self._leads = leads
        self._purpose = purpose
        self._clock = clock

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def purpose(self) -> str:
        return self._purpose

    def issue(self, lead_id: str, email: str) -> IssuedToken:
        """
        Mint a fresh token bound to `lead_id` / `email`.

        The caller persists the returned token and expiry on the lead, in the
        same conditional update that performs the transition.
        """

        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self._ttl
        claims = {
            "sub": str(lead_id),
            "lead_id": str(lead_id),
            "email": email,
            "type": TOKEN_TYPE,
            "purpose": self._purpose,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(claims, self._secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at)

    def _claims_from(self, payload: Mapping[str, Any]) -> Optional[RegistrationClaims]:
        lead_id = payload.get("lead_id") or payload.get("sub")
        email = payload.get("email")
        if payload.get("type") != TOKEN_TYPE or not lead_id or not email:
            return None
        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
        except (KeyError, TypeError, ValueError):
            return None
        return RegistrationClaims(
            lead_id=str(lead_id),
            email=str(email),
            purpose=str(payload.get("purpose") or PURPOSE_LEAD_APPROVAL),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def verify(self, token: Optional[str]) -> TokenVerification:
        """Verify `token` without raising. See the module docstring for the order."""

        if not token:
            return TokenVerification(valid=False, error=TokenErrorKind.MALFORMED)

        try:
            unverified = jwt.decode(
                token, options={"verify_signature": False, "verify_exp": False}
            )
        except jwt.PyJWTError:
            return TokenVerification(valid=False, error=TokenErrorKind.MALFORMED)

        claimed_lead_id = unverified.get("lead_id") or unverified.get("sub")
        lead: Optional[LeadRecord] = None
        lookup_failed = False
        if claimed_lead_id:
            try:
                lead = self._leads.get(str(claimed_lead_id))
            except Exception:
                logger.error(
                    "Lead lookup failed during token verification",
                    extra={"lead_id": str(claimed_lead_id)},
                    exc_info=True,
                )
                lookup_failed = True

        if lead is not None and lead.pipeline_status is PipelineStatus.CLIENT:
            return TokenVerification(valid=False, lead=lead, error=TokenErrorKind.ALREADY_REGISTERED)

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                # Expiry is checked against the injected clock below.
                options={
                    "require": ["exp", "iat", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.PyJWTError:
            return TokenVerification(valid=False, error=TokenErrorKind.MALFORMED)

        claims = self._claims_from(payload)
        if claims is None:
            return TokenVerification(valid=False, error=TokenErrorKind.MALFORMED)
        if self._clock() >= claims.expires_at:
            return TokenVerification(valid=False, claims=claims, error=TokenErrorKind.EXPIRED)

        if lookup_failed or lead is None:
            return TokenVerification(valid=False, claims=claims, error=TokenErrorKind.NOT_FOUND)
        if lead.token_used:
            return TokenVerification(valid=False, claims=claims, lead=lead, error=TokenErrorKind.ALREADY_USED)
        if lead.pipeline_status is not PipelineStatus.APPROVED:
            return TokenVerification(valid=False, claims=claims, lead=lead, error=TokenErrorKind.NOT_FOUND)
        if lead.registration_token != token:
            return TokenVerification(valid=False, claims=claims, lead=lead, error=TokenErrorKind.ALREADY_USED)

        return TokenVerification(valid=True, claims=claims, lead=lead)

    def invalidate(
        self,
        lead_id: str,
        *,
        token: Optional[str] = None,
        expected: Optional[Mapping[str, Any]] = None,
        also_set: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Mark the lead's token used and clear it, in one conditional update.

        The update only applies while `token_used` is false (and, when given,
        the stored token equals `token` and `expected` matches), so two
        concurrent redemptions cannot both succeed. `also_set` carries the
        columns of the transition performed together with the invalidation.

        Returns True if this call consumed the token. Failures are logged at
        CRITICAL (token replay risk) and reported as False, never raised.
        """

        conditions: dict = {"token_used": False}
        if token is not None:
            conditions["registration_token"] = token
        if expected:
            conditions.update(expected)

        changes: dict = dict(also_set or {})
        changes.update({"token_used": True, "registration_token": None})

        try:
            updated = self._leads.update_where(lead_id, conditions, changes)
        except Exception:
            logger.critical(
                "Registration token invalidation failed; token may be replayable",
                extra={"lead_id": lead_id},
                exc_info=True,
            )
            return False

        if updated is None:
            logger.critical(
                "Registration token invalidation matched no row; token may be replayable",
                extra={"lead_id": lead_id},
            )
            return False

        logger.info("Registration token invalidated", extra={"lead_id": lead_id})
        return True


__all__ = [
    "ALGORITHM",
    "TOKEN_TYPE",
    "PURPOSE_LEAD_APPROVAL",
    "PURPOSE_PAYMENT",
    "IssuedToken",
    "RegistrationClaims",
    "TokenVerification",
    "RegistrationTokenService",
]
