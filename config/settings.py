"""
Application settings.

Loaded once at process start from the environment (and an optional `.env`
file next to the project root) and passed explicitly to whatever needs it.
The object is frozen; nothing mutates configuration at runtime.

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: hosted datastore credentials
- REGISTRATION_TOKEN_SECRET: HS256 key for registration tokens
- SESSION_TOKEN_SECRET: HS256 key for session bearer tokens
- APP_ENVIRONMENT: development | production
- FRONTEND_URL: base URL for links in emails
- LEAD_APPROVAL_TOKEN_TTL_HOURS / PAYMENT_TOKEN_TTL_DAYS: token windows
- ALLOW_ONBOARDING_RESUBMISSION: onboarding resubmission policy
- EMAIL_SERVICE_URL / EMAIL_SERVICE_API_KEY: email collaborator
- BUSINESS_NAME / SUPPORT_EMAIL / ADMIN_EMAIL: notification context
- LOG_LEVEL / LOG_FORMAT: logging
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

MIN_PRODUCTION_SECRET_LENGTH = 32

DEFAULT_FRONTEND_URL = "http://localhost:3000"
DEFAULT_BUSINESS_NAME = "Apply Bureau"
DEFAULT_SUPPORT_EMAIL = "support@applybureau.com"
DEFAULT_ADMIN_EMAIL = "admin@applybureau.com"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, raw: Optional[str], default: bool) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise RuntimeError(f"Invalid boolean for {name}: {raw!r}. Use true or false.")


def _parse_positive_int(name: str, raw: Optional[str], default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid integer for {name}: {raw!r}") from None
    if value <= 0:
        raise RuntimeError(f"{name} must be a positive integer, got {value}")
    return value


@dataclass(frozen=True, slots=True)
class Settings:
    registration_token_secret: str
    session_token_secret: str
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    environment: str = "development"
    frontend_url: str = DEFAULT_FRONTEND_URL
    lead_approval_token_ttl_hours: int = 72
    payment_token_ttl_days: int = 7
    allow_onboarding_resubmission: bool = False
    email_service_url: Optional[str] = None
    email_service_api_key: Optional[str] = None
    business_name: str = DEFAULT_BUSINESS_NAME
    support_email: str = DEFAULT_SUPPORT_EMAIL
    admin_email: str = DEFAULT_ADMIN_EMAIL
    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def lead_approval_token_ttl(self) -> timedelta:
        return timedelta(hours=self.lead_approval_token_ttl_hours)

    @property
    def payment_token_ttl(self) -> timedelta:
        return timedelta(days=self.payment_token_ttl_days)

    def link(self, path: str) -> str:
        """Absolute frontend URL for `path`."""
        return f"{self.frontend_url.rstrip('/')}/{path.lstrip('/')}"

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        *,
        dotenv_path: Optional[Path] = None,
    ) -> "Settings":
        """
        Build settings from the process environment.

        Raises:
        - RuntimeError if a required variable is missing or malformed.
        """

        if environ is None:
            load_dotenv(dotenv_path=dotenv_path or Path(__file__).parent.parent / ".env")
            environ = os.environ

        environment = (environ.get("APP_ENVIRONMENT") or "development").strip().lower()

        registration_secret = environ.get("REGISTRATION_TOKEN_SECRET")
        if not registration_secret:
            raise RuntimeError(
                "Missing environment variable: REGISTRATION_TOKEN_SECRET. "
                "Set it to a random string used to sign registration tokens."
            )
        if environment == "production" and len(registration_secret) < MIN_PRODUCTION_SECRET_LENGTH:
            raise RuntimeError(
                "REGISTRATION_TOKEN_SECRET is too short for production. "
                f"Use at least {MIN_PRODUCTION_SECRET_LENGTH} characters."
            )

        session_secret = environ.get("SESSION_TOKEN_SECRET") or registration_secret

        return cls(
            registration_token_secret=registration_secret,
            session_token_secret=session_secret,
            supabase_url=environ.get("SUPABASE_URL") or None,
            supabase_key=environ.get("SUPABASE_KEY") or None,
            environment=environment,
            frontend_url=environ.get("FRONTEND_URL") or DEFAULT_FRONTEND_URL,
            lead_approval_token_ttl_hours=_parse_positive_int(
                "LEAD_APPROVAL_TOKEN_TTL_HOURS", environ.get("LEAD_APPROVAL_TOKEN_TTL_HOURS"), 72
            ),
            payment_token_ttl_days=_parse_positive_int(
                "PAYMENT_TOKEN_TTL_DAYS", environ.get("PAYMENT_TOKEN_TTL_DAYS"), 7
            ),
            allow_onboarding_resubmission=_parse_bool(
                "ALLOW_ONBOARDING_RESUBMISSION",
                environ.get("ALLOW_ONBOARDING_RESUBMISSION"),
                False,
            ),
            email_service_url=environ.get("EMAIL_SERVICE_URL") or None,
            email_service_api_key=environ.get("EMAIL_SERVICE_API_KEY") or None,
            business_name=environ.get("BUSINESS_NAME") or DEFAULT_BUSINESS_NAME,
            support_email=environ.get("SUPPORT_EMAIL") or DEFAULT_SUPPORT_EMAIL,
            admin_email=environ.get("ADMIN_EMAIL") or DEFAULT_ADMIN_EMAIL,
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
            log_format=(environ.get("LOG_FORMAT") or "text").lower(),
        )


__all__ = ["Settings", "MIN_PRODUCTION_SECRET_LENGTH"]
