"""
Dependency wiring for the API.

Settings, the Supabase client and the notification dispatcher are built once
per process; repositories and services are cheap and built per request. Tests
swap the store providers (and settings) through `app.dependency_overrides`.
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Optional

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import Settings
from repositories.application_repository import SupabaseApplicationRepository
from repositories.client import create_supabase_client
from repositories.client_repository import SupabaseClientRepository
from repositories.contracts import (
    ApplicationStore,
    ClientStore,
    FileStorage,
    LeadStore,
    OnboardingStore,
)
from repositories.lead_repository import SupabaseLeadRepository
from repositories.onboarding_repository import SupabaseOnboardingRepository
from repositories.storage_repository import SupabaseFileStorage
from services.application_service import ApplicationTrackerService
from services.email_sender import build_email_sender
from services.notification_service import NotificationDispatcher
from services.onboarding_service import OnboardingService
from services.pipeline_service import PipelineService
from services.profile_service import ProfileService
from services.registration_service import RegistrationService
from services.token_service import (
    PURPOSE_LEAD_APPROVAL,
    PURPOSE_PAYMENT,
    RegistrationTokenService,
)

ADMIN_ROLE = "admin"
CLIENT_ROLE = "client"

NOTIFICATION_WORKERS = 4


# ============================================================================
# Process-wide singletons
# ============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=4)
def _supabase_for(url: Optional[str], key: Optional[str]):
    return create_supabase_client(url, key)


def get_supabase_client(settings: Settings = Depends(get_settings)):
    return _supabase_for(settings.supabase_url, settings.supabase_key)


_dispatchers: Dict[Settings, NotificationDispatcher] = {}
_dispatchers_lock = threading.Lock()


def get_notifier(settings: Settings = Depends(get_settings)) -> NotificationDispatcher:
    with _dispatchers_lock:
        dispatcher = _dispatchers.get(settings)
        if dispatcher is None:
            dispatcher = NotificationDispatcher(
                build_email_sender(settings),
                settings,
                executor=ThreadPoolExecutor(
                    max_workers=NOTIFICATION_WORKERS, thread_name_prefix="notify"
                ),
            )
            _dispatchers[settings] = dispatcher
    return dispatcher


def shutdown_notifiers() -> None:
    """Drain pending sends; called from the app lifespan on shutdown."""

    with _dispatchers_lock:
        dispatchers = list(_dispatchers.values())
        _dispatchers.clear()
    for dispatcher in dispatchers:
        dispatcher.shutdown()


# ============================================================================
# Stores
# ============================================================================

def get_lead_store(client=Depends(get_supabase_client)) -> LeadStore:
    return SupabaseLeadRepository(client)


def get_client_store(client=Depends(get_supabase_client)) -> ClientStore:
    return SupabaseClientRepository(client)


def get_onboarding_store(client=Depends(get_supabase_client)) -> OnboardingStore:
    return SupabaseOnboardingRepository(client)


def get_application_store(client=Depends(get_supabase_client)) -> ApplicationStore:
    return SupabaseApplicationRepository(client)


def get_file_storage(client=Depends(get_supabase_client)) -> FileStorage:
    return SupabaseFileStorage(client)


# ============================================================================
# Services
# ============================================================================

def get_approval_tokens(
    settings: Settings = Depends(get_settings),
    leads: LeadStore = Depends(get_lead_store),
) -> RegistrationTokenService:
    return RegistrationTokenService(
        secret=settings.registration_token_secret,
        ttl=settings.lead_approval_token_ttl,
        leads=leads,
        purpose=PURPOSE_LEAD_APPROVAL,
    )


def get_payment_tokens(
    settings: Settings = Depends(get_settings),
    leads: LeadStore = Depends(get_lead_store),
) -> RegistrationTokenService:
    return RegistrationTokenService(
        secret=settings.registration_token_secret,
        ttl=settings.payment_token_ttl,
        leads=leads,
        purpose=PURPOSE_PAYMENT,
    )


def get_pipeline_service(
    settings: Settings = Depends(get_settings),
    leads: LeadStore = Depends(get_lead_store),
    approval_tokens: RegistrationTokenService = Depends(get_approval_tokens),
    payment_tokens: RegistrationTokenService = Depends(get_payment_tokens),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> PipelineService:
    return PipelineService(
        leads=leads,
        approval_tokens=approval_tokens,
        payment_tokens=payment_tokens,
        notifier=notifier,
        settings=settings,
    )


def get_registration_service(
    settings: Settings = Depends(get_settings),
    clients: ClientStore = Depends(get_client_store),
    tokens: RegistrationTokenService = Depends(get_approval_tokens),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> RegistrationService:
    return RegistrationService(clients=clients, tokens=tokens, notifier=notifier, settings=settings)


def get_profile_service(
    clients: ClientStore = Depends(get_client_store),
    storage: FileStorage = Depends(get_file_storage),
) -> ProfileService:
    return ProfileService(clients=clients, storage=storage)


def get_onboarding_service(
    settings: Settings = Depends(get_settings),
    clients: ClientStore = Depends(get_client_store),
    onboarding: OnboardingStore = Depends(get_onboarding_store),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> OnboardingService:
    return OnboardingService(
        clients=clients, onboarding=onboarding, notifier=notifier, settings=settings
    )


def get_application_service(
    clients: ClientStore = Depends(get_client_store),
    applications: ApplicationStore = Depends(get_application_store),
) -> ApplicationTrackerService:
    return ApplicationTrackerService(clients=clients, applications=applications)


# ============================================================================
# Authentication
# ============================================================================

@dataclass(frozen=True, slots=True)
class Principal:
    id: str
    role: str


_bearer = HTTPBearer(auto_error=False)


def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Principal:
    """Decode the session bearer token issued by the auth service."""

    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.session_token_secret,
            algorithms=["HS256"],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Session expired") from None
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid session token") from None

    role = payload.get("role")
    if role not in (ADMIN_ROLE, CLIENT_ROLE):
        raise HTTPException(status_code=401, detail="Session token has no valid role")
    return Principal(id=str(payload["sub"]), role=role)


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.role != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Admin access required")
    return principal


def require_client(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.role != CLIENT_ROLE:
        raise HTTPException(status_code=403, detail="Client access required")
    return principal
