"""
Pytest configuration and shared fixtures.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules.
Services are wired against the in-memory stores in `fakes.py` with an
inline notification dispatcher and a fixed clock.
"""

import sys
from pathlib import Path

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest

from config.settings import Settings
from domain.lead import LeadSubmission
from services.application_service import ApplicationTrackerService
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

from fakes import (
    ADMIN_ID,
    TEST_SECRET,
    FixedClock,
    InMemoryApplicationStore,
    InMemoryClientStore,
    InMemoryLeadStore,
    InMemoryOnboardingStore,
    RecordingEmailSender,
    RecordingFileStorage,
)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        registration_token_secret=TEST_SECRET,
        session_token_secret=TEST_SECRET,
        frontend_url="https://app.example.com",
    )


@pytest.fixture
def leads() -> InMemoryLeadStore:
    return InMemoryLeadStore()


@pytest.fixture
def clients() -> InMemoryClientStore:
    return InMemoryClientStore()


@pytest.fixture
def onboarding_store() -> InMemoryOnboardingStore:
    return InMemoryOnboardingStore()


@pytest.fixture
def applications() -> InMemoryApplicationStore:
    return InMemoryApplicationStore()


@pytest.fixture
def storage() -> RecordingFileStorage:
    return RecordingFileStorage()


@pytest.fixture
def sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def notifier(sender, settings, clock) -> NotificationDispatcher:
    return NotificationDispatcher(sender, settings, clock=clock)


@pytest.fixture
def approval_tokens(settings, leads, clock) -> RegistrationTokenService:
    return RegistrationTokenService(
        secret=settings.registration_token_secret,
        ttl=settings.lead_approval_token_ttl,
        leads=leads,
        purpose=PURPOSE_LEAD_APPROVAL,
        clock=clock,
    )


@pytest.fixture
def payment_tokens(settings, leads, clock) -> RegistrationTokenService:
    return RegistrationTokenService(
        secret=settings.registration_token_secret,
        ttl=settings.payment_token_ttl,
        leads=leads,
        purpose=PURPOSE_PAYMENT,
        clock=clock,
    )


@pytest.fixture
def pipeline(leads, approval_tokens, payment_tokens, notifier, settings, clock) -> PipelineService:
    return PipelineService(
        leads=leads,
        approval_tokens=approval_tokens,
        payment_tokens=payment_tokens,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def registration(clients, approval_tokens, notifier, settings, clock) -> RegistrationService:
    return RegistrationService(
        clients=clients,
        tokens=approval_tokens,
        notifier=notifier,
        settings=settings,
        bcrypt_rounds=4,
        clock=clock,
    )


@pytest.fixture
def profiles(clients, storage, clock) -> ProfileService:
    return ProfileService(clients=clients, storage=storage, clock=clock)


@pytest.fixture
def onboarding(clients, onboarding_store, notifier, settings, clock) -> OnboardingService:
    return OnboardingService(
        clients=clients,
        onboarding=onboarding_store,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def tracker(clients, applications, clock) -> ApplicationTrackerService:
    return ApplicationTrackerService(clients=clients, applications=applications, clock=clock)


@pytest.fixture
def submission() -> LeadSubmission:
    return LeadSubmission.create(
        full_name="Jane Doe",
        email="Jane.Doe@Example.com",
        phone="+1 416 555 0100",
        role_targets="Senior Product Manager",
        location_preferences="Toronto",
        minimum_salary="150000",
        target_market="Canada",
        employment_status="employed",
        preferred_slots=[
            "2025-03-03T15:00:00Z",
            "2025-03-04T18:00:00Z",
            "2025-03-05T14:00:00Z",
        ],
    )


@pytest.fixture
def approved_lead(pipeline, submission):
    """A lead taken through review and approval; carries a fresh token."""

    lead = pipeline.submit_lead(submission)
    pipeline.mark_under_review(lead.id, ADMIN_ID)
    return pipeline.approve(lead.id, ADMIN_ID)


@pytest.fixture
def registered_client(registration, approved_lead):
    return registration.complete_registration(
        approved_lead.registration_token,
        "correct-horse-battery",
        confirm_passcode="correct-horse-battery",
        profile={"current_job": "Product Manager", "country": "Canada"},
    )
