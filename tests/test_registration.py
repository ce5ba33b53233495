"""
Tests for `services/registration_service.py`.

Covers contract rules:
- A registration token redeems exactly once; replays are rejected and never
  create a second account.
- An expired token is rejected and no ClientIdentity is created.
- Completing registration moves the lead to `client` and clears its token in
  the same conditional update.
- Passcodes are validated before anything is written and stored bcrypt-hashed.
"""

from __future__ import annotations

import threading

import pytest

from domain.errors import TokenErrorKind, TokenRejected, ValidationFailure
from domain.pipeline import PipelineStatus, WorkflowStage
from services.notification_service import NotificationDispatcher
from services.pipeline_service import PipelineService
from services.registration_service import (
    RegistrationService,
    check_passcode,
    hash_passcode,
    validate_passcode,
)
from services.token_service import RegistrationTokenService

from fakes import ADMIN_ID, FailingUpdateLeadStore, RecordingEmailSender

PASSCODE = "correct-horse-battery"


def test_verify_registration_prefills_form(registration, approved_lead) -> None:
    prefill = registration.verify_registration(approved_lead.registration_token)

    assert prefill.lead_id == approved_lead.id
    assert prefill.email == "jane.doe@example.com"
    assert prefill.full_name == "Jane Doe"
    assert prefill.expires_at == approved_lead.token_expires_at


def test_complete_registration(registration, approved_lead, leads, clients, sender) -> None:
    client = registration.complete_registration(
        approved_lead.registration_token,
        PASSCODE,
        confirm_passcode=PASSCODE,
        full_name="Jane A. Doe",
        profile={"phone": "+1 647 555 0199", "current_job": "PM", "country": "Canada"},
    )

    assert client.lead_id == approved_lead.id
    assert client.email == "jane.doe@example.com"
    assert client.full_name == "Jane A. Doe"
    assert client.role == "client"
    assert client.onboarding_completed is False
    assert client.profile_unlocked is False
    assert client.current_job == "PM"
    # Seeded from the consultation form
    assert client.role_targets == "Senior Product Manager"
    assert client.minimum_salary == "150000"
    assert check_passcode(PASSCODE, client.passcode_hash)
    assert PASSCODE not in client.passcode_hash

    lead = leads.get(approved_lead.id)
    assert lead.pipeline_status is PipelineStatus.CLIENT
    assert lead.status == "completed"
    assert lead.registration_token is None
    assert lead.token_used is True
    assert lead.user_id == client.id
    assert lead.phone == "+1 647 555 0199"
    assert lead.full_name == "Jane A. Doe"
    assert lead.workflow_stage is WorkflowStage.CLIENT_REGISTERED

    assert len(clients.rows) == 1
    assert sender.last("onboarding_completion")["dashboard_url"] == "https://app.example.com/dashboard"


def test_replay_after_success_is_already_registered(registration, registered_client, approved_lead, clients) -> None:
    with pytest.raises(TokenRejected) as exc_info:
        registration.complete_registration(approved_lead.registration_token, PASSCODE)

    assert exc_info.value.kind is TokenErrorKind.ALREADY_REGISTERED
    assert len(clients.rows) == 1


def test_expired_token_creates_no_client(registration, approved_lead, clients, leads, clock) -> None:
    clock.advance(hours=73)

    with pytest.raises(TokenRejected) as exc_info:
        registration.complete_registration(
            approved_lead.registration_token, PASSCODE, confirm_passcode=PASSCODE
        )

    assert exc_info.value.kind is TokenErrorKind.EXPIRED
    assert clients.rows == {}
    assert leads.get(approved_lead.id).pipeline_status is PipelineStatus.APPROVED


def test_payment_token_window_is_seven_days(pipeline, registration, submission, clients, clock) -> None:
    lead = pipeline.submit_lead(submission)
    pipeline.confirm_time_slot(lead.id, 1, ADMIN_ID)
    pipeline.mark_consultation_outcome(lead.id, "proceeding", ADMIN_ID)
    paid = pipeline.record_payment(lead.id, "499", ADMIN_ID)

    clock.advance(days=5)
    client = registration.complete_registration(paid.registration_token, PASSCODE)
    assert client.lead_id == lead.id


@pytest.mark.parametrize(
    "passcode,confirm,field",
    [
        ("short", None, "passcode"),
        ("", None, "passcode"),
        (None, None, "passcode"),
        (PASSCODE, "different-passcode", "confirm_passcode"),
        ("x" * 73, None, "passcode"),
    ],
)
def test_bad_passcode_writes_nothing(registration, approved_lead, clients, leads, passcode, confirm, field) -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        registration.complete_registration(
            approved_lead.registration_token, passcode, confirm_passcode=confirm
        )

    assert exc_info.value.field == field
    assert clients.rows == {}
    assert leads.get(approved_lead.id).registration_token == approved_lead.registration_token


def test_unknown_profile_field_rejected(registration, approved_lead, clients) -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        registration.complete_registration(
            approved_lead.registration_token, PASSCODE, profile={"role": "admin"}
        )
    assert exc_info.value.field == "role"
    assert clients.rows == {}


def test_invalid_token(registration) -> None:
    with pytest.raises(TokenRejected) as exc_info:
        registration.complete_registration("garbage", PASSCODE)
    assert exc_info.value.kind is TokenErrorKind.MALFORMED
    assert exc_info.value.to_dict()["code"] == "Malformed"


def test_concurrent_completions_create_one_account(registration, approved_lead, clients) -> None:
    start = threading.Barrier(2, timeout=5)
    created = []
    rejected = []

    def complete() -> None:
        start.wait()
        try:
            created.append(
                registration.complete_registration(approved_lead.registration_token, PASSCODE)
            )
        except TokenRejected as exc:
            rejected.append(exc.kind)

    threads = [threading.Thread(target=complete) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert len(created) == 1
    assert len(rejected) == 1
    assert rejected[0] in (TokenErrorKind.ALREADY_REGISTERED, TokenErrorKind.ALREADY_USED)
    assert len(clients.rows) == 1


def test_failed_invalidation_is_critical_but_registration_stands(
    clients, settings, clock, submission, caplog
) -> None:
    leads = FailingUpdateLeadStore()
    sender = RecordingEmailSender()
    notifier = NotificationDispatcher(sender, settings, clock=clock)
    tokens = RegistrationTokenService(
        secret=settings.registration_token_secret,
        ttl=settings.lead_approval_token_ttl,
        leads=leads,
        clock=clock,
    )
    pipeline = PipelineService(
        leads=leads,
        approval_tokens=tokens,
        payment_tokens=tokens,
        notifier=notifier,
        settings=settings,
        clock=clock,
    )
    registration = RegistrationService(
        clients=clients, tokens=tokens, notifier=notifier, settings=settings, bcrypt_rounds=4, clock=clock
    )
    lead = pipeline.submit_lead(submission)
    pipeline.mark_under_review(lead.id, ADMIN_ID)
    approved = pipeline.approve(lead.id, ADMIN_ID)

    leads.fail_updates = True
    with caplog.at_level("INFO"):
        client = registration.complete_registration(approved.registration_token, PASSCODE)

    assert client.lead_id == lead.id
    assert any(r.levelname == "CRITICAL" for r in caplog.records)
    assert "onboarding_completion" in sender.templates()


def test_hash_and_check_passcode() -> None:
    hashed = hash_passcode(PASSCODE, rounds=4)
    assert hashed.startswith("$2")
    assert check_passcode(PASSCODE, hashed)
    assert not check_passcode("wrong-passcode", hashed)


def test_validate_passcode_returns_value() -> None:
    assert validate_passcode(PASSCODE, PASSCODE) == PASSCODE
