"""
Tests for `domain/pipeline.py` and `domain/lead.py`.

Covers contract rules:
- Each pipeline and consultation edge accepts exactly its source states.
- `rejected` and `client` are terminal; a client can never be rejected.
- The legacy `status` column is a projection of pipeline_status.
- A registration token may only sit on an approved, unused record.
- Intake normalizes email and preferred slots before anything is stored.
"""

from __future__ import annotations

from dataclasses import FrozenInstanceError
from datetime import datetime, timedelta, timezone

import pytest

from domain.errors import TransitionConflict, ValidationFailure
from domain.lead import LeadRecord, LeadSubmission, normalize_email, normalize_time_slots
from domain.pipeline import (
    ConsultationAction,
    ConsultationStatus,
    PipelineAction,
    PipelineStatus,
    consultation_transition,
    legacy_status,
    pipeline_transition,
    require_scheduling_open,
)

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _lead(**overrides) -> LeadRecord:
    values = dict(
        id="lead-1",
        full_name="Jane Doe",
        email="jane@example.com",
        pipeline_status=PipelineStatus.LEAD,
        consultation_status=ConsultationStatus.PENDING,
        created_at=NOW,
    )
    values.update(overrides)
    return LeadRecord(**values)


@pytest.mark.parametrize(
    "action,allowed",
    [
        (PipelineAction.MARK_UNDER_REVIEW, {PipelineStatus.LEAD}),
        (PipelineAction.APPROVE, {PipelineStatus.UNDER_REVIEW}),
        (
            PipelineAction.REJECT,
            {
                PipelineStatus.LEAD,
                PipelineStatus.UNDER_REVIEW,
                PipelineStatus.APPROVED,
                PipelineStatus.REJECTED,
            },
        ),
        (PipelineAction.COMPLETE_REGISTRATION, {PipelineStatus.APPROVED}),
    ],
)
def test_pipeline_edges_accept_only_their_sources(action, allowed) -> None:
    transition = pipeline_transition(action)
    for status in PipelineStatus:
        assert transition.allows(status) is (status in allowed)


def test_approve_from_lead_names_expected_state() -> None:
    """Skipping under_review is a conflict that says what was expected."""

    with pytest.raises(TransitionConflict) as exc_info:
        pipeline_transition(PipelineAction.APPROVE).check(PipelineStatus.LEAD)

    err = exc_info.value
    assert err.current == "lead"
    assert err.attempted == "approved"
    assert err.expected == "under_review"
    assert err.to_dict()["expected_status"] == "under_review"
    assert "must be under_review first" in err.message


def test_client_is_terminal_for_every_pipeline_edge() -> None:
    assert PipelineStatus.CLIENT.is_terminal
    assert PipelineStatus.REJECTED.is_terminal
    assert not PipelineStatus.APPROVED.is_terminal
    for action in PipelineAction:
        assert not pipeline_transition(action).allows(PipelineStatus.CLIENT)


def test_consultation_edges() -> None:
    confirm = consultation_transition(ConsultationAction.CONFIRM_TIME)
    assert confirm.allows(ConsultationStatus.PENDING)
    assert not confirm.allows(ConsultationStatus.CONFIRMED)

    new_times = consultation_transition(ConsultationAction.REQUEST_NEW_TIMES)
    assert new_times.source_values() == ["confirmed", "pending"]
    assert new_times.expected_label() == "confirmed|pending"

    assert consultation_transition(ConsultationAction.RESUBMIT_TIMES).target is ConsultationStatus.PENDING
    assert consultation_transition(ConsultationAction.MARK_OUTCOME).allows(ConsultationStatus.CONFIRMED)
    assert not consultation_transition(ConsultationAction.RECORD_PAYMENT).allows(
        ConsultationStatus.CONFIRMED
    )


def test_scheduling_closed_once_rejected_or_client() -> None:
    require_scheduling_open(PipelineStatus.APPROVED, ConsultationStatus.CONFIRMED)
    for status in (PipelineStatus.REJECTED, PipelineStatus.CLIENT):
        with pytest.raises(TransitionConflict):
            require_scheduling_open(status, ConsultationStatus.CONFIRMED)


def test_legacy_status_projection() -> None:
    assert legacy_status(PipelineStatus.LEAD) == "pending"
    assert legacy_status(PipelineStatus.CLIENT) == "completed"
    assert _lead(pipeline_status=PipelineStatus.UNDER_REVIEW).status == "under_review"


def test_token_only_on_approved_unused_record() -> None:
    expires = NOW + timedelta(hours=72)
    lead = _lead(
        pipeline_status=PipelineStatus.APPROVED,
        registration_token="secret-xyz",
        token_expires_at=expires,
    )
    assert lead.registration_token == "secret-xyz"
    assert "secret-xyz" not in repr(lead)

    for status in (PipelineStatus.LEAD, PipelineStatus.REJECTED, PipelineStatus.CLIENT):
        with pytest.raises(ValueError):
            _lead(pipeline_status=status, registration_token="tok")

    with pytest.raises(ValueError):
        _lead(pipeline_status=PipelineStatus.APPROVED, registration_token="tok", token_used=True)


def test_lead_record_requires_utc() -> None:
    with pytest.raises(ValueError):
        _lead(created_at=datetime(2025, 3, 1, 12, 0, 0))


def test_lead_record_is_immutable() -> None:
    lead = _lead()
    with pytest.raises(FrozenInstanceError):
        lead.pipeline_status = PipelineStatus.CLIENT  # type: ignore[misc]


def test_time_slot_lookup() -> None:
    lead = _lead(preferred_time_1="a", preferred_time_3="c")
    assert lead.time_slots == ("a", None, "c")
    assert lead.time_slot(3) == "c"
    assert lead.time_slot(2) is None


def test_normalize_email() -> None:
    assert normalize_email("  Jane.Doe@Example.COM ") == "jane.doe@example.com"
    for bad in ("", None, "jane", "jane@", "jane doe@example.com", "jane@example"):
        with pytest.raises(ValidationFailure) as exc_info:
            normalize_email(bad)
        assert exc_info.value.field == "email"


def test_normalize_time_slots() -> None:
    assert normalize_time_slots(("a", "  ", "b")) == ("a", "b", None)
    assert normalize_time_slots(None) == (None, None, None)
    with pytest.raises(ValidationFailure):
        normalize_time_slots(("a", "b", "c", "d"))


def test_submission_requires_name() -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        LeadSubmission.create(full_name="   ", email="jane@example.com")
    assert exc_info.value.field == "full_name"

    submission = LeadSubmission.create(
        full_name=" Jane ", email="JANE@example.com", preferred_slots=["x"]
    )
    assert submission.full_name == "Jane"
    assert submission.email == "jane@example.com"
    assert submission.preferred_slots == ("x", None, None)
