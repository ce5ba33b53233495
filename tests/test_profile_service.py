"""
Tests for `services/profile_service.py`.

Covers contract rules:
- Email is immutable and unknown fields are rejected before any write.
- Every read and write returns a freshly computed completion report.
- Uploads are type and size checked, stored under the client's prefix and
  their public URL written back onto the profile.
"""

from __future__ import annotations

import io

import pytest

from domain.errors import NotFoundError, ValidationFailure
from services.profile_service import (
    MAX_UPLOAD_BYTES,
    PROFILE_PICTURE_BUCKET,
    RESUME_BUCKET,
    ProfileService,
    read_upload,
)


def test_get_profile_includes_consultation_answers(profiles, registered_client) -> None:
    snapshot = profiles.get_profile(registered_client.id)

    assert snapshot.client.id == registered_client.id
    assert snapshot.view.email == "jane.doe@example.com"
    assert snapshot.view.consultation_data.current_job == "Product Manager"
    assert snapshot.view.consultation_data.role_targets == "Senior Product Manager"
    # 8 of 13 required, employment_status and target_market optional
    assert snapshot.completion.required_completed == 8
    assert snapshot.completion.optional_completed == 2
    assert snapshot.completion.percentage == 59
    assert snapshot.completion.features_unlocked["application_tracking"] is True
    assert snapshot.completion.features_unlocked["interview_hub"] is False


def test_update_profile_trims_and_persists(profiles, registered_client, clients) -> None:
    snapshot = profiles.update_profile(
        registered_client.id,
        {"target_job": "  Director of Product ", "years_of_experience": 9, "linkedin_url": None},
    )

    assert snapshot.client.target_job == "Director of Product"
    assert snapshot.client.years_of_experience == "9"
    assert snapshot.client.linkedin_url is None
    assert clients.get(registered_client.id).target_job == "Director of Product"
    assert snapshot.completion.required_completed == 10


def test_blank_value_clears_field(profiles, registered_client) -> None:
    snapshot = profiles.update_profile(registered_client.id, {"country": "   "})
    assert snapshot.client.country is None
    assert "consultation_data.country" in snapshot.completion.missing_fields


def test_clearing_a_seeded_answer_counts_as_missing(profiles, registered_client) -> None:
    assert registered_client.phone == "+1 416 555 0100"

    snapshot = profiles.update_profile(registered_client.id, {"phone": None})

    assert snapshot.view.consultation_data.phone is None
    assert "consultation_data.phone" in snapshot.completion.missing_fields
    assert snapshot.completion.required_completed == 7
    assert profiles.get_completion(registered_client.id).required_completed == 7


def test_email_change_is_rejected(profiles, registered_client, clients) -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        profiles.update_profile(
            registered_client.id, {"email": "new@example.com", "country": "USA"}
        )

    assert exc_info.value.field == "email"
    client = clients.get(registered_client.id)
    assert client.email == "jane.doe@example.com"
    assert client.country == "Canada"


@pytest.mark.parametrize("field", ["role", "passcode_hash", "profile_unlocked", "lead_id"])
def test_unknown_or_protected_fields_rejected(profiles, registered_client, field) -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        profiles.update_profile(registered_client.id, {field: "x"})
    assert exc_info.value.field == field


def test_blank_name_rejected(profiles, registered_client) -> None:
    with pytest.raises(ValidationFailure):
        profiles.update_profile(registered_client.id, {"full_name": "  "})


def test_empty_update_returns_profile(profiles, registered_client) -> None:
    snapshot = profiles.update_profile(registered_client.id, {})
    assert snapshot.client.id == registered_client.id


def test_unknown_client(profiles) -> None:
    with pytest.raises(NotFoundError):
        profiles.get_profile("missing")
    with pytest.raises(NotFoundError):
        profiles.update_profile("missing", {"country": "Canada"})


def test_attach_resume(profiles, registered_client, storage, clock) -> None:
    snapshot = profiles.attach_resume(registered_client.id, b"%PDF-1.7 resume", "Jane CV.PDF")

    expected_path = f"{registered_client.id}/{int(clock.now.timestamp())}.pdf"
    assert storage.uploads == [(RESUME_BUCKET, expected_path, "application/pdf", 15)]
    assert snapshot.client.pdf_url == f"https://storage.test/{RESUME_BUCKET}/{expected_path}"
    assert "consultation_data.pdf_url" not in snapshot.completion.missing_fields


def test_attach_profile_picture(profiles, registered_client, storage) -> None:
    snapshot = profiles.attach_profile_picture(registered_client.id, b"\x89PNG....", "me.png")

    bucket, _, content_type, _ = storage.uploads[0]
    assert bucket == PROFILE_PICTURE_BUCKET
    assert content_type == "image/png"
    assert snapshot.client.profile_pic_url.startswith("https://storage.test/profile-pictures/")
    assert snapshot.completion.optional_completed == 3


@pytest.mark.parametrize(
    "content,filename",
    [
        (b"data", "resume.exe"),
        (b"data", "resume"),
        (b"", "resume.pdf"),
        (b"x" * (MAX_UPLOAD_BYTES + 1), "resume.pdf"),
    ],
)
def test_bad_upload_stores_nothing(profiles, registered_client, storage, content, filename) -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        profiles.attach_resume(registered_client.id, content, filename)

    assert exc_info.value.field == "file"
    assert storage.uploads == []


def test_upload_for_unknown_client(profiles, storage) -> None:
    with pytest.raises(NotFoundError):
        profiles.attach_resume("missing", b"%PDF", "cv.pdf")
    assert storage.uploads == []


def test_storage_failure_propagates(registered_client, clients, clock) -> None:
    class BrokenStorage:
        def upload(self, content, *, bucket, path, content_type):
            raise RuntimeError("Failed to upload file: bucket not found")

    profiles = ProfileService(clients=clients, storage=BrokenStorage(), clock=clock)

    with pytest.raises(RuntimeError):
        profiles.attach_resume(registered_client.id, b"%PDF", "cv.pdf")
    assert clients.get(registered_client.id).pdf_url is None


def test_read_upload_stops_after_limit() -> None:
    class CountingStream(io.BytesIO):
        def __init__(self, data):
            super().__init__(data)
            self.requested = []

        def read(self, size=-1):
            self.requested.append(size)
            return super().read(size)

    assert read_upload(io.BytesIO(b"12345678"), limit=8) == b"12345678"

    stream = CountingStream(b"x" * 1000)
    with pytest.raises(ValidationFailure) as exc_info:
        read_upload(stream, limit=8)
    assert exc_info.value.field == "file"
    assert stream.requested == [9]
    assert stream.tell() == 9
