"""
Profile service.

Every read and every write returns the freshly recomputed completion report
alongside the profile, so callers never derive gating flags themselves.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Callable, Dict, Mapping, Optional

from domain.client import EDITABLE_PROFILE_FIELDS, ClientIdentity
from domain.errors import NotFoundError, ValidationFailure
from domain.profile_completion import (
    CompletionReport,
    ProfileView,
    compute_completion,
    merge_profile,
)
from domain.time import utc_now
from repositories.contracts import ClientStore, FileStorage

logger = logging.getLogger(__name__)

RESUME_BUCKET = "resumes"
PROFILE_PICTURE_BUCKET = "profile-pictures"

MAX_UPLOAD_BYTES = 10 * 1024 * 1024

RESUME_TYPES: Mapping[str, str] = {
    ".pdf": "application/pdf",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}

PICTURE_TYPES: Mapping[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


def read_upload(stream: BinaryIO, limit: int = MAX_UPLOAD_BYTES) -> bytes:
    """Read at most `limit` bytes from an upload stream; anything longer is rejected."""

    content = stream.read(limit + 1)
    if len(content) > limit:
        raise ValidationFailure(f"Uploaded file exceeds the {limit}-byte limit", field="file")
    return content


@dataclass(frozen=True, slots=True)
class ProfileSnapshot:
    client: ClientIdentity
    view: ProfileView
    completion: CompletionReport


class ProfileService:
    def __init__(
        self,
        *,
        clients: ClientStore,
        storage: FileStorage,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._clients = clients
        self._storage = storage
        self._clock = clock

    def _require_client(self, client_id: str) -> ClientIdentity:
        client = self._clients.get(client_id)
        if client is None:
            raise NotFoundError("Client", client_id)
        return client

    def _snapshot(self, client: ClientIdentity) -> ProfileSnapshot:
        view = merge_profile(client)
        return ProfileSnapshot(client=client, view=view, completion=compute_completion(view))

    def get_profile(self, client_id: str) -> ProfileSnapshot:
        return self._snapshot(self._require_client(client_id))

    def get_completion(self, client_id: str) -> CompletionReport:
        return self.get_profile(client_id).completion

    def update_profile(self, client_id: str, changes: Mapping[str, Any]) -> ProfileSnapshot:
        """
        Apply self-service profile edits.

        Raises:
        - ValidationFailure for unknown fields, an email change or a blank name.
        - NotFoundError if the client does not exist.
        """

        if "email" in changes:
            raise ValidationFailure("Email cannot be changed", field="email")

        cleaned: Dict[str, Any] = {}
        for name, value in changes.items():
            if name not in EDITABLE_PROFILE_FIELDS:
                raise ValidationFailure(f"Unknown profile field: {name}", field=name)
            if value is None:
                cleaned[name] = None
                continue
            text = str(value).strip()
            cleaned[name] = text or None

        if "full_name" in cleaned and not cleaned["full_name"]:
            raise ValidationFailure("Full name cannot be empty", field="full_name")

        self._require_client(client_id)
        if not cleaned:
            return self.get_profile(client_id)

        cleaned["updated_at"] = self._clock()
        updated = self._clients.update(client_id, cleaned)
        if updated is None:
            raise NotFoundError("Client", client_id)

        logger.info(
            "Profile updated",
            extra={"client_id": client_id, "fields": sorted(k for k in cleaned if k != "updated_at")},
        )
        return self._snapshot(updated)

    def attach_resume(
        self, client_id: str, content: bytes, filename: str
    ) -> ProfileSnapshot:
        return self._attach(client_id, content, filename, RESUME_BUCKET, "pdf_url", RESUME_TYPES)

    def attach_profile_picture(
        self, client_id: str, content: bytes, filename: str
    ) -> ProfileSnapshot:
        return self._attach(
            client_id, content, filename, PROFILE_PICTURE_BUCKET, "profile_pic_url", PICTURE_TYPES
        )

    def _attach(
        self,
        client_id: str,
        content: bytes,
        filename: str,
        bucket: str,
        column: str,
        allowed: Mapping[str, str],
    ) -> ProfileSnapshot:
        extension = os.path.splitext(filename or "")[1].lower()
        content_type: Optional[str] = allowed.get(extension)
        if content_type is None:
            raise ValidationFailure(
                f"Unsupported file type. Allowed: {', '.join(sorted(allowed))}", field="file"
            )
        if not content:
            raise ValidationFailure("Uploaded file is empty", field="file")
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValidationFailure("Uploaded file exceeds 10 MB", field="file")

        self._require_client(client_id)
        now = self._clock()
        path = f"{client_id}/{int(now.timestamp())}{extension}"
        stored = self._storage.upload(content, bucket=bucket, path=path, content_type=content_type)

        updated = self._clients.update(client_id, {column: stored.url, "updated_at": now})
        if updated is None:
            raise NotFoundError("Client", client_id)
        logger.info("File attached", extra={"client_id": client_id, "bucket": bucket, "path": stored.path})
        return self._snapshot(updated)


__all__ = ["ProfileService", "ProfileSnapshot", "read_upload", "RESUME_BUCKET", "PROFILE_PICTURE_BUCKET"]
