"""
Supabase Storage uploader.

Only the public URL of an uploaded object is kept by the core; the bytes never
leave this module.
"""

from __future__ import annotations

from supabase import Client  # type: ignore[import-not-found]

from repositories.contracts import StoredFile


class SupabaseFileStorage:
    def __init__(self, client: Client) -> None:
        self._client = client

    def upload(self, content: bytes, *, bucket: str, path: str, content_type: str) -> StoredFile:
        """
        Upload `content` to `bucket/path`, replacing any existing object.

        Raises:
        - RuntimeError if the storage API rejects the upload.
        """

        storage = self._client.storage.from_(bucket)
        try:
            storage.upload(
                path,
                content,
                {"content-type": content_type, "upsert": "true"},
            )
        except Exception as e:
            raise RuntimeError(f"Failed to upload {bucket}/{path}: {e}") from e

        url = storage.get_public_url(path)
        return StoredFile(url=str(url).rstrip("?"), path=path)


__all__ = ["SupabaseFileStorage"]
