"""Blob store for property media, identity documents and payment screenshots."""

from __future__ import annotations

import logging
import mimetypes
import secrets
import time
from pathlib import Path
from typing import Protocol

import httpx

from .config import settings
from .errors import CollaboratorError, ValidationError


logger = logging.getLogger("staybook.storage")


class BlobStore(Protocol):
    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        ...


class LocalBlobStore:
    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def put(self, path: str, data: bytes, content_type: str) -> str:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise ValidationError("Invalid storage path", field="path")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise CollaboratorError(f"Upload failed: {exc}")
        return f"{self.public_base_url}/{path}"


class HttpBlobStore:
    """Object storage speaking the ``/object/{bucket}/{path}`` REST shape."""

    def __init__(self, base_url: str, bucket: str, api_key: str = "", timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.api_key = api_key
        self.timeout = timeout

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/object/public/{self.bucket}/{path}"

    def put(self, path: str, data: bytes, content_type: str) -> str:
        headers = {"Content-Type": content_type, "x-upsert": "false"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(f"{self.base_url}/object/{self.bucket}/{path}", content=data, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("blob upload to %s failed: %s", path, exc)
            raise CollaboratorError("Upload failed")
        if resp.status_code >= 300:
            logger.error("blob upload to %s rejected: %s %s", path, resp.status_code, resp.text[:200])
            raise CollaboratorError("Upload failed")
        return self.public_url(path)


class MemoryBlobStore:
    def __init__(self, public_base_url: str = "memory://blobs"):
        self.public_base_url = public_base_url
        self.objects: dict[str, tuple[bytes, str]] = {}

    def put(self, path: str, data: bytes, content_type: str) -> str:
        self.objects[path] = (data, content_type)
        return f"{self.public_base_url}/{path}"


_store: BlobStore | None = None


def get_blob_store() -> BlobStore:
    global _store
    if _store is None:
        if settings.STORAGE_BACKEND.lower() == "http":
            _store = HttpBlobStore(settings.STORAGE_HTTP_URL, settings.STORAGE_BUCKET, settings.STORAGE_API_KEY, settings.STORAGE_TIMEOUT_SECS)
        else:
            _store = LocalBlobStore(settings.STORAGE_LOCAL_DIR, settings.STORAGE_PUBLIC_BASE_URL)
    return _store


def object_path(folder: str, owner_id: str, prefix: str, filename: str | None, content_type: str) -> str:
    ext = Path(filename or "").suffix.lower()
    if not ext or len(ext) > 8:
        ext = mimetypes.guess_extension(content_type or "") or ".bin"
    return f"{folder}/{owner_id}/{prefix}-{int(time.time() * 1000)}-{secrets.token_hex(4)}{ext}"


def check_upload(content_type: str | None, data: bytes, *, allow_pdf: bool = False, allow_video: bool = False, field: str = "files") -> str:
    ctype = (content_type or "").lower()
    allowed = ctype.startswith("image/") or (allow_pdf and ctype == "application/pdf") or (allow_video and ctype.startswith("video/"))
    if not allowed:
        kinds = "image" + (" or PDF" if allow_pdf else "") + (" or video" if allow_video else "")
        raise ValidationError(f"Only {kinds} files are allowed", field=field)
    if not data:
        raise ValidationError("Empty file", field=field)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationError("File too large", field=field)
    return ctype
