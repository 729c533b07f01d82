"""File Lifecycle Manager: icon, package and screenshot objects keyed by public URL."""

from __future__ import annotations

import logging
import re
import threading
import time
from urllib.parse import unquote, urlparse

from appduka.errors import CleanupFailure, UploadFailedError
from appduka.metrics import FILE_CLEANUP_FAILURES, FILE_UPLOADS
from appduka.services.storage import StorageClient, StorageError, StorageObjectNotFound

logger = logging.getLogger(__name__)

_UNSAFE_NAME_RE = re.compile(r"[^a-zA-Z0-9]")
_token_lock = threading.Lock()
_last_token = 0


def sanitize_app_name(app_name: str) -> str:
    return _UNSAFE_NAME_RE.sub("_", app_name).lower()


def _clean_filename(filename: str) -> str:
    base = filename.replace("\\", "/").rsplit("/", 1)[-1].strip()
    return base or "file"


def next_timestamp_token() -> int:
    """Millisecond timestamp, bumped so two calls in one process never share a token."""
    global _last_token
    with _token_lock:
        token = max(int(time.time() * 1000), _last_token + 1)
        _last_token = token
        return token


def build_storage_path(app_name: str, filename: str) -> str:
    return f"{sanitize_app_name(app_name)}/{next_timestamp_token()}_{_clean_filename(filename)}"


def upload_app_file(
    storage: StorageClient,
    content: bytes,
    filename: str,
    app_name: str,
    content_type: str | None = None,
) -> str:
    """Upload one file under the app's folder and return its public URL."""
    path = build_storage_path(app_name, filename)
    try:
        storage.upload(path, content, content_type)
    except StorageError as exc:
        FILE_UPLOADS.labels(status="failed").inc()
        raise UploadFailedError(f"Could not upload {_clean_filename(filename)}") from exc
    FILE_UPLOADS.labels(status="ok").inc()
    return storage.public_url(path)


def storage_path_from_url(public_url: str, bucket: str) -> str:
    segments = urlparse(public_url).path.split("/")
    try:
        index = segments.index(bucket)
    except ValueError:
        raise ValueError(f"Bucket '{bucket}' not in URL") from None
    path = "/".join(segments[index + 1 :])
    if not path:
        raise ValueError("URL has no object path after the bucket")
    return unquote(path)


def delete_app_file_by_url(storage: StorageClient, public_url: str | None) -> bool:
    """Best-effort delete. Returns True when the object is gone.

    Never raises: a failed cleanup must not block the record change that
    triggered it.
    """
    if not public_url:
        return True
    try:
        path = storage_path_from_url(public_url, storage.bucket)
        storage.remove(path)
    except StorageObjectNotFound:
        return True
    except (StorageError, ValueError) as exc:
        failure = CleanupFailure(f"Could not delete {public_url}: {exc}")
        FILE_CLEANUP_FAILURES.inc()
        logger.warning("%s", failure.message)
        return False
    return True
