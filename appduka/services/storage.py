"""Object storage client for the hosted storage REST API."""

from __future__ import annotations

import logging
from urllib.parse import quote

import httpx

from appduka.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class StorageObjectNotFound(StorageError):
    pass


def _is_not_found(resp: httpx.Response) -> bool:
    if resp.status_code == 404:
        return True
    try:
        body = resp.json()
    except ValueError:
        return False
    if not isinstance(body, dict):
        return False
    marker = f"{body.get('error', '')} {body.get('message', '')} {body.get('statusCode', '')}".lower()
    return "not_found" in marker or "not found" in marker or "404" in marker


class StorageClient:
    """All objects live in one bucket; callers address them by path."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        bucket: str | None = None,
        http: httpx.Client | None = None,
    ):
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.bucket = bucket or settings.storage_bucket
        key = api_key if api_key is not None else settings.supabase_service_role_key
        self._http = http or httpx.Client(timeout=settings.http_timeout_seconds)
        self._headers = {"apikey": key, "Authorization": f"Bearer {key}"}

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path, safe='/')}"

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path, safe='/')}"

    def upload(self, path: str, content: bytes, content_type: str | None = None) -> None:
        headers = dict(self._headers)
        headers["Content-Type"] = content_type or "application/octet-stream"
        headers["x-upsert"] = "false"
        try:
            resp = self._http.post(self._object_url(path), content=content, headers=headers)
        except httpx.HTTPError as exc:
            raise StorageError(f"Upload of {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise StorageError(f"Upload of {path} rejected: {resp.text[:200]}", resp.status_code)
        logger.debug("Uploaded %s (%d bytes)", path, len(content))

    def remove(self, path: str) -> None:
        try:
            resp = self._http.delete(self._object_url(path), headers=self._headers)
        except httpx.HTTPError as exc:
            raise StorageError(f"Delete of {path} failed: {exc}") from exc
        if resp.status_code < 400:
            return
        if _is_not_found(resp):
            raise StorageObjectNotFound(f"{path} not found", resp.status_code)
        raise StorageError(f"Delete of {path} rejected: {resp.text[:200]}", resp.status_code)

    def close(self) -> None:
        self._http.close()
