"""Submission Service: keeps app records and their stored files in step.

Ordering is fixed: upload new files, commit the record, then best-effort
delete whatever the record no longer references. A crash between steps can
orphan an uploaded object but never leaves a record pointing at a deleted one.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appduka.config import settings
from appduka.errors import AppDukaError, NotFoundError, ValidationError, translate_db_error
from appduka.services.access import Actor, Capability
from appduka.services.app_files import delete_app_file_by_url, upload_app_file
from appduka.services.catalog_service import CatalogEntry, CatalogService
from appduka.services.storage import StorageClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content: bytes
    content_type: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.content


def _check_size(file: UploadedFile) -> None:
    if len(file.content) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // 1024 // 1024
        raise ValidationError(f"{file.filename} is too large. Maximum size: {limit_mb}MB")


class SubmissionService:
    def __init__(self, db: Session, actor: Actor, storage: StorageClient):
        self.db = db
        self.actor = actor
        self.storage = storage
        self.catalog = CatalogService(db, actor)

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise translate_db_error(exc) from exc

    def _upload(self, file: UploadedFile, app_name: str) -> str:
        return upload_app_file(self.storage, file.content, file.filename, app_name, file.content_type)

    def _upload_many(self, files: Sequence[UploadedFile], app_name: str) -> list[str]:
        """Upload screenshots concurrently, preserving order; all or nothing."""
        if not files:
            return []
        with ThreadPoolExecutor(max_workers=max(1, min(settings.upload_workers, len(files)))) as pool:
            futures = [pool.submit(self._upload, f, app_name) for f in files]
        urls: list[str] = []
        failure: BaseException | None = None
        for future in futures:
            exc = future.exception()
            if exc is not None:
                failure = failure or exc
            else:
                urls.append(future.result())
        if failure is not None:
            self._cleanup(urls)
            raise failure
        return urls

    def _cleanup(self, urls: Sequence[str | None]) -> int:
        """Best-effort delete every URL. Returns how many deletions failed."""
        targets = list(urls)
        if not targets:
            return 0
        with ThreadPoolExecutor(max_workers=max(1, min(settings.upload_workers, len(targets)))) as pool:
            results = list(pool.map(lambda url: delete_app_file_by_url(self.storage, url), targets))
        return sum(1 for ok in results if not ok)

    def submit(
        self,
        fields: dict[str, Any],
        icon: UploadedFile | None,
        apk: UploadedFile | None,
        screenshots: Sequence[UploadedFile] = (),
    ) -> CatalogEntry:
        self.actor.require(Capability.manage_entries)
        name = (fields.get("name") or "").strip()
        if not name:
            raise ValidationError("App name is required")
        if icon is None or icon.is_empty or apk is None or apk.is_empty:
            raise ValidationError("An icon and an APK file are required for a new app")
        screenshots = [s for s in screenshots if not s.is_empty]
        for file in (icon, apk, *screenshots):
            _check_size(file)
        CatalogService.validate_fields(fields)

        uploaded: list[str] = []
        try:
            icon_url = self._upload(icon, name)
            uploaded.append(icon_url)
            apk_url = self._upload(apk, name)
            uploaded.append(apk_url)
            screenshot_urls = self._upload_many(screenshots, name)
            uploaded.extend(screenshot_urls)
            data = dict(fields)
            data.update(icon_url=icon_url, apk_url=apk_url, screenshots=screenshot_urls)
            entry = self.catalog.create_catalog_entry(data)
            self._commit()
        except AppDukaError:
            self._cleanup(uploaded)
            raise
        return entry

    def edit(
        self,
        app_id: UUID,
        fields: dict[str, Any],
        icon: UploadedFile | None = None,
        apk: UploadedFile | None = None,
        new_screenshots: Sequence[UploadedFile] = (),
        kept_screenshots: Sequence[str] | None = None,
    ) -> CatalogEntry:
        self.actor.require(Capability.manage_entries)
        CatalogService.validate_fields(fields)
        if "screenshots" in fields:
            raise ValidationError("Use kept_screenshots and new screenshot files to change screenshots")
        current = self.catalog.require_entry(app_id).app
        old_icon, old_apk = current.icon_url, current.apk_url
        old_screenshots = list(current.screenshots or [])
        if kept_screenshots is None:
            kept = old_screenshots
        else:
            unknown = [url for url in kept_screenshots if url not in old_screenshots]
            if unknown:
                raise ValidationError("kept_screenshots may only list the app's current screenshots")
            kept = [url for url in old_screenshots if url in set(kept_screenshots)]
        icon = icon if icon and not icon.is_empty else None
        apk = apk if apk and not apk.is_empty else None
        new_screenshots = [s for s in new_screenshots if not s.is_empty]
        for file in (f for f in (icon, apk, *new_screenshots) if f is not None):
            _check_size(file)
        app_name = (fields.get("name") or current.name or "").strip() or current.name

        uploaded: list[str] = []
        update = dict(fields)
        try:
            if icon:
                update["icon_url"] = self._upload(icon, app_name)
                uploaded.append(update["icon_url"])
            if apk:
                update["apk_url"] = self._upload(apk, app_name)
                uploaded.append(update["apk_url"])
            added = self._upload_many(new_screenshots, app_name)
            uploaded.extend(added)
            if added or kept != old_screenshots:
                update["screenshots"] = kept + added
            entry = self.catalog.update_catalog_entry(app_id, update)
            self._commit()
        except AppDukaError:
            self._cleanup(uploaded)
            raise

        superseded: list[str | None] = []
        if icon and old_icon and old_icon != entry.app.icon_url:
            superseded.append(old_icon)
        if apk and old_apk and old_apk != entry.app.apk_url:
            superseded.append(old_apk)
        superseded.extend(url for url in old_screenshots if url not in kept)
        failed = self._cleanup(superseded)
        if failed:
            logger.warning("App %s saved; %d superseded file(s) left behind", app_id, failed)
        return entry

    def remove(self, app_id: UUID) -> dict:
        """Delete the record, then its icon, package and every screenshot."""
        self.actor.require(Capability.manage_entries)
        entry = self.catalog.get_catalog_entry(app_id)
        if entry is None:
            raise NotFoundError("App not found")
        app = entry.app
        files = [app.icon_url, app.apk_url, *(app.screenshots or [])]
        self.catalog.delete_catalog_entry(app_id)
        self._commit()
        failed = self._cleanup(files)
        if failed:
            logger.warning("App %s deleted; %d of %d file(s) could not be removed", app_id, failed, len(files))
        return {"deleted": str(app_id), "files_attempted": len(files), "files_failed": failed}
