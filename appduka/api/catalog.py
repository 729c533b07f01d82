"""Catalog API: browse, submit, edit, moderate and review apps."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from sqlalchemy.orm import Session

from appduka.api.deps import get_actor, get_db, get_storage
from appduka.config import settings
from appduka.errors import ValidationError
from appduka.schemas.catalog import CatalogEntryRead, DeleteResult, StatusUpdateRequest
from appduka.schemas.review import ReviewCreateRequest
from appduka.services.access import Actor
from appduka.services.catalog_service import CatalogService
from appduka.services.review_service import ReviewService
from appduka.services.storage import StorageClient
from appduka.services.submission_service import SubmissionService, UploadedFile

router = APIRouter(prefix="/apps", tags=["apps"])


def _read_upload(upload: UploadFile | None) -> UploadedFile | None:
    if upload is None or not upload.filename:
        return None
    limit = settings.max_upload_bytes
    if upload.size is not None and upload.size > limit:
        raise ValidationError(f"{upload.filename} is too large. Maximum size: {limit // 1024 // 1024}MB")
    content = upload.file.read(limit + 1)
    if len(content) > limit:
        raise ValidationError(f"{upload.filename} is too large. Maximum size: {limit // 1024 // 1024}MB")
    return UploadedFile(filename=upload.filename, content=content, content_type=upload.content_type)


def _read_uploads(uploads: list[UploadFile] | None) -> list[UploadedFile]:
    files = (_read_upload(u) for u in uploads or [])
    return [f for f in files if f is not None]


def _form_fields(**values: str | None) -> dict[str, str]:
    return {key: value for key, value in values.items() if value is not None}


@router.get("", response_model=list[CatalogEntryRead])
def list_apps(
    search: str | None = None,
    category: str | None = None,
    sort: str = "newest",
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    entries = CatalogService(db, actor).list_catalog(search=search, category=category, sort=sort)
    return [CatalogService.serialize_entry(entry) for entry in entries]


@router.get("/categories")
def list_categories(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return CatalogService(db, actor).list_categories()


@router.get("/{app_id}", response_model=CatalogEntryRead)
def get_app(app_id: UUID, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    entry = CatalogService(db, actor).require_entry(app_id)
    return CatalogService.serialize_entry(entry)


@router.post("", response_model=CatalogEntryRead, status_code=status.HTTP_201_CREATED)
def submit_app(
    name: str = Form(...),
    version: str | None = Form(None),
    category: str | None = Form(None),
    size: str | None = Form(None),
    short_description: str | None = Form(None),
    full_description: str | None = Form(None),
    icon: UploadFile | None = File(None),
    apk: UploadFile | None = File(None),
    screenshots: list[UploadFile] | None = File(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: StorageClient = Depends(get_storage),
):
    fields = _form_fields(
        name=name,
        version=version,
        category=category,
        size=size,
        short_description=short_description,
        full_description=full_description,
    )
    entry = SubmissionService(db, actor, storage).submit(
        fields,
        icon=_read_upload(icon),
        apk=_read_upload(apk),
        screenshots=_read_uploads(screenshots),
    )
    return CatalogService.serialize_entry(entry)


@router.patch("/{app_id}", response_model=CatalogEntryRead)
def edit_app(
    app_id: UUID,
    name: str | None = Form(None),
    version: str | None = Form(None),
    category: str | None = Form(None),
    size: str | None = Form(None),
    short_description: str | None = Form(None),
    full_description: str | None = Form(None),
    kept_screenshots: list[str] | None = Form(None),
    clear_screenshots: bool = Form(False),
    icon: UploadFile | None = File(None),
    apk: UploadFile | None = File(None),
    screenshots: list[UploadFile] | None = File(None),
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: StorageClient = Depends(get_storage),
):
    fields = _form_fields(
        name=name,
        version=version,
        category=category,
        size=size,
        short_description=short_description,
        full_description=full_description,
    )
    kept = [] if clear_screenshots else kept_screenshots
    entry = SubmissionService(db, actor, storage).edit(
        app_id,
        fields,
        icon=_read_upload(icon),
        apk=_read_upload(apk),
        new_screenshots=_read_uploads(screenshots),
        kept_screenshots=kept,
    )
    return CatalogService.serialize_entry(entry)


@router.delete("/{app_id}", response_model=DeleteResult)
def delete_app(
    app_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    storage: StorageClient = Depends(get_storage),
):
    return SubmissionService(db, actor, storage).remove(app_id)


@router.put("/{app_id}/status", response_model=CatalogEntryRead)
def set_app_status(
    app_id: UUID,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    entry = CatalogService(db, actor).set_catalog_entry_status(app_id, payload.status)
    db.commit()
    return CatalogService.serialize_entry(entry)


@router.get("/{app_id}/reviews")
def list_app_reviews(app_id: UUID, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    CatalogService(db, actor).require_entry(app_id)
    return ReviewService(db, actor).list_reviews_for_entry(app_id)


@router.post("/{app_id}/reviews", status_code=status.HTTP_201_CREATED)
def submit_app_review(
    app_id: UUID,
    payload: ReviewCreateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    review = ReviewService(db, actor).submit_review(app_id, payload.rating, payload.comment)
    db.commit()
    return ReviewService.serialize_review(review)
