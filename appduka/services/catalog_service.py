"""Catalog Service: app records with their live rating aggregate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appduka.errors import NotFoundError, ValidationError, translate_db_error
from appduka.metrics import STATUS_CHANGES
from appduka.models.catalog import AppStatus, CatalogApp
from appduka.models.review import Review
from appduka.services.access import Actor, Capability

logger = logging.getLogger(__name__)

SORT_OPTIONS = ("newest", "rating", "reviews")

_WRITABLE_FIELDS = {
    "name",
    "version",
    "category",
    "size",
    "icon_url",
    "apk_url",
    "short_description",
    "full_description",
    "screenshots",
}
_IMMUTABLE_FIELDS = {"id", "created_at"}
_DERIVED_FIELDS = {"average_rating", "review_count"}


@dataclass
class CatalogEntry:
    app: CatalogApp
    average_rating: float = 0.0
    review_count: int = 0


def _average_column():
    return func.coalesce(func.avg(Review.rating), 0)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _coerce_status(value: AppStatus | str) -> AppStatus:
    if isinstance(value, AppStatus):
        return value
    try:
        return AppStatus(str(value))
    except ValueError as exc:
        allowed = ", ".join(s.value for s in AppStatus)
        raise ValidationError(f"Invalid status '{value}'. Allowed: {allowed}") from exc


class CatalogService:
    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor

    def _rated_query(self):
        average = _average_column()
        review_count = func.count(Review.id)
        stmt = (
            select(CatalogApp, average.label("average_rating"), review_count.label("review_count"))
            .outerjoin(Review, Review.app_id == CatalogApp.id)
            .group_by(CatalogApp.id)
        )
        statuses = self.actor.visible_statuses()
        if statuses is not None:
            stmt = stmt.where(CatalogApp.status.in_(list(statuses)))
        return stmt, average, review_count

    def _execute(self, stmt) -> list[Any]:
        try:
            return list(self.db.execute(stmt).all())
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise translate_db_error(exc) from exc

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise translate_db_error(exc) from exc

    @staticmethod
    def _entry(row) -> CatalogEntry:
        app, average, count = row
        return CatalogEntry(app=app, average_rating=float(average or 0), review_count=int(count or 0))

    # Reads
    def list_catalog(
        self,
        search: str | None = None,
        category: str | None = None,
        sort: str = "newest",
    ) -> list[CatalogEntry]:
        if sort not in SORT_OPTIONS:
            raise ValidationError(f"Invalid sort. Allowed: {', '.join(SORT_OPTIONS)}")
        stmt, average, review_count = self._rated_query()
        if search and search.strip():
            q = _like_pattern(search.strip())
            stmt = stmt.where(or_(CatalogApp.name.ilike(q, escape="\\"), CatalogApp.category.ilike(q, escape="\\")))
        if category and category.strip():
            stmt = stmt.where(CatalogApp.category == category.strip())
        if sort == "rating":
            stmt = stmt.order_by(average.desc(), CatalogApp.created_at.desc())
        elif sort == "reviews":
            stmt = stmt.order_by(review_count.desc(), CatalogApp.created_at.desc())
        else:
            stmt = stmt.order_by(CatalogApp.created_at.desc())
        return [self._entry(row) for row in self._execute(stmt)]

    def list_categories(self) -> list[str]:
        stmt = select(CatalogApp.category).where(CatalogApp.category.is_not(None)).distinct()
        statuses = self.actor.visible_statuses()
        if statuses is not None:
            stmt = stmt.where(CatalogApp.status.in_(list(statuses)))
        rows = self._execute(stmt)
        return sorted({row[0].strip() for row in rows if row[0] and row[0].strip()})

    def get_catalog_entry(self, app_id: UUID) -> CatalogEntry | None:
        stmt, _, _ = self._rated_query()
        rows = self._execute(stmt.where(CatalogApp.id == app_id))
        if not rows:
            return None
        return self._entry(rows[0])

    def require_entry(self, app_id: UUID) -> CatalogEntry:
        entry = self.get_catalog_entry(app_id)
        if entry is None:
            raise NotFoundError("App not found")
        return entry

    # Writes
    def create_catalog_entry(self, fields: dict[str, Any]) -> CatalogEntry:
        self.actor.require(Capability.manage_entries)
        data = self.validate_fields(fields)
        name = (data.get("name") or "").strip()
        if not name:
            raise ValidationError("App name is required")
        data["name"] = name
        data["screenshots"] = list(data.get("screenshots") or [])
        app = CatalogApp(**data, status=AppStatus.pending)
        self.db.add(app)
        self._flush()
        logger.info("App %s (%s) submitted by %s", app.id, app.name, self.actor.identity_id)
        return CatalogEntry(app=app)

    def update_catalog_entry(self, app_id: UUID, partial_fields: dict[str, Any]) -> CatalogEntry:
        self.actor.require(Capability.manage_entries)
        data = self.validate_fields(partial_fields)
        app = self.db.get(CatalogApp, app_id)
        if not app:
            raise NotFoundError("App not found")
        if "name" in data:
            name = (data["name"] or "").strip()
            if not name:
                raise ValidationError("App name is required")
            data["name"] = name
        if "screenshots" in data:
            data["screenshots"] = list(data["screenshots"] or [])
        for key, value in data.items():
            setattr(app, key, value)
        self._flush()
        return self.require_entry(app_id)

    def set_catalog_entry_status(self, app_id: UUID, status: AppStatus | str) -> CatalogEntry:
        self.actor.require(Capability.change_status)
        new_status = _coerce_status(status)
        app = self.db.get(CatalogApp, app_id)
        if not app:
            raise NotFoundError("App not found")
        previous = app.status
        app.status = new_status
        self._flush()
        STATUS_CHANGES.labels(status=new_status.value).inc()
        logger.info("App %s moved %s -> %s by %s", app_id, previous.value, new_status.value, self.actor.identity_id)
        return self.require_entry(app_id)

    def delete_catalog_entry(self, app_id: UUID) -> CatalogApp:
        """Delete the record; its reviews go with it. Returns the removed row."""
        self.actor.require(Capability.manage_entries)
        app = self.db.get(CatalogApp, app_id)
        if not app:
            raise NotFoundError("App not found")
        self.db.delete(app)
        self._flush()
        logger.info("App %s deleted by %s", app_id, self.actor.identity_id)
        return app

    @staticmethod
    def validate_fields(fields: dict[str, Any]) -> dict[str, Any]:
        forbidden = sorted(set(fields) & (_IMMUTABLE_FIELDS | _DERIVED_FIELDS))
        if forbidden:
            raise ValidationError(f"Fields cannot be set: {', '.join(forbidden)}")
        if "status" in fields:
            raise ValidationError("Status changes go through the moderation endpoint")
        unknown = sorted(set(fields) - _WRITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Unknown fields: {', '.join(unknown)}")
        return dict(fields)

    @staticmethod
    def serialize_entry(entry: CatalogEntry) -> dict:
        app = entry.app
        return {
            "id": str(app.id),
            "created_at": app.created_at.isoformat() if app.created_at else None,
            "name": app.name,
            "version": app.version,
            "category": app.category,
            "size": app.size,
            "icon_url": app.icon_url,
            "apk_url": app.apk_url,
            "short_description": app.short_description,
            "full_description": app.full_description,
            "screenshots": list(app.screenshots or []),
            "status": app.status.value,
            "average_rating": entry.average_rating,
            "review_count": entry.review_count,
        }
