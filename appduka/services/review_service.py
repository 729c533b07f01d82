"""Review Service: one rating per user per app, feeding the catalog aggregate."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from appduka.errors import NotFoundError, ValidationError, translate_db_error
from appduka.metrics import REVIEWS_SUBMITTED
from appduka.models.catalog import CatalogApp
from appduka.models.profile import Profile
from appduka.models.review import Review
from appduka.services.access import Actor, Capability
from appduka.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)

UNKNOWN_REVIEWER = "Mtumiaji asiyejulikana"
MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be a whole number between 1 and 5")
    if rating < MIN_RATING or rating > MAX_RATING:
        raise ValidationError("Rating must be between 1 and 5")
    return rating


class ReviewService:
    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor

    def submit_review(self, app_id: UUID, rating: int, comment: str | None = None) -> Review:
        """Create the actor's review for an app, or replace the one they already left."""
        self.actor.require(Capability.write_review)
        rating = validate_rating(rating)
        if self.actor.profile is None:
            raise NotFoundError("Profile not found; create your profile before reviewing")
        CatalogService(self.db, self.actor).require_entry(app_id)

        user_id = self.actor.profile.id
        comment = (comment or "").strip() or None
        existing = self._find_review(app_id, user_id)
        try:
            if existing:
                review = self._replace(existing, rating, comment)
                outcome = "replaced"
            else:
                review = Review(app_id=app_id, user_id=user_id, rating=rating, comment=comment)
                self.db.add(review)
                outcome = "created"
            self.db.flush()
        except IntegrityError as exc:
            # a concurrent first review from the same user won the insert
            self.db.rollback()
            existing = self._find_review(app_id, user_id)
            if existing is None:
                raise translate_db_error(exc) from exc
            review = self._replace(existing, rating, comment)
            outcome = "replaced"
            try:
                self.db.flush()
            except SQLAlchemyError as retry_exc:
                self.db.rollback()
                raise translate_db_error(retry_exc) from retry_exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise translate_db_error(exc) from exc
        REVIEWS_SUBMITTED.labels(outcome=outcome).inc()
        logger.info("Review %s %s for app %s by %s", review.id, outcome, app_id, user_id)
        return review

    def _find_review(self, app_id: UUID, user_id: UUID) -> Review | None:
        return self.db.scalar(select(Review).where(Review.app_id == app_id).where(Review.user_id == user_id))

    @staticmethod
    def _replace(review: Review, rating: int, comment: str | None) -> Review:
        review.rating = rating
        review.comment = comment
        return review

    def list_reviews_for_entry(self, app_id: UUID) -> list[dict]:
        stmt = (
            select(Review, Profile.email)
            .join(CatalogApp, CatalogApp.id == Review.app_id)
            .outerjoin(Profile, Profile.id == Review.user_id)
            .where(Review.app_id == app_id)
            .order_by(Review.created_at.desc())
        )
        statuses = self.actor.visible_statuses()
        if statuses is not None:
            stmt = stmt.where(CatalogApp.status.in_(list(statuses)))
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        return [self.serialize_review(review, user_email=email or UNKNOWN_REVIEWER) for review, email in rows]

    def list_reviews_for_user(self, user_id: UUID) -> list[dict]:
        if self.actor.identity_id != user_id:
            self.actor.require(Capability.manage_profiles)
        join_on = CatalogApp.id == Review.app_id
        statuses = self.actor.visible_statuses()
        if statuses is not None:
            join_on = and_(join_on, CatalogApp.status.in_(list(statuses)))
        stmt = (
            select(Review, CatalogApp.id, CatalogApp.name, CatalogApp.icon_url)
            .outerjoin(CatalogApp, join_on)
            .where(Review.user_id == user_id)
            .order_by(Review.created_at.desc())
        )
        try:
            rows = self.db.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc
        results = []
        for review, app_id, app_name, icon_url in rows:
            if app_id is None:
                continue
            item = self.serialize_review(review)
            item["app"] = {"id": str(app_id), "name": app_name, "icon_url": icon_url}
            results.append(item)
        return results

    @staticmethod
    def serialize_review(review: Review, user_email: str | None = None) -> dict:
        data = {
            "id": str(review.id),
            "app_id": str(review.app_id),
            "user_id": str(review.user_id),
            "rating": review.rating,
            "comment": review.comment,
            "created_at": review.created_at.isoformat() if review.created_at else None,
        }
        if user_email is not None:
            data["user_email"] = user_email
        return data
