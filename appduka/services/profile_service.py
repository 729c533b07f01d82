"""Profile Service: self-service profile edits and admin account management."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from appduka.config import settings
from appduka.errors import NotFoundError, PermissionDeniedError, ValidationError, translate_db_error
from appduka.models.profile import Profile, ProfileRole
from appduka.services.access import Actor, Capability
from appduka.services.identity import IdentityClient

logger = logging.getLogger(__name__)

USERNAME_MAX_LENGTH = 120


def _coerce_role(value: ProfileRole | str) -> ProfileRole:
    if isinstance(value, ProfileRole):
        return value
    try:
        return ProfileRole(str(value))
    except ValueError as exc:
        allowed = ", ".join(r.value for r in ProfileRole)
        raise ValidationError(f"Invalid role '{value}'. Allowed: {allowed}") from exc


class ProfileService:
    def __init__(self, db: Session, actor: Actor):
        self.db = db
        self.actor = actor

    def _flush(self) -> None:
        try:
            self.db.flush()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise translate_db_error(exc) from exc

    def _require_self(self, identity_id: UUID) -> None:
        if not self.actor.is_authenticated or self.actor.identity_id != identity_id:
            raise PermissionDeniedError("You can only change your own profile")

    def get_profile(self, identity_id: UUID) -> Profile | None:
        try:
            return self.db.get(Profile, identity_id)
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc

    def _admin_exists(self) -> bool:
        stmt = select(Profile.id).where(Profile.role == ProfileRole.admin).limit(1)
        return self.db.scalar(stmt) is not None

    def bootstrap_profile(self, identity_id: UUID, email: str) -> Profile:
        """Create the missing profile for an identity that signed up before one existed.

        The very first profile of a fresh deployment becomes admin so somebody
        can moderate; every later one is a plain user.
        """
        self._require_self(identity_id)
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")
        existing = self.get_profile(identity_id)
        if existing:
            return existing
        role = ProfileRole.user
        if settings.bootstrap_admin_when_empty and not self._admin_exists():
            role = ProfileRole.admin
        profile = Profile(id=identity_id, email=email, role=role)
        self.db.add(profile)
        self._flush()
        logger.info("Bootstrapped profile %s with role %s", identity_id, role.value)
        return profile

    def update_own_username(self, identity_id: UUID, new_username: str | None) -> Profile:
        self._require_self(identity_id)
        profile = self.get_profile(identity_id)
        if not profile:
            raise NotFoundError("Profile not found")
        username = (new_username or "").strip() or None
        if username and len(username) > USERNAME_MAX_LENGTH:
            raise ValidationError(f"Username must be at most {USERNAME_MAX_LENGTH} characters")
        profile.username = username
        self._flush()
        return profile

    def list_profiles(self) -> list[Profile]:
        self.actor.require(Capability.manage_profiles)
        try:
            return list(self.db.scalars(select(Profile).order_by(Profile.email)).all())
        except SQLAlchemyError as exc:
            raise translate_db_error(exc) from exc

    def set_role(self, profile_id: UUID, role: ProfileRole | str) -> Profile:
        self.actor.require(Capability.manage_profiles)
        new_role = _coerce_role(role)
        profile = self.get_profile(profile_id)
        if not profile:
            raise NotFoundError("Profile not found")
        profile.role = new_role
        self._flush()
        logger.info("Profile %s role set to %s by %s", profile_id, new_role.value, self.actor.identity_id)
        return profile

    def delete_account(self, profile_id: UUID, identity: IdentityClient) -> None:
        """Remove the identity at the provider, then the profile and its reviews."""
        self.actor.require(Capability.delete_accounts)
        if self.actor.identity_id == profile_id:
            raise PermissionDeniedError("Admins cannot delete their own account")
        profile = self.get_profile(profile_id)
        if not profile:
            raise NotFoundError("Profile not found")
        identity.admin_delete_user(profile_id)
        self.db.delete(profile)
        self._flush()
        logger.info("Account %s deleted by %s", profile_id, self.actor.identity_id)

    @staticmethod
    def serialize_profile(profile: Profile) -> dict:
        return {
            "id": str(profile.id),
            "email": profile.email,
            "username": profile.username,
            "role": profile.role.value,
        }
