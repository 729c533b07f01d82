"""Access Control Gate: one capability table consulted by every service."""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass

from appduka.errors import AuthenticationError, PermissionDeniedError
from appduka.models.catalog import AppStatus
from appduka.models.profile import Profile, ProfileRole

VISITOR = "visitor"


class Capability(enum.Enum):
    view_approved = "view_approved"
    view_unpublished = "view_unpublished"
    manage_entries = "manage_entries"
    change_status = "change_status"
    write_review = "write_review"
    manage_profiles = "manage_profiles"
    delete_accounts = "delete_accounts"


CAPABILITY_TABLE: dict[str, frozenset[Capability]] = {
    VISITOR: frozenset({Capability.view_approved}),
    ProfileRole.user.value: frozenset({Capability.view_approved, Capability.write_review}),
    ProfileRole.developer.value: frozenset(
        {
            Capability.view_approved,
            Capability.view_unpublished,
            Capability.manage_entries,
            Capability.write_review,
        }
    ),
    ProfileRole.admin.value: frozenset(Capability),
}


@dataclass(frozen=True)
class Actor:
    """Whoever is behind the current request.

    ``identity_id`` is None for visitors. An authenticated identity without a
    profile row yet is treated as a plain user until it bootstraps one.
    """

    identity_id: uuid.UUID | None = None
    email: str | None = None
    profile: Profile | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.identity_id is not None

    @property
    def role(self) -> str:
        if not self.is_authenticated:
            return VISITOR
        if self.profile is None:
            return ProfileRole.user.value
        return self.profile.role.value

    @property
    def capabilities(self) -> frozenset[Capability]:
        return CAPABILITY_TABLE[self.role]

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if self.can(capability):
            return
        if not self.is_authenticated:
            raise AuthenticationError("Sign in required")
        raise PermissionDeniedError(f"Role '{self.role}' lacks '{capability.value}'")

    def visible_statuses(self) -> set[AppStatus] | None:
        """Statuses this actor may read, or None when every status is visible."""
        if self.can(Capability.view_unpublished):
            return None
        return {AppStatus.approved}


ANONYMOUS = Actor()


def capability_names(actor: Actor) -> list[str]:
    return sorted(cap.value for cap in actor.capabilities)
