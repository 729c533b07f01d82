import uuid

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from appduka.db import SessionLocal
from appduka.errors import AuthenticationError
from appduka.services.access import ANONYMOUS, Actor
from appduka.services.ai_advisor import GeminiClient
from appduka.services.identity import IdentityClient
from appduka.services.profile_service import ProfileService
from appduka.services.storage import StorageClient

_bearer = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage(request: Request) -> StorageClient:
    return request.app.state.storage


def get_identity(request: Request) -> IdentityClient:
    return request.app.state.identity


def get_ai(request: Request) -> GeminiClient:
    return request.app.state.ai


def get_access_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> str | None:
    if credentials is None:
        return None
    return credentials.credentials


def get_actor(
    token: str | None = Depends(get_access_token),
    db: Session = Depends(get_db),
    identity: IdentityClient = Depends(get_identity),
) -> Actor:
    """Resolve the bearer token to an actor; no token means a visitor."""
    if not token:
        return ANONYMOUS
    claims = identity.decode_access_token(token)
    try:
        identity_id = uuid.UUID(str(claims.get("sub")))
    except ValueError as exc:
        raise AuthenticationError("Token has no valid subject") from exc
    profile = ProfileService(db, ANONYMOUS).get_profile(identity_id)
    return Actor(identity_id=identity_id, email=claims.get("email"), profile=profile)


def require_authenticated(actor: Actor = Depends(get_actor)) -> Actor:
    if not actor.is_authenticated:
        raise AuthenticationError("Sign in required")
    return actor


__all__ = [
    "get_access_token",
    "get_actor",
    "get_ai",
    "get_db",
    "get_identity",
    "get_storage",
    "require_authenticated",
]
