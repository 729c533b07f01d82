import asyncio
import os
import uuid
from datetime import UTC, datetime, timedelta

# Settings are read at import time; point them at an in-memory database first.
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-for-hs256")
os.environ.setdefault("GEMINI_API_KEY", "gemini-test-key")
os.environ.pop("REDIS_URL", None)

import fastapi.dependencies.utils as fastapi_deps_utils  # noqa: E402
import fastapi.routing as fastapi_routing  # noqa: E402
import httpx  # noqa: E402
import jwt  # noqa: E402
import pytest  # noqa: E402
import starlette.concurrency as starlette_concurrency  # noqa: E402
import starlette.routing as starlette_routing  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from appduka.config import settings  # noqa: E402
from appduka.db import Base, get_engine  # noqa: E402
from appduka.models.catalog import AppStatus, CatalogApp  # noqa: E402
from appduka.models.profile import Profile, ProfileRole  # noqa: E402
from appduka.models.review import Review  # noqa: E402
from appduka.services.access import Actor  # noqa: E402
from appduka.services.identity import IdentityClient  # noqa: E402
from appduka.services.storage import StorageError, StorageObjectNotFound  # noqa: E402


async def _patched_run_in_threadpool(func, *args, **kwargs):
    """Run inline in tests so sqlite and the session stay on one thread."""
    return func(*args, **kwargs)


starlette_concurrency.run_in_threadpool = _patched_run_in_threadpool
starlette_routing.run_in_threadpool = _patched_run_in_threadpool
fastapi_routing.run_in_threadpool = _patched_run_in_threadpool
fastapi_deps_utils.run_in_threadpool = _patched_run_in_threadpool


class SyncASGIClient:
    def __init__(self, app):
        self._app = app

    async def _request(self, method: str, url: str, **kwargs):
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=self._app, raise_app_exceptions=False),
            base_url="http://testserver",
        ) as client:
            return await client.request(method, url, **kwargs)

    def request(self, method: str, url: str, **kwargs):
        return asyncio.run(self._request(method, url, **kwargs))

    def get(self, url: str, **kwargs):
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs):
        return self.request("POST", url, **kwargs)

    def put(self, url: str, **kwargs):
        return self.request("PUT", url, **kwargs)

    def patch(self, url: str, **kwargs):
        return self.request("PATCH", url, **kwargs)

    def delete(self, url: str, **kwargs):
        return self.request("DELETE", url, **kwargs)


STORAGE_BASE = "https://project.supabase.test"


class FakeStorage:
    """In-memory stand-in for the storage REST API that records call order."""

    bucket = "app_files"

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.events: list[tuple[str, str]] = []
        self.fail_uploads_matching: set[str] = set()
        self.fail_removes_matching: set[str] = set()

    def public_url(self, path: str) -> str:
        return f"{STORAGE_BASE}/storage/v1/object/public/{self.bucket}/{path}"

    def upload(self, path: str, content: bytes, content_type: str | None = None) -> None:
        if any(marker in path for marker in self.fail_uploads_matching):
            self.events.append(("upload_failed", path))
            raise StorageError(f"Upload of {path} rejected", 500)
        self.objects[path] = content
        self.events.append(("upload", path))

    def remove(self, path: str) -> None:
        self.events.append(("remove", path))
        if any(marker in path for marker in self.fail_removes_matching):
            raise StorageError(f"Delete of {path} rejected", 500)
        if path not in self.objects:
            raise StorageObjectNotFound(f"{path} not found", 404)
        del self.objects[path]

    def close(self) -> None:
        return None


class FakeGemini:
    def __init__(self, answer: str = "Jibu la majaribio"):
        self.answer = answer
        self.prompts: list[str] = []
        self.error: Exception | None = None

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.answer

    def close(self) -> None:
        return None


def create_access_token(user_id: uuid.UUID, email: str, audience: str = "authenticated") -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": audience,
        "role": "authenticated",
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=15)).timestamp()),
    }
    return str(jwt.encode(payload, settings.supabase_jwt_secret, algorithm="HS256"))


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex[:10]}@example.com"


@pytest.fixture()
def db_session():
    engine = get_engine()
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = Session()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _reset_rate_limiters():
    from appduka.rate_limit import ALL_LIMITERS

    for limiter in ALL_LIMITERS:
        limiter.reset()


@pytest.fixture()
def make_profile(db_session):
    def _make(role: ProfileRole = ProfileRole.user, email: str | None = None, username: str | None = None):
        profile = Profile(id=uuid.uuid4(), email=email or _unique_email(), username=username, role=role)
        db_session.add(profile)
        db_session.commit()
        return profile

    return _make


@pytest.fixture()
def make_app(db_session):
    def _make(name: str = "Kalenda", status: AppStatus = AppStatus.approved, **fields):
        app = CatalogApp(
            name=name,
            status=status,
            category=fields.pop("category", "Tools"),
            screenshots=fields.pop("screenshots", []),
            **fields,
        )
        db_session.add(app)
        db_session.commit()
        return app

    return _make


@pytest.fixture()
def make_review(db_session):
    def _make(app: CatalogApp, profile: Profile, rating: int, comment: str | None = None):
        review = Review(app_id=app.id, user_id=profile.id, rating=rating, comment=comment)
        db_session.add(review)
        db_session.commit()
        return review

    return _make


def actor_for(profile: Profile | None) -> Actor:
    if profile is None:
        return Actor()
    return Actor(identity_id=profile.id, email=profile.email, profile=profile)


@pytest.fixture()
def user(make_profile):
    return make_profile(ProfileRole.user)


@pytest.fixture()
def developer(make_profile):
    return make_profile(ProfileRole.developer)


@pytest.fixture()
def admin(make_profile):
    return make_profile(ProfileRole.admin)


@pytest.fixture()
def storage():
    return FakeStorage()


@pytest.fixture()
def gemini():
    return FakeGemini()


@pytest.fixture()
def identity_requests():
    return []


@pytest.fixture()
def identity(identity_requests):
    """Real identity client over an in-process transport standing in for the auth API."""

    def handler(request: httpx.Request) -> httpx.Response:
        identity_requests.append(request)
        path = request.url.path
        if "/admin/users/" in path and request.method == "DELETE":
            return httpx.Response(200, json={})
        if path.endswith("/token"):
            return httpx.Response(
                200,
                json={
                    "access_token": "provider-access-token",
                    "refresh_token": "provider-refresh-token",
                    "expires_in": 3600,
                    "user": {"id": str(uuid.UUID(int=7)), "email": "mtumiaji@example.com"},
                },
            )
        if path.endswith("/signup"):
            return httpx.Response(200, json={"id": str(uuid.UUID(int=8)), "email": "mpya@example.com"})
        if path.endswith("/logout") or path.endswith("/recover"):
            return httpx.Response(204)
        return httpx.Response(404, json={"msg": "not found"})

    client = IdentityClient(http=httpx.Client(transport=httpx.MockTransport(handler)))
    yield client
    client.close()


@pytest.fixture()
def client(db_session, storage, identity, gemini):
    from appduka.api import deps
    from appduka.main import app

    def override_get_db():
        return db_session

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_storage] = lambda: storage
    app.dependency_overrides[deps.get_identity] = lambda: identity
    app.dependency_overrides[deps.get_ai] = lambda: gemini
    try:
        yield SyncASGIClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    def _headers(profile: Profile) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(profile.id, profile.email)}"}

    return _headers
