"""Identity provider client: sessions, password reset and account deletion.

Credentials never touch this service's database; the hosted auth API owns
them. Access tokens it issues are HS256 JWTs verified locally with the shared
secret.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass

import httpx
import jwt
from jwt.exceptions import PyJWTError

from appduka.config import settings
from appduka.errors import AuthenticationError, BackendUnavailableError, ValidationError

logger = logging.getLogger(__name__)

SIGNED_IN = "SIGNED_IN"
SIGNED_UP = "SIGNED_UP"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthSession:
    user_id: uuid.UUID
    email: str | None
    access_token: str | None = None
    refresh_token: str | None = None
    expires_in: int | None = None

    def to_dict(self) -> dict:
        return {
            "user_id": str(self.user_id),
            "email": self.email,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_in": self.expires_in,
        }


AuthListener = Callable[[str, AuthSession | None], None]


def _provider_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for key in ("error_description", "msg", "message", "error"):
            if body.get(key):
                return str(body[key])
    return f"HTTP {resp.status_code}"


def _session_from_payload(payload: dict) -> AuthSession:
    user = payload.get("user") or payload
    user_id = user.get("id")
    if not user_id:
        raise BackendUnavailableError("Identity provider returned no user")
    return AuthSession(
        user_id=uuid.UUID(str(user_id)),
        email=user.get("email"),
        access_token=payload.get("access_token"),
        refresh_token=payload.get("refresh_token"),
        expires_in=payload.get("expires_in"),
    )


class IdentityClient:
    def __init__(
        self,
        base_url: str | None = None,
        anon_key: str | None = None,
        service_role_key: str | None = None,
        jwt_secret: str | None = None,
        http: httpx.Client | None = None,
    ):
        self.base_url = (base_url or settings.supabase_url).rstrip("/") + "/auth/v1"
        self._anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self._service_key = service_role_key if service_role_key is not None else settings.supabase_service_role_key
        self._jwt_secret = jwt_secret if jwt_secret is not None else settings.supabase_jwt_secret
        self._http = http or httpx.Client(timeout=settings.http_timeout_seconds)
        self._listeners: list[AuthListener] = []

    # Change notifications
    def on_auth_state_change(self, listener: AuthListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _notify(self, event: str, session: AuthSession | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(event, session)
            except Exception:
                logger.exception("Auth listener failed for %s", event)

    def _request(self, method: str, path: str, *, key: str, bearer: str | None = None, **kwargs) -> httpx.Response:
        headers = {"apikey": key, "Authorization": f"Bearer {bearer or key}"}
        try:
            return self._http.request(method, f"{self.base_url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise BackendUnavailableError(f"Identity provider unreachable: {exc}") from exc

    # Sessions
    def sign_up(self, email: str, password: str) -> AuthSession:
        resp = self._request("POST", "/signup", key=self._anon_key, json={"email": email, "password": password})
        if resp.status_code >= 500:
            raise BackendUnavailableError(_provider_message(resp))
        if resp.status_code >= 400:
            raise ValidationError(_provider_message(resp))
        session = _session_from_payload(resp.json())
        self._notify(SIGNED_UP, session)
        return session

    def sign_in(self, email: str, password: str) -> AuthSession:
        resp = self._request(
            "POST",
            "/token",
            key=self._anon_key,
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        if resp.status_code >= 500:
            raise BackendUnavailableError(_provider_message(resp))
        if resp.status_code >= 400:
            raise AuthenticationError(_provider_message(resp))
        session = _session_from_payload(resp.json())
        self._notify(SIGNED_IN, session)
        return session

    def sign_out(self, access_token: str) -> None:
        resp = self._request("POST", "/logout", key=self._anon_key, bearer=access_token)
        if resp.status_code >= 500:
            raise BackendUnavailableError(_provider_message(resp))
        # An already-expired token is as signed out as it gets.
        if resp.status_code >= 400 and resp.status_code != 401:
            raise ValidationError(_provider_message(resp))
        self._notify(SIGNED_OUT, None)

    def get_user(self, access_token: str) -> AuthSession | None:
        resp = self._request("GET", "/user", key=self._anon_key, bearer=access_token)
        if resp.status_code in (401, 403):
            return None
        if resp.status_code >= 400:
            raise BackendUnavailableError(_provider_message(resp))
        return _session_from_payload(resp.json())

    def send_password_reset(self, email: str, redirect_to: str | None = None) -> None:
        params = {}
        redirect = redirect_to or settings.password_reset_redirect_url
        if redirect:
            params["redirect_to"] = redirect
        resp = self._request("POST", "/recover", key=self._anon_key, params=params, json={"email": email})
        if resp.status_code >= 500:
            raise BackendUnavailableError(_provider_message(resp))
        if resp.status_code >= 400:
            raise ValidationError(_provider_message(resp))

    def admin_delete_user(self, user_id: uuid.UUID) -> None:
        resp = self._request("DELETE", f"/admin/users/{user_id}", key=self._service_key)
        if resp.status_code == 404:
            logger.info("Identity %s already absent at provider", user_id)
            return
        if resp.status_code >= 400:
            raise BackendUnavailableError(_provider_message(resp))

    # Token verification
    def decode_access_token(self, token: str) -> dict:
        if not self._jwt_secret:
            raise AuthenticationError("Token verification is not configured")
        try:
            return jwt.decode(
                token,
                self._jwt_secret,
                algorithms=["HS256"],
                audience=settings.jwt_audience,
            )
        except PyJWTError as exc:
            raise AuthenticationError("Invalid or expired token") from exc

    def close(self) -> None:
        self._http.close()
