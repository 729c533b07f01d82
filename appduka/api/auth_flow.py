"""Auth API: thin pass-through to the hosted identity provider."""

from fastapi import APIRouter, Depends, Request, status

from appduka.api.deps import get_access_token, get_identity
from appduka.errors import AuthenticationError
from appduka.rate_limit import password_reset_limiter, sign_in_limiter, sign_up_limiter
from appduka.schemas.auth import CredentialsRequest, MessageResponse, PasswordResetRequest, SessionResponse
from appduka.services.identity import IdentityClient

router = APIRouter(prefix="/auth", tags=["auth"])


def _normalize_email(email: str) -> str:
    return email.strip().lower()


@router.post("/sign-up", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def sign_up(payload: CredentialsRequest, request: Request, identity: IdentityClient = Depends(get_identity)):
    sign_up_limiter.check(request)
    session = identity.sign_up(_normalize_email(payload.email), payload.password)
    return session.to_dict()


@router.post("/sign-in", response_model=SessionResponse)
def sign_in(payload: CredentialsRequest, request: Request, identity: IdentityClient = Depends(get_identity)):
    sign_in_limiter.check(request)
    session = identity.sign_in(_normalize_email(payload.email), payload.password)
    return session.to_dict()


@router.post("/sign-out", response_model=MessageResponse)
def sign_out(
    token: str | None = Depends(get_access_token),
    identity: IdentityClient = Depends(get_identity),
):
    if not token:
        raise AuthenticationError("Sign in required")
    identity.sign_out(token)
    return {"message": "Signed out"}


@router.post("/password-reset", response_model=MessageResponse, status_code=status.HTTP_202_ACCEPTED)
def request_password_reset(
    payload: PasswordResetRequest,
    request: Request,
    identity: IdentityClient = Depends(get_identity),
):
    password_reset_limiter.check(request)
    identity.send_password_reset(_normalize_email(payload.email), payload.redirect_to)
    return {"message": "If the account exists, a reset link has been sent"}
