from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from appduka.api.deps import get_actor, get_db, require_authenticated
from appduka.errors import ValidationError
from appduka.schemas.profile import ProfileRead, UsernameUpdateRequest
from appduka.services.access import Actor, capability_names
from appduka.services.profile_service import ProfileService
from appduka.services.review_service import ReviewService

router = APIRouter(prefix="/me", tags=["me"])


@router.get("")
def read_me(actor: Actor = Depends(get_actor)):
    profile = ProfileService.serialize_profile(actor.profile) if actor.profile else None
    return {
        "identity_id": str(actor.identity_id) if actor.identity_id else None,
        "email": actor.email,
        "role": actor.role,
        "profile": profile,
    }


@router.get("/capabilities")
def read_my_capabilities(actor: Actor = Depends(get_actor)):
    return {"role": actor.role, "capabilities": capability_names(actor)}


@router.post("/profile", response_model=ProfileRead, status_code=status.HTTP_201_CREATED)
def bootstrap_my_profile(
    actor: Actor = Depends(require_authenticated),
    db: Session = Depends(get_db),
):
    if not actor.email:
        raise ValidationError("Token carries no email; sign in again")
    profile = ProfileService(db, actor).bootstrap_profile(actor.identity_id, actor.email)
    db.commit()
    return ProfileService.serialize_profile(profile)


@router.patch("/profile", response_model=ProfileRead)
def update_my_username(
    payload: UsernameUpdateRequest,
    actor: Actor = Depends(require_authenticated),
    db: Session = Depends(get_db),
):
    profile = ProfileService(db, actor).update_own_username(actor.identity_id, payload.username)
    db.commit()
    return ProfileService.serialize_profile(profile)


@router.get("/reviews")
def list_my_reviews(
    actor: Actor = Depends(require_authenticated),
    db: Session = Depends(get_db),
):
    return ReviewService(db, actor).list_reviews_for_user(actor.identity_id)
