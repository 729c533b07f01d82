from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from appduka.api.deps import get_actor, get_db, get_identity
from appduka.schemas.profile import ProfileRead, RoleUpdateRequest
from appduka.services.access import Actor
from appduka.services.identity import IdentityClient
from appduka.services.profile_service import ProfileService
from appduka.services.review_service import ReviewService

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("", response_model=list[ProfileRead])
def list_profiles(db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return [ProfileService.serialize_profile(p) for p in ProfileService(db, actor).list_profiles()]


@router.get("/{profile_id}/reviews")
def list_profile_reviews(profile_id: UUID, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return ReviewService(db, actor).list_reviews_for_user(profile_id)


@router.put("/{profile_id}/role", response_model=ProfileRead)
def set_profile_role(
    profile_id: UUID,
    payload: RoleUpdateRequest,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    profile = ProfileService(db, actor).set_role(profile_id, payload.role)
    db.commit()
    return ProfileService.serialize_profile(profile)


@router.delete("/{profile_id}")
def delete_profile(
    profile_id: UUID,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    identity: IdentityClient = Depends(get_identity),
):
    ProfileService(db, actor).delete_account(profile_id, identity)
    db.commit()
    return {"deleted": str(profile_id)}
