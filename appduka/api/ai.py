from uuid import UUID

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from appduka.api.deps import get_actor, get_ai, get_db
from appduka.rate_limit import ai_limiter
from appduka.schemas.ai import AdviceResponse, RecommendationRequest
from appduka.services import ai_advisor
from appduka.services.access import Actor, Capability
from appduka.services.catalog_service import CatalogService

router = APIRouter(tags=["ai"])


@router.post("/ai/recommend", response_model=AdviceResponse)
def recommend(
    payload: RecommendationRequest,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ai: ai_advisor.GeminiClient = Depends(get_ai),
):
    ai_limiter.check(request)
    apps = [entry.app for entry in CatalogService(db, actor).list_catalog()]
    return {"text": ai_advisor.recommend_apps(ai, payload.query.strip(), apps)}


@router.post("/apps/{app_id}/ai-analysis", response_model=AdviceResponse)
def analyze(
    app_id: UUID,
    request: Request,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
    ai: ai_advisor.GeminiClient = Depends(get_ai),
):
    actor.require(Capability.manage_entries)
    ai_limiter.check(request)
    entry = CatalogService(db, actor).require_entry(app_id)
    return {"text": ai_advisor.analyze_app(ai, entry.app)}
