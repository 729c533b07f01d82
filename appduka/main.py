import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from appduka.api.ai import router as ai_router
from appduka.api.auth_flow import router as auth_flow_router
from appduka.api.catalog import router as catalog_router
from appduka.api.health import router as health_router
from appduka.api.me import router as me_router
from appduka.api.profiles import router as profiles_router
from appduka.config import settings
from appduka.db import get_engine
from appduka.errors import register_error_handlers
from appduka.logging import configure_logging
from appduka.observability import ObservabilityMiddleware
from appduka.services.ai_advisor import GeminiClient
from appduka.services.identity import AuthSession, IdentityClient
from appduka.services.setup_check import schema_status
from appduka.services.storage import StorageClient

logger = logging.getLogger(__name__)


def _log_auth_event(event: str, session: AuthSession | None) -> None:
    if session is None:
        logger.info("Auth state changed: %s", event)
    else:
        logger.info("Auth state changed: %s for %s", event, session.user_id)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.storage = StorageClient()
    app.state.identity = IdentityClient()
    app.state.ai = GeminiClient()
    unsubscribe = app.state.identity.on_auth_state_change(_log_auth_event)
    if not settings.testing:
        status = schema_status(get_engine())
        if not status["ready"]:
            logger.error("Starting with an incomplete schema; see /setup/status")
    try:
        yield
    finally:
        unsubscribe()
        app.state.storage.close()
        app.state.identity.close()
        app.state.ai.close()


app = FastAPI(title=f"{settings.brand_name} API", lifespan=lifespan)

configure_logging()
app.add_middleware(ObservabilityMiddleware)
register_error_handlers(app)


def _include_api_router(router, dependencies=None):
    app.include_router(router, dependencies=dependencies)
    app.include_router(router, prefix="/api/v1", dependencies=dependencies)


_include_api_router(auth_flow_router)
_include_api_router(me_router)
_include_api_router(catalog_router)
_include_api_router(profiles_router)
_include_api_router(ai_router)
_include_api_router(health_router)


@app.get("/metrics")
def metrics():
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
