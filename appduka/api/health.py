import logging
from datetime import UTC, datetime

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from appduka.db import get_engine
from appduka.services.setup_check import schema_status

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health_check():
    checks = {"db": False, "schema": False}
    engine = get_engine()
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        checks["db"] = True
        checks["schema"] = schema_status(engine)["ready"]
    except SQLAlchemyError as exc:
        logger.warning("Health check could not reach the database: %s", exc)
    return {
        "status": "ok" if all(checks.values()) else "degraded",
        "checks": checks,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@router.get("/setup/status")
def setup_status():
    """Tell an operator whether the schema exists and what to run if not."""
    return schema_status(get_engine())
