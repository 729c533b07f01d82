import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from appduka.metrics import REQUEST_COUNT, REQUEST_ERRORS, REQUEST_LATENCY

logger = logging.getLogger(__name__)


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Record request count, latency and 5xx responses per route template."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed = time.perf_counter() - start
            labels = {"method": request.method, "path": _route_path(request), "status": str(status_code)}
            REQUEST_COUNT.labels(**labels).inc()
            REQUEST_LATENCY.labels(**labels).observe(elapsed)
            if status_code >= 500:
                REQUEST_ERRORS.labels(**labels).inc()
                logger.warning(
                    "%s %s -> %s in %.3fs",
                    request.method,
                    request.url.path,
                    status_code,
                    elapsed,
                    extra={"method": request.method, "path": request.url.path, "status": status_code},
                )
