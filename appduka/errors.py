import logging

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

SETUP_REMEDIATION = [
    "Run `alembic upgrade head` against DATABASE_URL to create the profiles, apps and reviews tables.",
    "Create a public storage bucket named after STORAGE_BUCKET in the hosted storage dashboard.",
    "Restart the service once the schema exists.",
]


class AppDukaError(Exception):
    code = "error"
    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: str | None = None, details=None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(AppDukaError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class SetupIncompleteError(AppDukaError):
    code = "setup_incomplete"
    status_code = 503
    default_message = "Database setup is incomplete"

    def __init__(self, message: str | None = None, details=None):
        super().__init__(message, details if details is not None else {"remediation": SETUP_REMEDIATION})


class ValidationError(AppDukaError, ValueError):
    code = "validation_error"
    status_code = 400
    default_message = "Validation error"


class AuthenticationError(AppDukaError):
    code = "unauthorized"
    status_code = 401
    default_message = "Unauthorized"


class PermissionDeniedError(AppDukaError):
    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class BackendUnavailableError(AppDukaError):
    code = "backend_unavailable"
    status_code = 502
    default_message = "Backend request failed"


class UploadFailedError(BackendUnavailableError):
    code = "upload_failed"
    default_message = "File upload failed"


class CleanupFailure(AppDukaError):
    """A best-effort file deletion failed. Logged, never rendered."""

    code = "cleanup_failed"
    default_message = "File cleanup failed"


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def translate_db_error(exc: SQLAlchemyError) -> AppDukaError:
    from appduka.services.setup_check import is_setup_error

    if is_setup_error(exc):
        return SetupIncompleteError()
    return BackendUnavailableError()


def register_error_handlers(app) -> None:
    @app.exception_handler(AppDukaError)
    async def app_error_handler(request: Request, exc: AppDukaError):
        if isinstance(exc, SetupIncompleteError):
            logger.error("Setup incomplete while serving %s: %s", request.url.path, exc.message)
        elif isinstance(exc, BackendUnavailableError):
            logger.warning("Backend failure on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(exc.code, exc.message, exc.details),
        )

    @app.exception_handler(SQLAlchemyError)
    async def db_error_handler(request: Request, exc: SQLAlchemyError):
        translated = translate_db_error(exc)
        if isinstance(translated, SetupIncompleteError):
            logger.error("Database objects missing while serving %s: %s", request.url.path, exc)
        else:
            logger.exception("Database error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=translated.status_code,
            content=_error_payload(translated.code, translated.message, translated.details),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        code = f"http_{exc.status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(code, message, details),
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=_error_payload("validation_error", "Validation error", jsonable_encoder(exc.errors())),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
