import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import settings
from app.utils.response import error_response

logger = logging.getLogger(__name__)


class AppException(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, status_code: int | None = None, code: str | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code


class Unauthenticated(AppException):
    status_code = 401
    code = "unauthenticated"


class Forbidden(AppException):
    status_code = 403
    code = "forbidden"


class NotFound(AppException):
    status_code = 404
    code = "not_found"


class Conflict(AppException):
    status_code = 409
    code = "conflict"


class InvalidInput(AppException):
    status_code = 400
    code = "invalid_input"


class UnsupportedReaction(InvalidInput):
    code = "unsupported_reaction"


class UpstreamUnavailable(AppException):
    status_code = 503
    code = "upstream_unavailable"


class ScoringUnavailable(UpstreamUnavailable):
    code = "scoring_unavailable"


class InvalidResponseShape(ValueError):
    """The AI judge returned a payload missing required fields.

    Internal only: callers convert it to a safe failure result.
    """


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
        response = JSONResponse(
            status_code=exc.status_code,
            content=error_response(exc.message, code=exc.code),
        )
        if isinstance(exc, Unauthenticated):
            response.delete_cookie(settings.session_cookie_name, path="/")
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=error_response("Invalid request payload", data={"fields": fields}, code=InvalidInput.code),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=error_response("Internal server error", code="internal_error"),
        )
