import logging
import traceback

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ceycanvas.config import settings

LOGGER = logging.getLogger(__name__)


def error_response(message: str, status_code: int, **extra) -> JSONResponse:
    """Every error body carries a ``message``; extra keys are optional context."""
    content = {"message": message}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def add_exception_handlers(app):
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return error_response(str(exc.detail) or "Error", exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Validation failed"
        if errors:
            first = errors[0]
            message = str(first.get("msg", message)).removeprefix("Value error, ")
        return error_response(
            message,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            errors=errors,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        LOGGER.exception("Unhandled exception on %s %s", request.method, request.url.path)
        stack = None
        if not settings.is_production:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        return error_response(
            str(exc) or "Internal server error",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            stack=stack,
        )
