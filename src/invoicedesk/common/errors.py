"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from invoicedesk.common.config import Settings
from invoicedesk.common.exceptions import InvoiceDeskError
from invoicedesk.common.schemas import error_response

logger = logging.getLogger(__name__)


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


def register_error_handlers(app: FastAPI, settings: Settings) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(InvoiceDeskError)
    async def invoice_desk_error_handler(request: Request, exc: InvoiceDeskError):
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        message = exc.message
        if exc.status_code == 500 and settings.is_production:
            message = "Something went wrong!"
        return JSONResponse(status_code=exc.status_code, content=error_response(message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=error_response(_format_validation_errors(exc)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        message = "Something went wrong!" if settings.is_production else str(exc)
        return JSONResponse(status_code=500, content=error_response(message))
