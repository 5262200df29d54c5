"""Translate gateway failures into HTTP responses."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from gpuremail.domain.errors import GatewayError

INTERNAL_ERROR = "Internal server error"


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Answer ``{"error": message}`` with the status the error kind maps to."""
    route = f"{request.method} {request.url.path}"
    if exc.status_code >= 500:
        logger.error(f"{route} failed ({exc.status_code}, {type(exc).__name__}): {exc.message}")
    else:
        logger.warning(f"{route} rejected ({exc.status_code}, {type(exc).__name__}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything outside the taxonomy is a 500; the details stay in the log."""
    logger.opt(exception=exc).error(f"{request.method} {request.url.path} failed: {type(exc).__name__}")
    return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
