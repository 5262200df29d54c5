"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from gpuremail.api.errors import register_error_handlers, unhandled_error_handler
from gpuremail.infrastructure import configure_logging, get_settings

CORS_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler. No connections are opened at startup."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"IMAP {settings.imap_endpoint}, SMTP {settings.smtp_endpoint} ({settings.smtp_security})")

    yield

    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Stateless HTTP gateway to an IMAP/SMTP mailbox",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Preflight requests are answered by CORSMiddleware; a bare OPTIONS
    # (no Access-Control-Request-Method) gets the same headers and no body.
    @app.middleware("http")
    async def bare_options(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(
                status_code=204,
                headers={
                    "Access-Control-Allow-Origin": "*",
                    "Access-Control-Allow-Methods": ", ".join(CORS_METHODS),
                    "Access-Control-Allow-Headers": "*",
                },
            )
        return await call_next(request)

    # Inside CORSMiddleware, so an unexpected 500 still carries CORS headers
    @app.middleware("http")
    async def catch_unhandled(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            return await unhandled_error_handler(request, e)

    # CORS middleware, added last so it wraps everything above
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=CORS_METHODS,
        allow_headers=["*"],
    )

    register_error_handlers(app)

    from gpuremail.api.routes import router

    app.include_router(router, prefix=settings.api_prefix)

    return app


# Create app instance
app = create_app()
