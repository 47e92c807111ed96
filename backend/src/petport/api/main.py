"""Main FastAPI application for the PetPort API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from petport import __version__
from petport.api.rate_limit import limiter
from petport.api.v1.gifts import router as gifts_router
from petport.api.v1.jobs import router as jobs_router
from petport.api.v1.pets import router as pets_router
from petport.api.v1.referral import router as referral_router
from petport.api.v1.share import router as share_router
from petport.api.v1.subscriptions import router as subscriptions_router
from petport.api.v1.webhooks import router as webhooks_router
from petport.errors import PetPortError
from petport.logging_config import bind_request_context, configure_logging, get_logger
from petport.settings import settings
from petport.storage.db import db

logger = get_logger(__name__)

SHARE_PATH_PREFIX = "/api/v1/share"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses.

    Share pages carry an inline redirect script, so they get a CSP that
    allows it.
    """

    async def dispatch(self, request: Request, call_next):
        bind_request_context(method=request.method, path=request.url.path)
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        if request.url.path.startswith(SHARE_PATH_PREFIX):
            response.headers["Content-Security-Policy"] = (
                "default-src 'none'; script-src 'unsafe-inline'; style-src 'unsafe-inline'; img-src https:"
            )
        else:
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        response.headers["Permissions-Policy"] = (
            "accelerometer=(), "
            "camera=(), "
            "geolocation=(), "
            "microphone=(), "
            "usb=()"
        )

        return response


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    """Render an error as ``{"error": message}``."""
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("app_starting", env=settings.env)

    if settings.env != "production":
        # Production schema is managed by alembic
        db.create_tables()

    yield

    logger.info("app_shutting_down")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI app
    """
    configure_logging()
    is_production = settings.env == "production"

    app = FastAPI(
        title="PetPort API",
        description="Pet profiles, subscriptions, referrals and gift memberships",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(SecurityHeadersMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]
    # Bearer tokens, not cookies, so credentials stay off and "*" is allowed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-cron-secret"],
        max_age=3600,
    )

    app.state.limiter = limiter

    # ==================== ERROR HANDLERS ====================

    @app.exception_handler(PetPortError)
    async def petport_error_handler(request: Request, exc: PetPortError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, error=exc.message)
        return error_response(exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg")
        else:
            message = "Invalid request"
        return error_response(400, message)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return error_response(429, "Too many requests. Please try again later.")

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("unexpected_error", path=request.url.path)
        return error_response(500, "Unexpected error")

    # ==================== ROUTERS ====================

    app.include_router(subscriptions_router, prefix="/api/v1")
    app.include_router(referral_router, prefix="/api/v1")
    app.include_router(gifts_router, prefix="/api/v1")
    app.include_router(pets_router, prefix="/api/v1")
    app.include_router(share_router, prefix="/api/v1")
    app.include_router(jobs_router, prefix="/api/v1")
    app.include_router(webhooks_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


# Create app instance
app = create_app()
