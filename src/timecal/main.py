"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from timecal.auth import (
    GitHubOAuthClient,
    PKCEStore,
    TokenCodec,
    set_github_client,
    set_pkce_store,
    set_token_codec,
)
from timecal.config import settings
from timecal.exceptions import TimeCalError
from timecal.features.auth import router as auth_router
from timecal.features.preferences import router as preferences_router
from timecal.features.profile import router as profile_router
from timecal.middleware import RouteGuardMiddleware
from timecal.services.rate_limiter import limiter

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Startup
    codec = TokenCodec(settings.jwt_secret, default_ttl=settings.token_ttl_seconds)
    if not codec.is_configured:
        logger.warning(
            "JWT_SECRET is not set: sign-in will fail and every token is rejected",
            extra={"error_type": "token_secret_missing"},
        )
    set_token_codec(codec)

    pkce_store = PKCEStore(
        ttl=settings.pkce_ttl_seconds,
        sweep_interval=settings.pkce_sweep_interval_seconds,
    )
    pkce_store.start()
    set_pkce_store(pkce_store)

    redirect_uri = f"{settings.base_url}{settings.api_prefix}/auth/callback"
    github_client = GitHubOAuthClient(
        client_id=settings.github_client_id,
        client_secret=settings.github_client_secret,
        redirect_uri=redirect_uri,
        timeout=settings.github_timeout_seconds,
    )
    set_github_client(github_client)

    logger.info(
        "Auth initialized",
        extra={
            "redirect_uri": redirect_uri,
            "github_configured": bool(settings.github_client_id),
            "token_ttl": settings.token_ttl_seconds,
        },
    )

    yield

    # Shutdown
    await pkce_store.stop()
    try:
        await github_client.close()
        logger.info("GitHub client closed")
    except Exception as e:
        logger.error(f"Error during GitHub client cleanup: {e}", exc_info=True)

    set_github_client(None)
    set_pkce_store(None)
    set_token_codec(None)


app = FastAPI(
    title="Time Cal API",
    description="Auth, profile and preferences API for the Time Cal time-management app",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(TimeCalError)
async def timecal_error_handler(request: Request, exc: TimeCalError) -> JSONResponse:
    """Render application errors as ``{"error": message}`` with their status."""
    if exc.status_code >= 500:
        logger.error(
            f"{type(exc).__name__} on {request.url.path}: {exc.message}",
            extra={"error_type": type(exc).__name__},
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed input as a 400 naming the first offending field."""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        first = errors[0]
        field = ".".join(str(loc) for loc in first["loc"] if loc not in ("body", "query"))
        message = f"Invalid request: {field}: {first['msg']}" if field else f"Invalid request: {first['msg']}"

    logger.info(
        f"Validation failed on {request.url.path}",
        extra={"error_count": len(errors)},
    )
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log the details, return a generic 500."""
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


origins = settings.cors_origins.split(",")
logger.info(f"Origins : {origins}")

# Added first so CORS wraps it and redirects still get CORS headers
app.add_middleware(RouteGuardMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(auth_router, prefix=settings.api_prefix)
app.include_router(profile_router, prefix=settings.api_prefix)
app.include_router(preferences_router, prefix=settings.api_prefix)


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
