"""FastAPI application initialization and configuration."""

import logging
import time

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from yanggaeng.api.v1.endpoints.achievements import limiter, router as achievements_router
from yanggaeng.api.v1.endpoints.notifications import router as notifications_router
from yanggaeng.api.v1.endpoints.reminders import router as reminders_router
from yanggaeng.api.v1.endpoints.users import router as users_router
from yanggaeng.config import settings
from yanggaeng.db.errors import StoreUnavailableError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Yanggaeng Health API",
    description="Daily goal achievement, notification inbox and scheduled reminders for the 영양갱 senior-health app.",
    version="1.0.0",
    docs_url="/api/v1/docs",
    redoc_url="/api/v1/redoc",
    openapi_url="/api/v1/openapi.json",
)

# --- Middleware ---

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["*"],
)


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    """Report backend outages as 503 so the client retries on its next change."""
    logger.error("Store unavailable during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={"detail": {"error": {"code": "store_unavailable", "message": "Storage temporarily unavailable"}}},
    )


# Request logging
@app.middleware("http")
async def log_requests(request: Request, call_next) -> Response:
    """Log every incoming request and its duration."""
    start = time.perf_counter()
    response: Response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s -> %s (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


# API key authentication for the cron-driven endpoints.
# User-facing endpoints use Bearer auth via FastAPI dependencies.
_API_KEY_PREFIXES = ("/api/v1/reminders",)


@app.middleware("http")
async def api_key_auth(request: Request, call_next) -> Response:
    """Validate the API key for scheduler endpoints."""
    if not request.url.path.startswith(_API_KEY_PREFIXES):
        return await call_next(request)

    api_key = request.headers.get("X-API-Key")
    if api_key != settings.API_KEY:
        logger.warning("Unauthorized scheduler call from %s", request.client.host if request.client else "unknown")
        return JSONResponse(
            status_code=401,
            content={"success": False, "error": "Unauthorized", "detail": "Invalid or missing API key"},
        )
    return await call_next(request)


@app.get("/api/v1/health", tags=["Health"], summary="Liveness probe")
async def health() -> dict:
    return {"status": "healthy"}


# Register routes
app.include_router(achievements_router, prefix="/api/v1", tags=["Achievements"])
app.include_router(notifications_router, prefix="/api/v1", tags=["Notifications"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(reminders_router, prefix="/api/v1", tags=["Reminders"])

logger.info("Yanggaeng Health API started (debug=%s)", settings.DEBUG)
