"""FastAPI application entry point."""
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from shelter.core.config import settings
from shelter.core.errors import ShelterError
from shelter.core.structured_logging import build_log_context, format_log_context, request_id_var
from shelter.db.session import engine

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Adopter contact details stay out of Sentry
    )
    logging.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from shelter.core.rate_limit import limiter

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Shelter API",
    description="Multi-tenant animal shelter workflow API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a correlation id to the request, its audit entries and the response."""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id = request_id[:64]
    token = request_id_var.set(request_id)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Error Handling
# ============================================================================


@app.exception_handler(ShelterError)
async def shelter_error_handler(request: Request, exc: ShelterError) -> JSONResponse:
    """Render domain errors as {"error": code, "detail": message}."""
    context = build_log_context(
        user_id=str(getattr(request.state, "user_id", "") or ""),
        org_id=str(getattr(request.state, "org_id", "") or ""),
        request_id=request_id_var.get(),
        route=request.url.path,
        method=request.method,
    )
    logger.warning("Request rejected code=%s %s", exc.code, format_log_context(context))
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ============================================================================
# Routers
# ============================================================================

from shelter.routers import (
    animals,
    applications,
    audit,
    locations,
    medical,
    notes,
    org,
    people,
    placements,
    reports,
)

app.include_router(org.router, tags=["organization"])
app.include_router(animals.router, prefix="/animals", tags=["animals"])
app.include_router(medical.router, prefix="/medical", tags=["medical"])
app.include_router(applications.router, prefix="/applications", tags=["applications"])
app.include_router(placements.router, prefix="/placements", tags=["placements"])
app.include_router(people.router, prefix="/people", tags=["people"])
app.include_router(notes.router, prefix="/subjects", tags=["notes"])
app.include_router(locations.router, prefix="/locations", tags=["locations"])

# Reports and audit trail (routers carry their own prefix)
app.include_router(reports.router)
app.include_router(audit.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
