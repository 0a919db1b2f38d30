# appointly/main.py
from __future__ import annotations

# Load .env early so settings and os.getenv see it
from dotenv import load_dotenv
load_dotenv()

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from appointly.api.auth import require_api_key
from appointly.core.config import settings
from appointly.core.errors import BookingError, ErrorSeverity, error_aggregator, log_error
from appointly.core.logging import LoggingMiddleware, get_logger, setup_logging
from appointly.db.base import init_db
from appointly.db.session import get_session

# Set up structured logging
setup_logging(
    debug=settings.is_development,
    max_log_length=settings.MAX_LOG_LENGTH,
    level=settings.LOG_LEVEL,
)
logger = get_logger(__name__)

# Routers
from appointly.api.routes.dashboard import router as dashboard_router
from appointly.api.routes.public import router as public_router

app = FastAPI(title="Appointly", description="Multi-tenant appointment booking engine")

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.LOG_REQUESTS,
        log_responses=settings.LOG_RESPONSES,
        slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
    )
)


# -------- Error mapping --------
def _endpoint(request: Request) -> str:
    """Matched route template, so /appointments/{appointment_id} groups as one endpoint."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    log_error(exc, {"endpoint": _endpoint(request), "code": exc.code})
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    body = {
        "error": first.get("msg", "Invalid request"),
        "code": "validation_error",
        "details": [
            {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg"), "type": e.get("type")}
            for e in errors
        ],
    }
    if loc:
        body["field"] = loc[0]
    log_error(exc, {"endpoint": _endpoint(request), "code": "validation_error", "field": body.get("field")},
              ErrorSeverity.LOW)
    return JSONResponse(body, status_code=400)


# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    await db.execute(sa.text("SELECT 1"))
    return {"db": "ok"}


@app.get("/errors", include_in_schema=False, dependencies=[Depends(require_api_key)])
async def errors():
    """Recent error patterns, for whoever is on call."""
    return error_aggregator.get_error_summary()


# -------- Include routers --------
app.include_router(public_router)
app.include_router(dashboard_router)


@app.on_event("startup")
async def startup_event():
    if settings.AUTO_CREATE_TABLES:
        await init_db()
        logger.info("tables_created")
    logger.info(
        "application_startup",
        env=settings.APP_ENV,
        staffless_mode=settings.staffless_mode,
        payments_enabled=settings.payments_enabled,
        reminders_enabled=bool(settings.REDIS_URL),
    )


@app.on_event("shutdown")
async def shutdown_event():
    error_aggregator.cleanup_old_patterns()
    logger.info("application_shutdown")
