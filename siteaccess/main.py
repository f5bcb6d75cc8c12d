# siteaccess/main.py
"""
FastAPI application entry point.
Includes middleware, error-to-envelope handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import DBAPIError, OperationalError
from siteaccess.routers import visitors, vehicles, vehicle_movements, external_movements, audit, health
from siteaccess.database import create_tables
from siteaccess.config import settings
from siteaccess.errors import DependencyUnavailableError, SiteAccessError
from siteaccess.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Site Access Control API",
    description="Visitor lifecycle, reception gate and vehicle movement ledger.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (dashboard + reception tablets) ─────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


def _envelope(status_code: int, message: str, data=None) -> JSONResponse:
    return JSONResponse(status_code=status_code,
                        content={"success": False, "message": message, "data": data})


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(SiteAccessError)
async def site_access_error_handler(request: Request, exc: SiteAccessError):
    logger.info(f"{request.method} {request.url.path} → {exc.status_code} {type(exc).__name__}: {exc.message}")
    return _envelope(exc.status_code, exc.message, exc.data)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return _envelope(status.HTTP_400_BAD_REQUEST, "Validation failed", errors)


@app.exception_handler(OperationalError)
@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError):
    logger.error(f"Database unavailable on {request.url.path}: {exc}")
    err = DependencyUnavailableError("Service temporarily unavailable")
    return _envelope(err.status_code, err.message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return _envelope(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(visitors.router,           prefix="/api/v1", tags=["🪪 Visitors"])
app.include_router(vehicles.router,           prefix="/api/v1", tags=["🚗 Vehicles"])
app.include_router(vehicle_movements.router,  prefix="/api/v1", tags=["🛣️  Vehicle Movements"])
app.include_router(external_movements.router, prefix="/api/v1", tags=["🚚 External Vehicles"])
app.include_router(audit.router,              prefix="/api/v1", tags=["📜 Audit"])
app.include_router(health.router,             prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Site Access backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    if not settings.NOTIFY_WEBHOOK_URL:
        logger.warning("📭 NOTIFY_WEBHOOK_URL not set, notifications will only be logged")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Site Access backend shutting down...")
