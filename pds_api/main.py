"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from pds_api.core.config import settings
from pds_api.core.dependencies import get_cache_service, get_object_storage
from pds_api.core.exceptions import PDSError
from pds_api.core.middleware import setup_middleware
from pds_api.core.rate_limiter import limiter

from pds_api.api.auth import router as auth_router
from pds_api.api.admin import router as admin_router
from pds_api.api.imports import router as imports_router
from pds_api.api.payslips import router as payslips_router
from pds_api.api.calls import router as calls_router
from pds_api.api.videos import router as videos_router
from pds_api.api.display import settings_router as display_settings_router
from pds_api.api.display import public_router as display_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("pds")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s API (%s)", settings.APP_NAME, settings.ENVIRONMENT)
    try:
        get_object_storage().ensure_bucket()
        logger.info("MinIO bucket ready")
    except Exception as e:
        logger.warning("MinIO not available: %s", e)

    if get_cache_service().health_check():
        logger.info("Redis connected")
    else:
        logger.warning("Redis not available, leaderboards will not be cached")

    yield

    logger.info("Shutting down %s API", settings.APP_NAME)


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Payroll distribution, HR onboarding and call-center display backend",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(PDSError)
async def pds_exception_handler(request: Request, exc: PDSError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, **exc.details},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": "Validation error", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "An internal error occurred"},
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(imports_router, prefix="/api")
app.include_router(payslips_router, prefix="/api")
app.include_router(calls_router, prefix="/api")
app.include_router(videos_router, prefix="/api")
app.include_router(display_settings_router, prefix="/api")
app.include_router(display_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
