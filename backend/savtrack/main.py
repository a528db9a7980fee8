"""
FastAPI application factory.

Startup sequence:
  1. Validate settings
  2. Check DB connectivity (warn on failure, do not crash; the load balancer will detect)
  3. Mount all API routers

Dev-mode notes:
  When DEV_SKIP_AUTH=true (development only):
    - A starlette middleware reads the X-Dev-User-ID header and sets a context
      variable so get_current_user() can look up the user without a token.
    - This middleware is NOT installed in staging/production.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from savtrack.api.v1.cases import router as cases_router
from savtrack.api.v1.catalog import router as catalog_router
from savtrack.api.v1.customers import router as customers_router
from savtrack.api.v1.health import router as health_router
from savtrack.api.v1.notifications import router as notifications_router
from savtrack.api.v1.parts import router as parts_router
from savtrack.api.v1.shops import router as shops_router
from savtrack.api.v1.statistics import router as statistics_router
from savtrack.core.config import get_settings
from savtrack.core.db import check_db_connection
from savtrack.core.security import set_dev_auth_user_id
from savtrack.services.errors import (
    CaseLimitReachedError,
    CaseNotFoundError,
    CustomerHasActiveCasesError,
    CustomerNotFoundError,
    InvalidTakeoverError,
    PartNotFoundError,
    SavError,
    StatusTransitionError,
    UnknownStatusError,
    UnknownTypeError,
)

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.is_development else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)

# Domain error -> HTTP status
ERROR_STATUS: dict[type[SavError], int] = {
    CaseNotFoundError: status.HTTP_404_NOT_FOUND,
    CustomerNotFoundError: status.HTTP_404_NOT_FOUND,
    PartNotFoundError: status.HTTP_404_NOT_FOUND,
    UnknownStatusError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    UnknownTypeError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    InvalidTakeoverError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    CustomerHasActiveCasesError: status.HTTP_409_CONFLICT,
    CaseLimitReachedError: status.HTTP_409_CONFLICT,
    StatusTransitionError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: SavError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting savtrack backend (env=%s)", settings.environment)
    db_ok = await check_db_connection()
    if db_ok:
        logger.info("Database connection: OK")
    else:
        logger.warning("Database connection: FAILED, check DB_HOST / credentials")

    if settings.auth_disabled:
        logger.warning(
            "DEV_SKIP_AUTH=true: token verification is DISABLED. "
            "This must never be enabled in staging or production."
        )

    yield

    logger.info("Shutting down savtrack backend")


def create_app() -> FastAPI:
    app = FastAPI(
        title="SAV Track API",
        version="0.1.0",
        description="Repair shop SAV tracking backend API",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------------ #
    # CORS
    # ------------------------------------------------------------------ #
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ------------------------------------------------------------------ #
    # Dev-mode header middleware
    # ------------------------------------------------------------------ #
    if settings.auth_disabled:
        @app.middleware("http")
        async def dev_auth_middleware(request: Request, call_next):
            """
            Reads X-Dev-User-ID (an auth_user_id string) and stores it
            in a context variable so get_current_user() can find the user.
            """
            set_dev_auth_user_id(request.headers.get("X-Dev-User-ID"))
            response = await call_next(request)
            return response

    # ------------------------------------------------------------------ #
    # Exception handlers
    # ------------------------------------------------------------------ #
    @app.exception_handler(SavError)
    async def domain_error_handler(request: Request, exc: SavError):
        code = status_for(exc)
        if code >= 500:
            logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s", request.method, request.url)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(health_router)
    app.include_router(shops_router, prefix="/api/v1")
    app.include_router(catalog_router, prefix="/api/v1")
    app.include_router(cases_router, prefix="/api/v1")
    app.include_router(customers_router, prefix="/api/v1")
    app.include_router(parts_router, prefix="/api/v1")
    app.include_router(statistics_router, prefix="/api/v1")
    app.include_router(notifications_router, prefix="/api/v1")

    return app


app = create_app()
