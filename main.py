import os
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Ensure local imports resolve
sys.path.append(os.path.dirname(__file__))

# Core
from core.config import settings
from core.config_validator import validate_config_on_startup
from core.errors import GateError
from core.logging_config import logger

# -------------------------------------------------
# Routers
# -------------------------------------------------
from routers.auth import router as auth_router
from routers.buildings import router as buildings_router
from routers.residents import router as residents_router

from routers.visitors import router as visitors_router
from routers.amenities import router as amenities_router
from routers.bookings import router as bookings_router

from routers.notices import router as notices_router
from routers.achievements import router as achievements_router
from routers.messages import router as messages_router

from routers.realtime import router as realtime_router
from routers.webhooks import router as webhooks_router
from routers.health import router as health_router


# -------------------------------------------------
# Create the Application
# -------------------------------------------------
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="1.0.0",
        description="UrbanGate API - gate passes, amenity bookings and community portal for gated buildings",
    )

    # -------------------------------------------------
    # CORS
    # -------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------
    # Startup
    # -------------------------------------------------
    @app.on_event("startup")
    async def on_startup():
        logger.info(f"🚀 Starting {settings.PROJECT_NAME} ({settings.ENV})")
        validate_config_on_startup()
        for route in app.routes:
            path = getattr(route, "path", None)
            if path is None:
                continue
            methods = ",".join(getattr(route, "methods", None) or ["WS"])
            logger.debug(f"{methods:10s} {path}")

    # -------------------------------------------------
    # Error handling
    # -------------------------------------------------
    @app.exception_handler(GateError)
    async def handle_gate_error(request: Request, exc: GateError):
        if exc.status_code >= 500:
            logger.error(f"{exc.code} at {request.url} - {exc.message}")
        else:
            logger.info(f"{exc.code} at {request.url} - {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "error": exc.code},
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (401, 403, 500):
            logger.warning(
                f"HTTP {exc.status_code} at {request.url} - {exc.detail}"
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error("Unhandled error at %s", request.url, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # -------------------------------------------------
    # Register Routers
    # -------------------------------------------------

    # Identity & tenancy
    app.include_router(auth_router)
    app.include_router(buildings_router)
    app.include_router(residents_router)

    # Gate & facilities
    app.include_router(visitors_router)
    app.include_router(amenities_router)
    app.include_router(bookings_router)

    # Community
    app.include_router(notices_router)
    app.include_router(achievements_router)
    app.include_router(messages_router)

    # Realtime & integrations
    app.include_router(realtime_router)
    app.include_router(webhooks_router)

    # Health
    app.include_router(health_router)

    @app.get("/", include_in_schema=False)
    async def root():
        return {"service": settings.PROJECT_NAME, "docs": "/docs"}

    return app


# Create the global FastAPI instance
app = create_app()
