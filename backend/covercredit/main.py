"""
FastAPI Application Entry Point
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.engine import Engine

from covercredit.api.v1.routes import api_router
from covercredit.api.v1.endpoints import health
from covercredit.core.config import Settings, get_settings
from covercredit.domain.errors import LeadError, NotFound, ValidationError
from covercredit.infrastructure.storage.database import create_session_factory, get_engine, init_db
from covercredit.infrastructure.storage.lead_store import LeadStore
from covercredit.services.lead_lifecycle import LeadLifecycleManager
from covercredit.services.notification_service import NotificationService, get_notification_service
from covercredit.utils.time import utc_now
from covercredit.workers.reminder_worker import ReminderWorker

logger = logging.getLogger(__name__)

GENERIC_ERROR = "Server error. Please try again."


# =============================================================================
# Exception handlers
# =============================================================================

def _server_error(request: Request, exc: Exception) -> JSONResponse:
    settings: Settings = request.app.state.settings
    message = GENERIC_ERROR if settings.is_production else (str(exc) or exc.__class__.__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": message},
    )


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"success": False, "message": exc.message, "errors": exc.errors},
    )


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies (not JSON, not an object, missing) are a 400, not a field error"""
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "message": "Invalid request body", "errors": errors},
    )


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"success": False, "message": "Not found."},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def lead_error_handler(request: Request, exc: LeadError) -> JSONResponse:
    logger.error(f"{exc.__class__.__name__} on {request.method} {request.url.path}: {exc.message}")
    return _server_error(request, exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return _server_error(request, exc)


# =============================================================================
# Application factory
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    notifications: Optional[NotificationService] = None,
    clock: Callable[[], datetime] = utc_now
) -> FastAPI:
    """
    Build the API with its store, notification gateway and reminder worker.

    Tests pass an in-memory engine, a stub gateway and a fake clock.
    """
    settings = settings or get_settings()
    engine = engine or get_engine()
    notifications = notifications or get_notification_service()
    store = LeadStore(create_session_factory(engine), clock=clock)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan - startup and shutdown events.

        Startup:
        - Validates configuration (strict in production)
        - Creates tables and confirms storage connectivity
        - Starts the reminder worker

        Shutdown:
        - Stops the worker, letting an in-flight reminder finish within the grace period
        """
        logger.info("Starting Cover Credit API...")

        from covercredit.core.validation import validate_configuration_on_startup
        validate_configuration_on_startup(strict=settings.is_production, settings=settings)

        init_db(engine)

        worker_task = None
        if settings.reminder_worker_enabled:
            worker = ReminderWorker(
                store=store,
                notifications=notifications,
                clock=clock,
                poll_interval=settings.reminder_poll_interval_seconds,
            )
            app.state.reminder_worker = worker
            worker_task = asyncio.create_task(worker.run())
        else:
            logger.info("Reminder worker disabled (REMINDER_WORKER_ENABLED=false)")

        logger.info("Cover Credit API started successfully")

        yield  # Application is running

        logger.info("Shutting down Cover Credit API...")

        if worker_task is not None:
            app.state.reminder_worker.stop()
            try:
                await asyncio.wait_for(worker_task, timeout=settings.shutdown_grace_seconds)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Reminder worker did not stop within {settings.shutdown_grace_seconds:g}s - cancelled"
                )

        logger.info("Cover Credit API shutdown complete")

    app = FastAPI(
        title="Cover Credit API",
        description="Lead capture and admin backend for Cover Credit insurance & loans",
        version="1.0.0",
        lifespan=lifespan
    )

    app.state.settings = settings
    app.state.lead_store = store
    app.state.notifications = notifications
    app.state.lifecycle = LeadLifecycleManager(store, notifications)
    app.state.reminder_worker = None

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(LeadError, lead_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # Include API routes
    app.include_router(api_router, prefix=settings.api_prefix)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        return {"message": "Cover Credit API", "status": "running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
