"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cfroster import __version__
from cfroster.analytics import StudentAnalytics
from cfroster.api.dependencies import (
    close_analytics,
    close_notifications,
    close_scheduler,
    close_state_store,
    close_synchronizer,
    init_analytics,
    init_notifications,
    init_scheduler,
    init_state_store,
    init_synchronizer,
)
from cfroster.api.models import APIResponse, HealthResponse
from cfroster.api.routes import notifications, students, sync
from cfroster.codeforces import CodeforcesClient, CodeforcesError
from cfroster.config import AppConfig
from cfroster.handles import InvalidHandleError
from cfroster.notifications import (
    InactivityCheckRunningError,
    InactivityNotifier,
    InvalidNotificationError,
    NotificationDispatcher,
    RecipientUnavailableError,
    SMTPTransport,
)
from cfroster.scheduler import InvalidScheduleError, RunNotFoundError, SyncScheduler
from cfroster.state_store import (
    EmailLogNotFoundError,
    InvalidSettingsError,
    StateStoreError,
    StudentExistsError,
    StudentNotFoundError,
)
from cfroster.synchronizer import BatchSynchronizer, SyncAlreadyRunningError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable, Callable

logger = logging.getLogger(__name__)

# Most specific class wins, so StateStoreError only catches what is left
_ERROR_STATUS: list[tuple[type[Exception], int]] = [
    (StudentNotFoundError, status.HTTP_404_NOT_FOUND),
    (EmailLogNotFoundError, status.HTTP_404_NOT_FOUND),
    (RunNotFoundError, status.HTTP_404_NOT_FOUND),
    (StudentExistsError, status.HTTP_409_CONFLICT),
    (SyncAlreadyRunningError, status.HTTP_409_CONFLICT),
    (InactivityCheckRunningError, status.HTTP_409_CONFLICT),
    (InvalidHandleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidSettingsError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidScheduleError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (RecipientUnavailableError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (InvalidNotificationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (CodeforcesError, status.HTTP_502_BAD_GATEWAY),
]


def _error_handler(status_code: int) -> Callable[[Request, Exception], Awaitable[JSONResponse]]:
    async def handler(_request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content=APIResponse[None](data=None, error=str(exc)).model_dump(),
        )

    return handler


def register_exception_handlers(app: FastAPI) -> None:
    """Map component errors to APIResponse envelopes."""
    for exc_class, status_code in _ERROR_STATUS:
        app.add_exception_handler(exc_class, _error_handler(status_code))

    @app.exception_handler(StateStoreError)
    async def state_store_error_handler(_request: Request, exc: StateStoreError) -> JSONResponse:
        logger.error("Unhandled state store error: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=APIResponse[None](data=None, error="Internal server error").model_dump(),
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    config: AppConfig = app.state.config

    # Startup
    store = init_state_store(config.db_path)
    client = CodeforcesClient(
        base_url=config.codeforces_base_url,
        timeout=config.codeforces_timeout,
    )
    synchronizer = BatchSynchronizer(state_store=store, client=client)
    init_synchronizer(synchronizer)
    init_analytics(StudentAnalytics(state_store=store, client=client))

    transport = SMTPTransport(
        host=config.smtp_host,
        port=config.smtp_port,
        username=config.smtp_username,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
        from_address=config.email_from,
    )
    if not transport.is_configured:
        logger.warning("SMTP host not configured; emails will be logged as failed")
    dispatcher = NotificationDispatcher(
        state_store=store,
        transport=transport,
        threshold_days=config.inactivity_threshold_days,
    )
    notifier = InactivityNotifier(
        state_store=store,
        client=client,
        dispatcher=dispatcher,
        threshold_days=config.inactivity_threshold_days,
        cooldown_hours=config.reminder_cooldown_hours,
    )
    init_notifications(dispatcher, notifier)

    scheduler = SyncScheduler(
        state_store=store,
        synchronizer=synchronizer,
        inactivity_notifier=notifier if config.inactivity_enabled else None,
        inactivity_cron=config.inactivity_cron,
        inactivity_timezone=config.inactivity_timezone,
    )
    init_scheduler(scheduler)
    if config.scheduler_enabled:
        scheduler.initialize()

    yield
    # Shutdown
    close_scheduler()
    close_notifications()
    close_analytics()
    close_synchronizer()
    close_state_store()


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Process configuration. Read from the environment when omitted.
    """
    if config is None:
        config = AppConfig.from_env()

    app = FastAPI(
        title="cfroster API",
        description="REST API for the Codeforces student roster",
        version=__version__,
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health", response_model=APIResponse[HealthResponse], tags=["health"])
    def health() -> APIResponse[HealthResponse]:
        """Liveness check."""
        return APIResponse(data=HealthResponse(status="ok", version=__version__))

    app.include_router(students.router, prefix="/api/v1")
    app.include_router(sync.router, prefix="/api/v1")
    app.include_router(notifications.router, prefix="/api/v1")

    return app


def main() -> None:
    """Console entry point: set up logging and serve the API."""
    import uvicorn  # noqa: PLC0415

    from cfroster.logging import setup_logging  # noqa: PLC0415

    setup_logging()
    config = AppConfig.from_env()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


# Default app instance
app = create_app()
