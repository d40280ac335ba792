"""Webhook server for Drive push notifications.

Drive calls POST /drive-notification whenever the watched spreadsheet
changes. Notification details arrive in X-Goog-* headers, not the body.
The endpoint answers immediately and runs the fetch/diff cycle as a
background task.

Entry point: uvicorn "sheetwatch.server:create_app" --factory
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, BackgroundTasks, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger

from sheetwatch import __version__
from sheetwatch.config import Settings, get_settings
from sheetwatch.credentials import (
    SHEETS_SCOPES,
    AuthorizedClient,
    load_service_account_credentials,
)
from sheetwatch.logging import configure_logging
from sheetwatch.monitor import SheetMonitor
from sheetwatch.transport import GoogleSheetsTransport, LocalFileTransport, Transport

NOTIFICATION_PATH = "/drive-notification"

# Resource states that mean the file may have new content
PROCESSED_STATES = {"sync", "update"}

router = APIRouter()


def notification_url(settings: Settings) -> str:
    """Full URL Drive should POST notifications to."""
    return settings.webhook_url.rstrip("/") + NOTIFICATION_PATH


def build_transport(settings: Settings) -> Transport:
    """Pick the snapshot transport for the configured source."""
    if settings.local_snapshot_dir is not None:
        logger.info(f"Reading snapshots from {settings.local_snapshot_dir}")
        return LocalFileTransport(settings.local_snapshot_dir)
    credentials = load_service_account_credentials(
        settings.google_service_account_key, SHEETS_SCOPES
    )
    return GoogleSheetsTransport(
        AuthorizedClient(credentials, timeout=settings.request_timeout)
    )


def get_monitor(request: Request) -> SheetMonitor:
    monitor: SheetMonitor = request.app.state.monitor
    return monitor


@router.post(NOTIFICATION_PATH, response_class=PlainTextResponse)
async def drive_notification(
    request: Request,
    background_tasks: BackgroundTasks,
    x_goog_resource_state: str | None = Header(default=None),
    x_goog_channel_id: str | None = Header(default=None),
    x_goog_resource_id: str | None = Header(default=None),
    x_goog_channel_token: str | None = Header(default=None),
) -> str:
    """Receive a Drive notification and schedule a change check.

    Always answers 200 so Drive does not retry; ignored notifications are
    only logged.
    """
    settings: Settings = request.app.state.settings

    logger.info(
        f"Drive API notification received (resourceState: {x_goog_resource_state})"
    )
    logger.info(f"  Channel ID: {x_goog_channel_id or 'not provided'}")
    logger.info(f"  Resource ID: {x_goog_resource_id or 'not provided'}")

    if settings.channel_id and x_goog_channel_id and x_goog_channel_id != settings.channel_id:
        logger.warning(
            f"Ignoring notification with mismatched channel ID: {x_goog_channel_id} "
            f"(expected: {settings.channel_id})"
        )
        return "OK"
    if not settings.channel_id:
        logger.debug("Channel ID validation skipped (CHANNEL_ID not set)")

    if settings.channel_token and x_goog_channel_token != settings.channel_token:
        logger.warning("Ignoring notification with mismatched channel token")
        return "OK"

    if x_goog_resource_state in PROCESSED_STATES:
        logger.info(f"Processing {x_goog_resource_state} notification...")
        background_tasks.add_task(get_monitor(request).process_change, x_goog_channel_id)
    else:
        logger.warning(
            f"Ignoring notification with resourceState: {x_goog_resource_state}"
        )

    return "OK"


@router.get("/health")
async def health_check(request: Request) -> dict:
    """Basic health check endpoint."""
    monitor = get_monitor(request)
    return {
        "status": "healthy",
        "service": "sheetwatch",
        "initialized": monitor.initialized,
        "spreadsheet_id": monitor.spreadsheet_id,
    }


@router.get("/health/ready")
async def readiness_check(request: Request) -> dict:
    """Readiness check; fails until the initial snapshot is captured."""
    if not get_monitor(request).initialized:
        raise HTTPException(status_code=503, detail="Initial snapshot not captured")
    return {"status": "ready", "service": "sheetwatch"}


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        extra={"path": request.url.path, "error": str(exc)},
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )


def create_app(
    settings: Settings | None = None, transport: Transport | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to use instead of the environment
        transport: Snapshot transport to use instead of the configured one
    """
    settings = settings or get_settings()

    configure_logging(
        is_production=settings.is_production,
        log_level=settings.log_level,
        spreadsheet_id=settings.spreadsheet_id,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting sheetwatch webhook server on port {settings.webhook_port}")
        logger.info(f"Webhook URL: {notification_url(settings)}")
        logger.info(f"Spreadsheet ID: {settings.spreadsheet_id}")

        source = transport or build_transport(settings)
        monitor = SheetMonitor(source, settings.spreadsheet_id)
        app.state.monitor = monitor

        try:
            await monitor.initialize()
        except Exception:
            logger.exception("Failed to initialize")
            await source.close()
            raise

        yield

        await source.close()
        logger.info("Shutting down sheetwatch webhook server")

    app = FastAPI(
        title="sheetwatch",
        description="Reports value and structure changes in a Google Sheet",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url=None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )
    app.state.settings = settings

    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(router)

    return app
