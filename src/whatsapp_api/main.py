import asyncio
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .config import Settings, settings as default_settings
from .logger import logger
from .routes import message_router, session_router
from .webhook import WebhookNotifier
from .whatsapp import MultiFileAuthStore, WhatsAppService, create_bridge_socket_factory


def create_whatsapp_service(
    app_settings: Settings, http_client: httpx.AsyncClient
) -> WhatsAppService:
    """
    Build the lifecycle controller from settings.

    Args:
        app_settings: Application settings
        http_client: Shared httpx.AsyncClient used for webhook delivery

    Returns:
        WhatsAppService wired to the protocol bridge and webhook notifier
    """
    notifier = WebhookNotifier(
        http_client, app_settings.webhook_url, timeout=app_settings.webhook_timeout
    )
    socket_factory = create_bridge_socket_factory(
        app_settings.bridge_url,
        browser=app_settings.browser,
        connect_timeout=app_settings.bridge_connect_timeout,
        request_timeout=app_settings.bridge_request_timeout,
    )
    return WhatsAppService(
        auth_store=MultiFileAuthStore(app_settings.session_path),
        socket_factory=socket_factory,
        notifier=notifier,
        max_reconnect_attempts=app_settings.max_reconnect_attempts,
        qr_timeout=app_settings.qr_timeout,
        reconnect_delay=app_settings.reconnect_delay,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared HTTP client and WhatsApp service on startup"""
    logger.info("Starting WhatsApp API service...")
    app_settings: Settings = app.state.settings

    if getattr(app.state, "whatsapp_service", None) is not None:
        # Service injected by the caller (tests, embedding); nothing to own
        yield
        return

    http_client = httpx.AsyncClient()
    service = create_whatsapp_service(app_settings, http_client)
    app.state.whatsapp_service = service

    if not app_settings.webhook_url:
        logger.info("WEBHOOK_URL not set, webhook notifications disabled")

    startup_task: asyncio.Task | None = None
    if app_settings.auto_start_session and service.has_credentials():
        logger.info("Stored credentials found, resuming WhatsApp session")
        startup_task = asyncio.create_task(service.initialize())

    logger.info("=" * 60)
    logger.info("WhatsApp API is ready!")
    logger.info(f"   Swagger UI: http://{app_settings.host}:{app_settings.port}/docs")
    logger.info("=" * 60)

    yield

    logger.info("Shutting down WhatsApp API service...")
    if startup_task is not None and not startup_task.done():
        startup_task.cancel()
    await service.shutdown()
    await service.notifier.drain()
    await http_client.aclose()
    logger.info("✅ WhatsApp API service stopped")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {success: false, status: "error", message}."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "status": "error", "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(f"Validation failed on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={
                "success": False,
                "status": "error",
                "message": "Validation failed",
                "errors": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unexpected error on {request.method} {request.url.path}: {str(exc)}", exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "status": "error", "message": "Internal server error"},
        )


def create_app(
    app_settings: Settings | None = None,
    whatsapp_service: WhatsAppService | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use (defaults to environment settings)
        whatsapp_service: Pre-built service; when omitted the lifespan builds one

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or default_settings

    app = FastAPI(
        title="WhatsApp REST API",
        version="1.0.0",
        description="""
    ## WhatsApp REST API

    Links a single WhatsApp device through QR pairing and exposes it over REST.

    ### Features
    - 📱 **QR pairing** with automatic reconnection
    - 💬 **Text messaging** to any WhatsApp number
    - 🔔 **Webhooks** for connection changes and inbound messages

    ### Endpoints
    - `/session/start`, `/session/status`, `/session/logout`
    - `/message/send-text`

    All endpoints except `/health` require the `x-access-token` header.
    """,
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.whatsapp_service = whatsapp_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in app_settings.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """
        Health check endpoint

        Returns the service health status.
        """
        return {"status": "healthy"}

    app.include_router(session_router)
    app.include_router(message_router)

    return app


app = create_app()
