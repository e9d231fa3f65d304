"""FastAPI Application Entry Point.

Upload relay built with FastAPI, featuring:
- Firebase ID token authentication
- File storage through the Telegram Bot API
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from upload_relay.core.config import settings
from upload_relay.core.logging import configure_logging, setup_request_logging, get_logger
from upload_relay.core.exceptions import setup_exception_handlers
from upload_relay.core.identity import FirebaseTokenVerifier
from upload_relay.core.middleware import setup_cors_middleware, setup_timing_middleware
from upload_relay.core.telegram_client import TelegramClient
from upload_relay.services.upload_service import UploadService

# Configure logging first
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared collaborators on startup and release them on shutdown."""
    logger.info(
        "Starting application",
        project_name=settings.PROJECT_NAME,
        version=settings.VERSION,
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        port=settings.PORT,
    )

    environment = settings.environment_check()
    logger.info("Environment check", **environment)
    missing = [name for name, state in environment.items() if state == "missing"]
    if missing:
        logger.warning("Required configuration missing", missing=missing)

    token_verifier = FirebaseTokenVerifier.from_settings(settings)
    token_verifier.initialize()

    telegram_client = TelegramClient.from_settings(settings)
    upload_service = UploadService.from_settings(settings, telegram_client)

    app.state.token_verifier = token_verifier
    app.state.telegram_client = telegram_client
    app.state.upload_service = upload_service

    logger.info(
        "Application startup completed",
        identity_verifier=token_verifier.is_initialized,
        telegram=telegram_client.is_configured,
        staging_dir=str(upload_service.staging_dir),
    )

    yield

    logger.info("Shutting down application")

    try:
        await telegram_client.aclose()
    except Exception as e:
        logger.error("Error closing Telegram client", error=str(e))

    token_verifier.close()

    logger.info("Application shutdown completed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Relays authenticated file uploads to the Telegram Bot API.",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

# Setup middleware (CORS first)
setup_cors_middleware(app)
setup_timing_middleware(app)

setup_exception_handlers(app)

setup_request_logging(app)


from upload_relay.api.health import router as health_router
from upload_relay.api.upload import router as upload_router

app.include_router(health_router, tags=["Health"])
app.include_router(upload_router, tags=["Upload"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "upload_relay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=True,
    )
