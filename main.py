import logging
from contextlib import asynccontextmanager
from typing import Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from api.routes import API_VERSION, router
from config import API_HOST, API_PORT, CORS_ORIGINS, LOG_LEVEL
from database.connection import Database
from models.access_log_store import SqlAccessLogStore
from models.directory_store import SqlDirectoryStore
from services.alert_channels import AlertChannel, build_default_channels
from services.background_tasks import BackgroundTaskRunner, DiagnosticsSink
from services.credential_matcher import CredentialMatcher
from services.errors import StoreUnavailableError, ValidationFailure
from services.notification_dispatcher import NotificationDispatcher
from streaming.broadcast_channel import BroadcastChannel

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
# httpx logs full request URLs at INFO, which include chat API keys
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(
    database_url: Optional[str] = None,
    channels: Optional[Mapping[str, AlertChannel]] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        database_url: Async SQLAlchemy URL (default: config.DATABASE_URL)
        channels: Alert channels to use instead of the configured ones
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Startup:
            - Connect to the database and create tables if not exist
            - Build stores, matcher, dispatcher and broadcast channel once

        Shutdown:
            - Wait for pending access log writes
            - Close database connection
        """
        logger.info("🚀 Starting Access Control API...")

        # === STARTUP ===
        database = Database(database_url)
        if await database.test_connection():
            await database.init_models()
            logger.info("✅ Database ready")
        else:
            logger.warning("⚠️ Database not available. Authentication will return 503 until it is.")

        diagnostics = DiagnosticsSink()
        background = BackgroundTaskRunner(diagnostics)
        broadcast = BroadcastChannel()
        directory = SqlDirectoryStore(database)
        access_log = SqlAccessLogStore(database)

        app.state.database = database
        app.state.background = background
        app.state.broadcast = broadcast
        app.state.directory = directory
        app.state.access_log = access_log
        app.state.matcher = CredentialMatcher(directory, access_log, background)
        app.state.dispatcher = NotificationDispatcher(
            channels if channels is not None else build_default_channels(),
            broadcast,
        )
        logger.info("✅ Access Control API ready!")

        yield  # Application runs here

        # === SHUTDOWN ===
        logger.info("🔌 Shutting down...")
        await background.drain(timeout=5)
        await database.close()
        logger.info("👋 Goodbye!")

    app = FastAPI(
        title="Factory Access Control API",
        description="""
        Factory Security Access Control API

        Features:
        - Face / card / fingerprint credential authentication
        - Access attempt logging
        - Multi-platform emergency alerts (mail, SMS gateway, chat webhook)
        - Real-time fire alarm over WebSocket
        """,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreUnavailableError)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
        logger.error(f"❌ {exc}")
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": f"{exc.store} store unavailable"},
        )

    @app.exception_handler(ValidationFailure)
    async def validation_failure_handler(request: Request, exc: ValidationFailure):
        return JSONResponse(
            status_code=422,
            content={"success": False, "error": exc.message, "field": exc.field},
        )

    # Include API routes
    app.include_router(router, prefix="/api/v1", tags=["Access Control"])

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "message": "Factory Access Control API",
            "version": API_VERSION,
            "docs": "/docs",
            "health": "/api/v1/health",
        }

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=API_HOST,
        port=API_PORT,
        reload=True
    )
