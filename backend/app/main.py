# backend/app/main.py
"""
Coursehub chat service.

HTTP routes live under /api/v1; the chat and notification namespaces are
WebSocket endpoints served by the real-time hub on ``app.state.realtime``.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator, Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .database import init_db
from .errors import register_error_handlers
from .realtime.hub import RealtimeHub
from .routes.v1 import (
    chats as chats_v1,
    courses as courses_v1,
    hearts as hearts_v1,
    prometheus as prometheus_v1,
    realtime as realtime_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    # Startup
    logger.info(f"{BRAND_NAME} chat starting up...")
    logger.info(f"Environment: {settings.environment}")
    if app.state.init_database:
        init_db()

    hub: RealtimeHub = app.state.realtime
    await hub.start()

    yield

    # Shutdown
    logger.info(f"{BRAND_NAME} chat shutting down...")
    try:
        await hub.stop()
    except Exception as e:
        logger.error(f"[WS] Error stopping realtime hub: {e}")


def create_app(hub: Optional[RealtimeHub] = None, init_database: bool = True) -> FastAPI:
    """
    Build the application.

    Args:
        hub: Real-time hub to serve; a default one (``session_scope`` store,
            relay per settings) is created when omitted
        init_database: Create missing tables on startup
    """
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    app.state.realtime = hub or RealtimeHub()
    app.state.init_database = init_database

    # Register unified error envelope handlers
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )
    logger.info("CORS allow_origins=%s allow_credentials=%s", settings.allowed_origins, True)

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(chats_v1.router, prefix="/chats")
    api_v1.include_router(hearts_v1.router, prefix="/hearts")
    api_v1.include_router(courses_v1.router, prefix="/courses")
    app.include_router(api_v1)

    app.include_router(realtime_v1.router)
    app.include_router(prometheus_v1.router)

    @app.get("/health")
    def health() -> dict:
        return {"status": "healthy", "service": API_TITLE, "version": API_VERSION}

    return app


app = create_app()
