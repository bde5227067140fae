"""FastAPI application entry point.

Sightline Live - realtime voice and camera conversations with a Live model.
"""

from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from sightline.api.routes import health, metrics
from sightline.api.websocket.live_stream import channel_registry, live_stream_endpoint
from sightline.config import get_settings
from sightline.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Startup:
    - Initialize logging

    Shutdown:
    - Close every open Live session
    """
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        enable_file=settings.is_production,
    )
    if not settings.has_api_key:
        logger.warning("GEMINI_API_KEY is not set; session.connect will be rejected")

    yield

    await channel_registry.close_all()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Sightline Live",
        description="Realtime voice and vision bridge to Gemini Live",
        version="0.1.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [settings.cors_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(health.router, tags=["Health"])

    # Metrics endpoint for Prometheus scraping
    app.include_router(metrics.router, tags=["Observability"])

    @app.websocket("/ws/live")
    async def live_ws(websocket: WebSocket):
        """Live channel: client wire protocol bridged to a Gemini Live session."""
        await live_stream_endpoint(websocket)

    # Prebuilt client assets; mounted last so API routes take precedence
    static_path = Path(settings.static_dir)
    if static_path.is_dir():
        app.mount("/", StaticFiles(directory=static_path, html=True), name="static")

    return app


# Application instance
app = create_app()
