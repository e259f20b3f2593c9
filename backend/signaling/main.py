"""Signaling Server Application.

This is the main entry point for the signaling relay.  Peers connect over a
WebSocket on any path, discover each other through rooms or one-time pairing
codes, and exchange opaque negotiation payloads that the server relays
without interpreting.

Modules:
    - relay: connection registry, rooms, signal forwarding, pairing codes
    - config: YAML settings with environment overrides
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response

from signaling import __version__
from signaling.config import AppSettings, get_config
from signaling.relay.manager import RelayManager
from signaling.relay.router import router as relay_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Per-request access lines add nothing over the relay's own connect/disconnect logs.
for _noisy in (
    "uvicorn.access",
    "websockets",
    "websockets.server",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

HTTP_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppSettings = app.state.relay.settings

    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    logger.info(
        "[%s] Serving ws://%s:%s",
        config.server.environment,
        config.server.host,
        config.server.port,
    )

    yield  # Application runs here

    # Shutdown
    logger.info("Application shutdown complete (%s)", app.state.relay.stats())


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """Build the application with its own relay state.

    Args:
        settings: Settings to use; defaults to the process-wide config.

    Returns:
        FastAPI app whose ``state.relay`` holds the RelayManager.
    """
    settings = settings or get_config()

    app = FastAPI(
        title="Signaling Relay",
        description="WebSocket signaling relay for peer-to-peer connection setup",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.relay = RelayManager(settings)

    @app.get("/health")
    async def health(request: Request) -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object with current peer, room and code counts.
        """
        return {"status": "ok", **request.app.state.relay.stats()}

    @app.api_route("/{path:path}", methods=HTTP_METHODS, include_in_schema=False)
    async def no_upgrade(path: str) -> Response:
        """Plain HTTP requests on any path get an empty 204."""
        return Response(status_code=204)

    # Register the signaling WebSocket
    app.include_router(relay_router)

    return app


app = create_app()
