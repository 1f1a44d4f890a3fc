"""
FastAPI Application Entry Point.

Routers:
    - routes.py: /, /health, /voices, /tts, /metrics
    - ws.py: /ws (WebSocket relay)

Startup (lifespan):
    1. Load .env (python-dotenv; existing environment wins)
    2. Load settings (config/settings.yaml if present + environment)
    3. Refuse to start without the active provider's API key
    4. Build the SessionGateway and put it on app.state

Shutdown waits for in-flight sessions (relay.shutdown_grace_s) so that
audio already being generated still reaches disk.

Usage:
    uvicorn tts_relay.main:app --host 0.0.0.0 --port 3000
    # or
    tts-relay --port 3000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from tts_relay import __version__
from tts_relay.api.dependencies import get_settings
from tts_relay.api.routes import request_validation_handler, router
from tts_relay.api.ws import router as ws_router
from tts_relay.core.config import ConfigValidationError, Settings
from tts_relay.core.logging import configure_logging, fail, get_logger, info
from tts_relay.services.gateway import SessionGateway, create_gateway

_LOG = get_logger("tts-relay.main")


def build_gateway(settings: Optional[Settings] = None) -> SessionGateway:
    """
    Create the production gateway from settings and environment.

    Raises:
        MissingAPIKeyError: The active provider has no API key.
        ConfigValidationError: Any other invalid setting.
    """
    load_dotenv()
    if settings is None:
        settings = get_settings()
    config = settings.get_service_config()
    try:
        config.require_api_key()
    except ConfigValidationError as e:
        fail(_LOG, "startup_aborted", error=str(e))
        raise
    return create_gateway(config)


def create_app(gateway: Optional[SessionGateway] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        gateway: Use this gateway instead of building one at startup.
        settings: Settings for the gateway built at startup.

    Returns:
        FastAPI: Configured application; the gateway is closed on shutdown.
    """
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.gateway = gateway if gateway is not None else build_gateway(settings)
        info(_LOG, "startup", provider=app.state.gateway.provider.name, version=__version__)
        try:
            yield
        finally:
            await app.state.gateway.aclose()
            info(_LOG, "shutdown")

    app = FastAPI(title="tts-relay", version=__version__, lifespan=lifespan)
    app.include_router(router)
    app.include_router(ws_router)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    return app


# ASGI application for uvicorn
app = create_app()
