"""
FastAPI Dependency Providers.

The SessionGateway is created in the application lifespan (main.py)
and stored on app.state; handlers receive it through get_gateway(),
which works for HTTP and WebSocket routes alike.

Usage in Route Handlers:
    @router.get("/voices")
    async def voices(gateway: SessionGateway = Depends(get_gateway)):
        return await gateway.list_voices()
"""
from __future__ import annotations

from functools import lru_cache

from fastapi.requests import HTTPConnection

from tts_relay.core.config import Settings, load_settings
from tts_relay.services.gateway import SessionGateway


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Load and cache application settings.

    Reads $TTS_RELAY_SETTINGS or config/settings.yaml when present, then
    applies environment overrides. Call get_settings.cache_clear() to reload.
    """
    return load_settings()


def get_gateway(connection: HTTPConnection) -> SessionGateway:
    """Return the gateway created at startup."""
    return connection.app.state.gateway
