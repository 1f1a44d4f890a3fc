"""
HTTP and WebSocket layer for tts-relay.

    - routes.py: /, /health, /voices, /tts, /metrics
    - ws.py: /ws event relay
    - schemas.py: Request/response Pydantic models
    - dependencies.py: FastAPI dependency providers
"""
