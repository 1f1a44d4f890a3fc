"""
Relay HTTP Routes.

Endpoints:
    GET  /                 - Welcome banner
    GET  /health           - Liveness plus provider, in-flight sessions, storage usage
    GET  /voices           - Provider voice catalog, passed through verbatim
    POST /tts              - Synthesize, store, return the stored file's location
    GET  /audio/{filename} - A stored audio file, served inline
    GET  /metrics          - Prometheus metrics

Error Handling:
    Errors are returned as {"error": "<public message>"}:
        - 400: text or voiceId missing, or the body is not valid JSON
        - 404: no stored audio file by that name
        - 413: text longer than gateway.max_text_chars_http, if set
        - 500: voice catalog, translation, synthesis or storage failure

Example:
    curl -X POST http://localhost:3000/tts \\
        -H "Content-Type: application/json" \\
        -d '{"text": "Hello", "voiceId": "21m00Tcm4TlvDq8ikWAM", "language": "hi"}'
    {"message": "Audio saved locally", "translatedText": "नमस्ते", "path": "/srv/audio_files/audio_1760790000000.mp3"}
"""
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse

from tts_relay.api.dependencies import get_gateway
from tts_relay.api.schemas import ErrorResponse, HealthResponse, TTSRequest, TTSResponse
from tts_relay.core.logging import error, get_logger, set_request_id, verbose
from tts_relay.core.metrics import metrics
from tts_relay.services.errors import MSG_GENERATION_FAILED, MSG_INVALID_REQUEST, RelayError
from tts_relay.services.gateway import SessionGateway

router = APIRouter()

_LOG = get_logger("tts-relay.api")

WELCOME_MESSAGE = "Welcome to TTS Api"

_AUDIO_MEDIA_TYPES = {"mp3": "audio/mpeg", "wav": "audio/wav"}

_TTS_ERRORS = {
    400: {"model": ErrorResponse, "description": "text or voiceId missing"},
    413: {"model": ErrorResponse, "description": "text longer than gateway.max_text_chars_http"},
    500: {"model": ErrorResponse, "description": "translation, synthesis or storage failure"},
}


def _new_request_id() -> str:
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)
    return rid


def _error_response(exc: RelayError, rid: str) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers={"X-Request-Id": rid})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same 400 as a missing field."""
    verbose(_LOG, "request_rejected", path=request.url.path, errors=len(exc.errors()))
    return JSONResponse(status_code=400, content={"error": MSG_INVALID_REQUEST})


@router.get("/")
def index():
    return JSONResponse(WELCOME_MESSAGE)


@router.get("/health", response_model=HealthResponse)
def health(gateway: SessionGateway = Depends(get_gateway)):
    """Liveness probe; always 200 while the process is serving."""
    return {
        "ok": True,
        "provider": gateway.provider.name,
        "active_sessions": gateway.active_sessions,
        "storage": gateway.store.storage_info(),
    }


@router.get("/voices")
async def voices(gateway: SessionGateway = Depends(get_gateway)):
    """Return the provider's voice catalog as the provider sent it."""
    rid = _new_request_id()
    try:
        catalog = await gateway.list_voices()
    except RelayError as e:
        return _error_response(e, rid)
    return JSONResponse(catalog, headers={"X-Request-Id": rid})


@router.post("/tts", response_model=TTSResponse, responses=_TTS_ERRORS)
async def tts(req: TTSRequest, response: Response, gateway: SessionGateway = Depends(get_gateway)):
    """
    Synthesize text, persist the audio and return where it was stored.

    With `language` set to a configured translation language the text is
    translated first; `translatedText` is the text actually spoken.
    """
    rid = _new_request_id()
    try:
        result = await gateway.synthesize(req.to_synthesis_request())
    except RelayError as e:
        return _error_response(e, rid)
    except Exception as e:
        # Unexpected: log internally, expose nothing
        error(_LOG, "tts_unhandled", error=str(e), error_type=type(e).__name__, exc_info=True)
        return JSONResponse(status_code=500, content={"error": MSG_GENERATION_FAILED}, headers={"X-Request-Id": rid})
    response.headers["X-Request-Id"] = rid
    return TTSResponse.model_validate(result.to_dict())


@router.get("/audio/{filename}", responses={404: {"model": ErrorResponse, "description": "no stored audio file"}})
def audio_file(filename: str, gateway: SessionGateway = Depends(get_gateway)):
    """Serve a file written by a finished session, by its bare name."""
    try:
        path = gateway.store.locate(filename)
    except RelayError as e:
        verbose(_LOG, "audio_not_found", filename=filename, reason=e.details.get("reason"))
        return JSONResponse(status_code=e.status_code, content=e.to_dict())
    media_type = _AUDIO_MEDIA_TYPES.get(path.suffix.lstrip("."), "application/octet-stream")
    return FileResponse(path, media_type=media_type, filename=path.name, content_disposition_type="inline")


@router.get("/metrics")
def prometheus_metrics():
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)
