"""
SessionGateway - validation and orchestration of synthesis sessions.

Both entry points go through this class:
    - POST /tts                    -> synthesize()     (awaits the result)
    - WebSocket generateTTS/textChunk -> start_session() (detached task)

Pipeline:
    Request → Validate → (Translate) → Provider stream → AudioSession → AudioStore → Result

Validation runs before anything is sent upstream. Translation, synthesis
and storage run inside the session, so on the WebSocket path they belong
to the detached task and finish even if the client disconnects.

Error Handling:
    Every failure surfaces as a RelayError carrying only the public
    message; the cause is logged here with the request id. Live listeners
    receive a SessionFailed event instead of an exception.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Dict, Optional, Set

import httpx

from tts_relay.core.config import RelayServiceConfig
from tts_relay.core.logging import error, fail, get_logger, info, success, verbose, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.errors import (
    CatalogUnavailableError,
    ErrorCode,
    InvalidRequestError,
    MSG_GENERATION_FAILED,
    RelayError,
    SynthesisFailedError,
    TranslationFailedError,
)
from tts_relay.services.validators import (
    validate_language,
    validate_model_id,
    validate_text,
    validate_voice_id,
)
from tts_relay.tts.channel import ChunkChannel, SessionCompleted, SessionFailed
from tts_relay.tts.provider import ProviderError, TTSProvider, create_provider
from tts_relay.tts.relay import AudioSession
from tts_relay.tts.storage import AudioStore
from tts_relay.tts.translator import GoogleTranslator

_LOG = get_logger("tts-relay.gateway")

RESULT_MESSAGE = "Audio saved locally"


# =============================================================================
# Request/Result Dataclasses
# =============================================================================

@dataclass
class SynthesisRequest:
    """
    A client's synthesis request, before or after validation.

    Attributes:
        text: Text to synthesize.
        voice_id: Provider voice id.
        model_id: Provider model id; None selects the entry point's default.
        language: Target language; translation happens only for the
            configured translation languages.
    """
    text: Any
    voice_id: Any
    model_id: Any = None
    language: Any = None

    @classmethod
    def from_payload(cls, payload: Any) -> "SynthesisRequest":
        """Build from a client JSON object using the wire field names."""
        if not isinstance(payload, dict):
            raise InvalidRequestError(details={"reason": "payload is not an object"})
        return cls(
            text=payload.get("text"),
            voice_id=payload.get("voiceId"),
            model_id=payload.get("modelId"),
            language=payload.get("language"),
        )


@dataclass(frozen=True)
class SynthesisResult:
    message: str
    translated_text: str
    path: str
    byte_length: int
    chunks: int

    @classmethod
    def from_completed(cls, completed: SessionCompleted) -> "SynthesisResult":
        return cls(
            message=RESULT_MESSAGE,
            translated_text=completed.final_text,
            path=completed.stored.path,
            byte_length=completed.stored.byte_length,
            chunks=completed.chunks,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "translatedText": self.translated_text, "path": self.path}


# =============================================================================
# Gateway
# =============================================================================

class SessionGateway:
    """
    Entry point for voice listing and synthesis sessions.

    Owns the set of detached session tasks; connections only hold the
    channels those tasks write to. aclose() waits for in-flight sessions
    (bounded by relay.shutdown_grace_s) before releasing the HTTP client.
    """

    def __init__(
        self,
        config: RelayServiceConfig,
        provider: TTSProvider,
        translator: GoogleTranslator,
        store: AudioStore,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._config = config
        self._provider = provider
        self._translator = translator
        self._store = store
        self._owned_client = http_client

        self._tasks: Set[asyncio.Task] = set()
        self._active = 0
        self._closed = False
        self._text_preview_chars = config.logging.text_preview_chars

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def config(self) -> RelayServiceConfig:
        return self._config

    @property
    def provider(self) -> TTSProvider:
        return self._provider

    @property
    def store(self) -> AudioStore:
        return self._store

    @property
    def active_sessions(self) -> int:
        """Sessions currently running, on either entry point."""
        return self._active

    @property
    def pending_tasks(self) -> int:
        """Detached session tasks not yet finished."""
        return len(self._tasks)

    # =========================================================================
    # Voices
    # =========================================================================

    async def list_voices(self) -> Any:
        """
        Return the provider's voice catalog unmodified.

        Raises:
            CatalogUnavailableError: On any provider failure.
        """
        try:
            catalog = await self._provider.list_voices()
        except ProviderError as exc:
            metrics.record_catalog("error")
            error(_LOG, "catalog_failed", provider=exc.provider, status=exc.status_code,
                  error=str(exc), error_type=type(exc).__name__)
            raise CatalogUnavailableError(details={"error": str(exc)}) from exc
        metrics.record_catalog("success")
        return catalog

    # =========================================================================
    # Sessions
    # =========================================================================

    def validate(self, request: SynthesisRequest, max_text_chars: int) -> SynthesisRequest:
        """
        Check a request and return its normalized copy.

        The voice id is checked first so that a request missing both
        fields reports the same error as one missing either.

        Raises:
            InvalidRequestError: Text or voice id missing or malformed.
            PayloadTooLargeError: Text longer than max_text_chars.
        """
        voice_id = validate_voice_id(request.voice_id)
        text = validate_text(request.text, max_length=max_text_chars)
        return SynthesisRequest(
            text=text,
            voice_id=voice_id,
            model_id=validate_model_id(request.model_id),
            language=validate_language(request.language),
        )

    async def _resolve_text(self, request: SynthesisRequest) -> str:
        if not self._translator.should_translate(request.language):
            return request.text
        try:
            result = await self._translator.translate(request.text, request.language)
        except ProviderError as exc:
            metrics.record_translation("error")
            raise TranslationFailedError(
                details={"language": request.language, "error": str(exc), "error_type": type(exc).__name__},
            ) from exc
        metrics.record_translation("success")
        info(_LOG, "translated", language=request.language, chars=len(result.target_text))
        return result.target_text

    async def _run_session(
        self,
        request: SynthesisRequest,
        channel: Optional[ChunkChannel],
        channel_name: str,
        streaming_model: bool,
    ) -> SessionCompleted:
        t0 = perf_counter()
        status = "success"
        self._active += 1
        metrics.session_started()
        try:
            final_text = await self._resolve_text(request)
            model_id = self._provider.resolve_model(request.model_id, streaming=streaming_model)
            session = AudioSession(
                store=self._store,
                extension=self._provider.audio_extension,
                final_text=final_text,
                channel=channel,
                provider_name=self._provider.name,
                chunk_timeout_s=self._config.relay.chunk_timeout_s,
            )
            completed = await session.run(self._provider.stream(final_text, request.voice_id, model_id))
            success(_LOG, "session_done", channel=channel_name, chunks=completed.chunks,
                    bytes=completed.stored.byte_length, path=completed.stored.path,
                    seconds=round(perf_counter() - t0, 3))
            return completed
        except RelayError as exc:
            status = exc.code.lower()
            fail(_LOG, "session_failed", channel=channel_name, code=exc.code,
                 cause=exc.details, seconds=round(perf_counter() - t0, 3))
            if channel is not None:
                channel.offer(SessionFailed(code=exc.code, message=exc.message))
            raise
        except Exception as exc:
            status = ErrorCode.INTERNAL_ERROR.lower()
            error(_LOG, "session_crashed", channel=channel_name,
                  error=str(exc), error_type=type(exc).__name__, exc_info=True)
            if channel is not None:
                channel.offer(SessionFailed(code=ErrorCode.INTERNAL_ERROR, message=MSG_GENERATION_FAILED))
            raise SynthesisFailedError(details={"error": str(exc), "error_type": type(exc).__name__}) from exc
        finally:
            self._active -= 1
            metrics.session_finished(channel_name, status, perf_counter() - t0)

    def _log_request(self, channel_name: str, request: SynthesisRequest) -> None:
        preview = request.text[:self._text_preview_chars] if self._text_preview_chars > 0 else ""
        info(_LOG, "request", channel=channel_name, chars=len(request.text), voice=request.voice_id,
             language=request.language, text_preview=preview)

    async def synthesize(self, request: SynthesisRequest) -> SynthesisResult:
        """
        Run a session to completion with no live listener (HTTP variant).

        Raises:
            RelayError: Validation, translation, synthesis or storage failure.
        """
        request = self.validate(request, self._config.gateway.max_text_chars_http)
        self._log_request("http", request)
        completed = await self._run_session(request, channel=None, channel_name="http", streaming_model=False)
        return SynthesisResult.from_completed(completed)

    def start_session(
        self,
        request: SynthesisRequest,
        channel: ChunkChannel,
        max_text_chars: Optional[int] = None,
        streaming_model: bool = False,
    ) -> "asyncio.Task[SessionCompleted]":
        """
        Validate, then run the session as a detached task (streaming variant).

        The task writes AudioChunk events and exactly one terminal event to
        `channel`. It is owned by the gateway, not by the caller: closing
        the channel does not stop it.

        Args:
            max_text_chars: Text limit, defaults to gateway.max_text_chars_stream.
            streaming_model: Default to provider.stream_model_id instead of
                provider.default_model_id when the request names no model.

        Raises:
            InvalidRequestError, PayloadTooLargeError: Before any task starts.
            RuntimeError: If the gateway is shutting down.
        """
        if self._closed:
            raise RuntimeError("gateway is closed")
        limit = max_text_chars if max_text_chars is not None else self._config.gateway.max_text_chars_stream
        request = self.validate(request, limit)
        self._log_request("ws", request)

        # create_task copies the current context, request id included
        task = asyncio.create_task(self._run_session(request, channel, "ws", streaming_model))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            # Already logged in _run_session
            task.exception()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def aclose(self, grace_s: Optional[float] = None) -> None:
        """
        Wait for in-flight sessions, cancel stragglers, close the HTTP client.
        """
        self._closed = True
        grace = self._config.relay.shutdown_grace_s if grace_s is None else grace_s

        if self._tasks:
            info(_LOG, "draining_sessions", sessions=len(self._tasks), grace_s=grace)
            pending = set(self._tasks)
            if grace > 0:
                _, pending = await asyncio.wait(pending, timeout=grace)
            if pending:
                warn(_LOG, "sessions_cancelled", sessions=len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        if self._owned_client is not None:
            await self._owned_client.aclose()
            verbose(_LOG, "http_client_closed")


def create_gateway(
    config: RelayServiceConfig,
    http_client: Optional[httpx.AsyncClient] = None,
    provider: Optional[TTSProvider] = None,
    translator: Optional[GoogleTranslator] = None,
    store: Optional[AudioStore] = None,
) -> SessionGateway:
    """
    Wire up a SessionGateway from configuration.

    Any collaborator may be passed in (tests inject fakes). If no HTTP
    client is given, one is created and closed again by aclose().
    """
    owned_client = None
    if http_client is None:
        http_client = httpx.AsyncClient(timeout=config.provider.timeout_s)
        owned_client = http_client

    if provider is None:
        provider = create_provider(config.provider, http_client)
    if translator is None:
        translator = GoogleTranslator(config.translation, http_client)
    if store is None:
        store = AudioStore.from_config(config.storage)

    info(_LOG, "gateway_ready", provider=provider.name, audio_dir=str(store.audio_dir),
         translate=",".join(config.translation.languages))
    return SessionGateway(config, provider, translator, store, http_client=owned_client)
