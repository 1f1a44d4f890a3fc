"""
Upstream TTS Provider Base Class and Factory.

This module provides:
    - TTSProvider: Abstract base class for upstream synthesis APIs
    - ProviderError and subclasses: failures reported by a provider
    - create_provider(): Factory building the configured provider

Provider Selection:
    The provider is selected via TTS_RELAY_PROVIDER or provider.name in
    settings.yaml. Supported providers:
        - elevenlabs: streaming endpoint, audio arrives as it is generated (mp3)
        - topmediai: job endpoint returning a download URL (wav)

Implementing a New Provider:
    1. Create providers/<name>_provider.py
    2. Inherit from TTSProvider
    3. Implement stream() and list_voices()
    4. Register in create_provider() and core/config.API_KEY_ENV
"""
from __future__ import annotations

from typing import Any, AsyncIterator, Dict, Optional

import httpx

from tts_relay.core.config import ProviderConfig
from tts_relay.core.logging import get_logger


class ProviderError(Exception):
    """
    Failure reported by, or while talking to, an upstream provider.

    Attributes:
        provider: Provider name.
        status_code: Upstream HTTP status, if a response was received.
        details: Diagnostic context for logs (never sent to clients).
    """

    def __init__(
        self,
        message: str,
        provider: str = "",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ProviderAuthError(ProviderError):
    """Upstream rejected the API key (401/403)."""


class ProviderRateLimitError(ProviderError):
    """Upstream quota or rate limit hit (429)."""


class ProviderHTTPError(ProviderError):
    """Any other non-success upstream status."""


class ProviderConnectionError(ProviderError):
    """Network failure or timeout talking to the upstream API."""


class ProviderResponseError(ProviderError):
    """Upstream answered 2xx with a body we cannot use."""


_BODY_PREVIEW_CHARS = 200


def raise_for_status(response: httpx.Response, provider: str) -> None:
    """
    Translate an upstream error status into a ProviderError.

    The response body must already be read.
    """
    status = response.status_code
    if status < 400:
        return

    details = {"status": status, "body": response.text[:_BODY_PREVIEW_CHARS]}
    if status in (401, 403):
        raise ProviderAuthError("upstream rejected credentials", provider, status, details)
    if status == 429:
        raise ProviderRateLimitError("upstream rate limit reached", provider, status, details)
    raise ProviderHTTPError(f"upstream returned HTTP {status}", provider, status, details)


class TTSProvider:
    """
    Abstract base class for upstream TTS APIs.

    Subclasses share the application's httpx.AsyncClient; they never
    close it. stream() must be an async generator so that nothing is
    sent upstream until the relay starts iterating.

    Attributes:
        name: Provider identifier ("elevenlabs", "topmediai").
        audio_extension: File extension of the audio the provider returns.
        BASE_URL: Default API root, overridable via provider.base_url.
    """
    name: str = "base"
    audio_extension: str = "bin"
    BASE_URL: str = ""

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient):
        self.config = config
        self.client = client
        self.base_url = (config.base_url or self.BASE_URL).rstrip("/")
        self.logger = get_logger(f"tts-relay.provider.{self.name}")

    def resolve_model(self, model_id: Optional[str], streaming: bool = False) -> str:
        """Model id to use when the client did not send one."""
        if model_id:
            return model_id
        return self.config.stream_model_id if streaming else self.config.default_model_id

    def stream(self, text: str, voice_id: str, model_id: str) -> AsyncIterator[bytes]:
        """
        Synthesize text and yield the audio as it arrives.

        Raises:
            ProviderError: On any upstream failure, possibly mid-stream.
        """
        raise NotImplementedError

    async def synthesize(self, text: str, voice_id: str, model_id: str) -> bytes:
        """Synthesize text and return the complete audio payload."""
        parts = []
        async for chunk in self.stream(text, voice_id, model_id):
            parts.append(chunk)
        return b"".join(parts)

    async def list_voices(self) -> Any:
        """
        Return the provider's voice catalog as decoded JSON, unmodified.

        Raises:
            ProviderError: On any upstream failure.
        """
        raise NotImplementedError

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.get(url, **kwargs)
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(
                f"{type(exc).__name__}: {exc}", self.name, details={"url": url},
            ) from exc
        raise_for_status(response, self.name)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderResponseError("catalog response is not JSON", self.name, response.status_code) from exc


def create_provider(config: ProviderConfig, client: httpx.AsyncClient) -> TTSProvider:
    """
    Build the provider named in config.name.

    Raises:
        ValueError: If the provider name is unknown.
    """
    name = config.name.lower()
    if name == "elevenlabs":
        from tts_relay.tts.providers.elevenlabs_provider import ElevenLabsProvider
        return ElevenLabsProvider(config, client)
    if name == "topmediai":
        from tts_relay.tts.providers.topmediai_provider import TopMediaIProvider
        return TopMediaIProvider(config, client)
    raise ValueError(f"Unknown provider: {config.name}")
