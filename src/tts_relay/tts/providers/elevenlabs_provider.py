"""
ElevenLabs provider.

Streams audio from POST /v1/text-to-speech/{voice_id}/stream. The
response body is chunked mp3, forwarded as-is: chunk boundaries are
whatever the upstream connection delivers.
"""
from __future__ import annotations

from typing import Any, AsyncIterator
from urllib.parse import quote

import httpx

from tts_relay.core.logging import debug, verbose
from tts_relay.tts.provider import ProviderConnectionError, TTSProvider, raise_for_status


class ElevenLabsProvider(TTSProvider):
    name = "elevenlabs"
    audio_extension = "mp3"
    BASE_URL = "https://api.elevenlabs.io"

    def _headers(self) -> dict:
        return {"xi-api-key": self.config.api_key or "", "Accept": "audio/mpeg"}

    async def stream(self, text: str, voice_id: str, model_id: str) -> AsyncIterator[bytes]:
        url = f"{self.base_url}/v1/text-to-speech/{quote(voice_id, safe='')}/stream"
        payload = {"text": text, "model_id": model_id}
        verbose(self.logger, "stream_request", voice=voice_id, model=model_id, chars=len(text))

        try:
            async with self.client.stream(
                "POST",
                url,
                params={"output_format": self.config.output_format},
                json=payload,
                headers=self._headers(),
                timeout=self.config.timeout_s,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise_for_status(response, self.name)
                async for chunk in response.aiter_bytes():
                    debug(self.logger, "upstream_read", bytes=len(chunk))
                    yield chunk
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(
                f"{type(exc).__name__}: {exc}", self.name, details={"voice": voice_id},
            ) from exc

    async def list_voices(self) -> Any:
        return await self._get_json(
            f"{self.base_url}/v1/voices",
            headers={"xi-api-key": self.config.api_key or ""},
            timeout=self.config.timeout_s,
        )
