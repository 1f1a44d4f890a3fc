"""
TopMediaI provider.

Synthesis is a two step job: POST /v1/text2speech answers with JSON
whose data.oss_url points at the finished wav, which is then downloaded.
The download is streamed so the relay sees it as a chunk sequence like
any other provider.
"""
from __future__ import annotations

from typing import Any, AsyncIterator

import httpx

from tts_relay.core.logging import debug, verbose
from tts_relay.tts.provider import (
    ProviderConnectionError,
    ProviderResponseError,
    TTSProvider,
    raise_for_status,
)


class TopMediaIProvider(TTSProvider):
    name = "topmediai"
    audio_extension = "wav"
    BASE_URL = "https://api.topmediai.com"

    def _headers(self) -> dict:
        return {"x-api-key": self.config.api_key or ""}

    async def _request_job(self, text: str, voice_id: str) -> str:
        payload = {"text": text, "speaker": voice_id, "emotion": self.config.emotion}
        response = await self.client.post(
            f"{self.base_url}/v1/text2speech",
            json=payload,
            headers=self._headers(),
            timeout=self.config.timeout_s,
        )
        raise_for_status(response, self.name)

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderResponseError("text2speech response is not JSON", self.name, response.status_code) from exc

        data = body.get("data") if isinstance(body, dict) else None
        audio_url = data.get("oss_url") if isinstance(data, dict) else None
        if not audio_url:
            raise ProviderResponseError(
                "text2speech response has no audio url", self.name, response.status_code,
                details={"body": response.text[:200]},
            )
        return str(audio_url)

    async def stream(self, text: str, voice_id: str, model_id: str) -> AsyncIterator[bytes]:
        # model_id has no meaning for this API
        verbose(self.logger, "job_request", voice=voice_id, chars=len(text))
        try:
            audio_url = await self._request_job(text, voice_id)
            verbose(self.logger, "job_ready", url=audio_url)
            async with self.client.stream("GET", audio_url, timeout=self.config.timeout_s) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise_for_status(response, self.name)
                async for chunk in response.aiter_bytes():
                    debug(self.logger, "download_read", bytes=len(chunk))
                    yield chunk
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(
                f"{type(exc).__name__}: {exc}", self.name, details={"voice": voice_id},
            ) from exc

    async def list_voices(self) -> Any:
        return await self._get_json(
            f"{self.base_url}/v1/voices_list",
            headers=self._headers(),
            timeout=self.config.timeout_s,
        )
