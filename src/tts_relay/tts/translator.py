"""
Text Translation via the public Google Translate web endpoint.

POST https://translate.googleapis.com/translate_a/single
    ?client=gtx&sl=auto&tl=<lang>&dt=t
    body (form-encoded): q=<text>

The response is a nested JSON array; element [0] holds one
[translated, source, ...] entry per sentence, which are joined back
together.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from tts_relay.core.config import TranslationConfig
from tts_relay.core.logging import get_logger, verbose
from tts_relay.tts.provider import ProviderConnectionError, ProviderResponseError, raise_for_status

_LOG = get_logger("tts-relay.translator")


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    target_text: str
    target_language: str


def _parse_sentences(body: Any) -> str:
    if not isinstance(body, list) or not body or not isinstance(body[0], list):
        raise ValueError("unexpected response shape")
    parts = []
    for sentence in body[0]:
        if isinstance(sentence, list) and sentence and isinstance(sentence[0], str):
            parts.append(sentence[0])
    if not parts:
        raise ValueError("response holds no translated text")
    return "".join(parts)


class GoogleTranslator:
    """
    Translator backed by translate.googleapis.com.

    Shares the application's httpx.AsyncClient. Failures surface as
    ProviderError subclasses, same as the TTS providers.
    """
    name = "google"
    BASE_URL = "https://translate.googleapis.com"

    def __init__(self, config: TranslationConfig, client: httpx.AsyncClient, base_url: str = BASE_URL):
        self.config = config
        self.client = client
        self.base_url = base_url.rstrip("/")

    def should_translate(self, language: str | None) -> bool:
        """True when `language` is one of the configured translation targets."""
        return bool(language) and language.lower() in self.config.languages

    async def translate(self, text: str, target_language: str) -> TranslationResult:
        params = {"client": "gtx", "sl": "auto", "tl": target_language, "dt": "t"}
        try:
            response = await self.client.post(
                f"{self.base_url}/translate_a/single",
                params=params,
                data={"q": text},
                timeout=self.config.timeout_s,
            )
        except httpx.HTTPError as exc:
            raise ProviderConnectionError(f"{type(exc).__name__}: {exc}", self.name) from exc
        raise_for_status(response, self.name)

        try:
            translated = _parse_sentences(response.json())
        except ValueError as exc:
            raise ProviderResponseError(str(exc), self.name, response.status_code) from exc

        verbose(_LOG, "translated", language=target_language, chars_in=len(text), chars_out=len(translated))
        return TranslationResult(source_text=text, target_text=translated, target_language=target_language)
