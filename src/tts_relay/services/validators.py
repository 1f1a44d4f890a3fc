"""
Input Validation for Synthesis Requests.

Runs before any upstream call, so a rejected request never reaches the
translator or the TTS provider.

Validation Rules:
    - text: required, a non-blank string, at most `max_length` characters
      (2000 on the WebSocket events; POST /tts is unlimited by default).
      A max_length of 0 disables the length check.
    - voice_id: required, a non-blank string, at most 100 characters
    - model_id: optional string, at most 100 characters
    - language: optional string, at most 10 characters

Missing or malformed fields raise InvalidRequestError, oversize text
raises PayloadTooLargeError. The detail of what was wrong is logged
and kept in `details`; clients only see the public message.
"""
from __future__ import annotations

from typing import Any, Optional

from tts_relay.core.logging import get_logger, verbose
from tts_relay.services.errors import InvalidRequestError, PayloadTooLargeError

_LOG = get_logger("tts-relay.validators")

MAX_VOICE_ID_LENGTH = 100
MAX_MODEL_ID_LENGTH = 100
MAX_LANGUAGE_LENGTH = 10


def _require_string(value: Any, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        verbose(_LOG, "validation_failed", field=field_name, reason="missing")
        raise InvalidRequestError(details={"field": field_name, "reason": "missing"})
    return value


def validate_text(text: Any, max_length: int) -> str:
    """
    Validate synthesis text.

    The text is returned unchanged; leading and trailing whitespace is
    passed through to the provider as the client sent it.

    Raises:
        InvalidRequestError: text missing or blank
        PayloadTooLargeError: len(text) > max_length (when max_length > 0)
    """
    text = _require_string(text, "text")
    if max_length > 0 and len(text) > max_length:
        verbose(_LOG, "validation_failed", field="text", chars=len(text), limit=max_length)
        raise PayloadTooLargeError(details={"chars": len(text), "limit": max_length})
    return text


def validate_voice_id(voice_id: Any) -> str:
    voice_id = _require_string(voice_id, "voiceId").strip()
    if len(voice_id) > MAX_VOICE_ID_LENGTH:
        raise InvalidRequestError(details={"field": "voiceId", "reason": "too long"})
    return voice_id


def _validate_optional(value: Any, field_name: str, max_length: int) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequestError(details={"field": field_name, "reason": "not a string"})
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise InvalidRequestError(details={"field": field_name, "reason": "too long"})
    return value


def validate_model_id(model_id: Any) -> Optional[str]:
    """Optional provider model id; blank means "use the provider default"."""
    return _validate_optional(model_id, "modelId", MAX_MODEL_ID_LENGTH)


def validate_language(language: Any) -> Optional[str]:
    """Optional target language code, lower-cased."""
    language = _validate_optional(language, "language", MAX_LANGUAGE_LENGTH)
    return language.lower() if language else None
