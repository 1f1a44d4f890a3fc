"""Tests for the error hierarchy and request validation."""
from __future__ import annotations

import pytest

from tts_relay.services.errors import (
    CatalogUnavailableError,
    ErrorCode,
    InvalidRequestError,
    PayloadTooLargeError,
    RelayError,
    StorageWriteError,
    StreamInterruptedError,
    SynthesisFailedError,
    TranslationFailedError,
)
from tts_relay.services.validators import (
    validate_language,
    validate_model_id,
    validate_text,
    validate_voice_id,
)


class TestErrors:

    @pytest.mark.parametrize("exc_cls, status, message", [
        (InvalidRequestError, 400, "text and voiceId required"),
        (PayloadTooLargeError, 413, "chunk too long"),
        (CatalogUnavailableError, 500, "Failed to fetch voices"),
        (TranslationFailedError, 500, "Translation failed"),
        (SynthesisFailedError, 500, "TTS generation failed"),
        (StreamInterruptedError, 500, "TTS generation failed"),
        (StorageWriteError, 500, "TTS generation failed"),
    ])
    def test_public_message_and_status(self, exc_cls, status, message):
        exc = exc_cls(details={"secret": "upstream said no"})

        assert isinstance(exc, RelayError)
        assert exc.status_code == status
        assert exc.message == message
        assert exc.to_dict() == {"error": message}

    def test_details_not_in_response(self):
        exc = SynthesisFailedError(details={"body": "invalid api key xyz"})
        assert "xyz" not in str(exc.to_dict())
        assert exc.details["body"] == "invalid api key xyz"

    def test_codes(self):
        assert InvalidRequestError().code == ErrorCode.INVALID_REQUEST
        assert StreamInterruptedError().code == ErrorCode.STREAM_INTERRUPTED
        assert StorageWriteError().code == ErrorCode.STORAGE_WRITE_FAILED


class TestValidateText:

    def test_valid_text_unchanged(self):
        assert validate_text("  Hello  ", max_length=100) == "  Hello  "

    @pytest.mark.parametrize("value", [None, "", "   ", 42, ["a"]])
    def test_missing_or_wrong_type(self, value):
        with pytest.raises(InvalidRequestError):
            validate_text(value, max_length=100)

    def test_limit_is_inclusive(self):
        assert validate_text("a" * 2000, max_length=2000)

    def test_too_long(self):
        with pytest.raises(PayloadTooLargeError) as exc_info:
            validate_text("a" * 2001, max_length=2000)
        assert exc_info.value.details == {"chars": 2001, "limit": 2000}

    def test_zero_limit_disables_check(self):
        assert validate_text("a" * 50_000, max_length=0) == "a" * 50_000


class TestValidateVoiceId:

    def test_valid(self):
        assert validate_voice_id(" abc ") == "abc"

    @pytest.mark.parametrize("value", [None, "", "  ", 7])
    def test_missing(self, value):
        with pytest.raises(InvalidRequestError):
            validate_voice_id(value)

    def test_too_long(self):
        with pytest.raises(InvalidRequestError):
            validate_voice_id("v" * 101)


class TestOptionalFields:

    def test_model_id_blank_is_none(self):
        assert validate_model_id(None) is None
        assert validate_model_id("  ") is None
        assert validate_model_id("eleven_flash_v2_5") == "eleven_flash_v2_5"

    def test_model_id_wrong_type(self):
        with pytest.raises(InvalidRequestError):
            validate_model_id(3)

    def test_language_lowercased(self):
        assert validate_language("HI") == "hi"
        assert validate_language("") is None

    def test_language_too_long(self):
        with pytest.raises(InvalidRequestError):
            validate_language("x" * 11)
