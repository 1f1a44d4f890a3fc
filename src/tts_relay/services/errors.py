"""
Relay Error Codes and Exceptions.

Every failure a client can observe is a RelayError. The `message` is
the public text sent to the client; anything diagnostic goes into
`details` and the logs, never into the response.

    RelayError
    ├── InvalidRequestError      (400) "text and voiceId required"
    ├── PayloadTooLargeError     (413) "chunk too long"
    ├── CatalogUnavailableError  (500) "Failed to fetch voices"
    ├── TranslationFailedError   (500) "Translation failed"
    ├── SynthesisFailedError     (500) "TTS generation failed"
    ├── StreamInterruptedError   (500) "TTS generation failed"
    ├── StorageWriteError        (500) "TTS generation failed"
    └── AudioNotFoundError       (404) "Audio not found"
"""
from __future__ import annotations

from typing import Any, Dict, Optional


class ErrorCode:
    """Machine-readable error codes used in logs and metrics."""
    INVALID_REQUEST = "INVALID_REQUEST"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    CATALOG_UNAVAILABLE = "CATALOG_UNAVAILABLE"
    TRANSLATION_FAILED = "TRANSLATION_FAILED"
    SYNTHESIS_FAILED = "SYNTHESIS_FAILED"
    STREAM_INTERRUPTED = "STREAM_INTERRUPTED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"
    AUDIO_NOT_FOUND = "AUDIO_NOT_FOUND"
    UNKNOWN_EVENT = "UNKNOWN_EVENT"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Public messages
MSG_INVALID_REQUEST = "text and voiceId required"
MSG_PAYLOAD_TOO_LARGE = "chunk too long"
MSG_CATALOG_UNAVAILABLE = "Failed to fetch voices"
MSG_TRANSLATION_FAILED = "Translation failed"
MSG_GENERATION_FAILED = "TTS generation failed"
MSG_UNKNOWN_EVENT = "unknown event"
MSG_AUDIO_NOT_FOUND = "Audio not found"


class RelayError(Exception):
    """
    Base exception for relay failures.

    Attributes:
        message: Client-facing message.
        code: Error code from ErrorCode.
        status_code: HTTP status used by the REST surface.
        details: Diagnostic context for logs.
    """
    status_code = 500

    def __init__(
        self,
        message: str = MSG_GENERATION_FAILED,
        code: str = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Body of an HTTP error response."""
        return {"error": self.message}


class InvalidRequestError(RelayError):
    """Text or voice id missing, blank, or of the wrong type."""
    status_code = 400

    def __init__(self, message: str = MSG_INVALID_REQUEST, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.INVALID_REQUEST, details)


class PayloadTooLargeError(RelayError):
    """Text longer than the entry point accepts."""
    status_code = 413

    def __init__(self, message: str = MSG_PAYLOAD_TOO_LARGE, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.PAYLOAD_TOO_LARGE, details)


class CatalogUnavailableError(RelayError):
    def __init__(self, message: str = MSG_CATALOG_UNAVAILABLE, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.CATALOG_UNAVAILABLE, details)


class TranslationFailedError(RelayError):
    def __init__(self, message: str = MSG_TRANSLATION_FAILED, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.TRANSLATION_FAILED, details)


class SynthesisFailedError(RelayError):
    """The upstream provider rejected the request or could not be reached."""

    def __init__(self, message: str = MSG_GENERATION_FAILED, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.SYNTHESIS_FAILED, details)


class StreamInterruptedError(RelayError):
    """The upstream chunk stream broke, stalled, or produced no audio."""

    def __init__(self, message: str = MSG_GENERATION_FAILED, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STREAM_INTERRUPTED, details)


class StorageWriteError(RelayError):
    """The assembled audio could not be persisted."""

    def __init__(self, message: str = MSG_GENERATION_FAILED, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.STORAGE_WRITE_FAILED, details)


class AudioNotFoundError(RelayError):
    """No stored audio file by that name."""
    status_code = 404

    def __init__(self, message: str = MSG_AUDIO_NOT_FOUND, details: Optional[Dict] = None):
        super().__init__(message, ErrorCode.AUDIO_NOT_FOUND, details)
