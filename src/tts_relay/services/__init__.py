"""
tts-relay services layer.

    - errors.py: RelayError hierarchy and public messages
    - validators.py: request field validation
    - gateway.py: SessionGateway, the orchestrator used by the API layer

Only the error types are re-exported here; import the gateway from
tts_relay.services.gateway.
"""
from .errors import (
    AudioNotFoundError,
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

__all__ = [
    "RelayError",
    "ErrorCode",
    "AudioNotFoundError",
    "InvalidRequestError",
    "PayloadTooLargeError",
    "CatalogUnavailableError",
    "TranslationFailedError",
    "SynthesisFailedError",
    "StreamInterruptedError",
    "StorageWriteError",
]
