"""
API Request/Response Schemas.

Wire field names are camelCase (voiceId, modelId, translatedText);
Python attributes are snake_case with aliases.

Every request field is optional at the schema level: a missing text or
voiceId must produce the relay's own 400 "text and voiceId required",
which SessionGateway.validate() raises, rather than a schema error.

Example Request:
    {
        "text": "Hello there",
        "voiceId": "21m00Tcm4TlvDq8ikWAM",
        "modelId": "eleven_multilingual_v2",
        "language": "hi"
    }
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from tts_relay.services.gateway import SynthesisRequest


class TTSRequest(BaseModel):
    """Body of POST /tts, also the payload of generateTTS and textChunk."""
    model_config = ConfigDict(populate_by_name=True)

    text: Optional[str] = Field(default=None, description="Text to synthesize")
    voice_id: Optional[str] = Field(default=None, alias="voiceId", description="Provider voice id")
    model_id: Optional[str] = Field(
        default=None,
        alias="modelId",
        description="Provider model id (defaults depend on the entry point)",
    )
    language: Optional[str] = Field(
        default=None,
        description="Target language; configured languages (default: hi) are translated first",
    )

    def to_synthesis_request(self) -> SynthesisRequest:
        return SynthesisRequest(
            text=self.text,
            voice_id=self.voice_id,
            model_id=self.model_id,
            language=self.language,
        )


class TTSResponse(BaseModel):
    """Successful POST /tts response."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    translated_text: str = Field(alias="translatedText")
    path: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    ok: bool
    provider: str
    active_sessions: int
    storage: Dict[str, Any]
