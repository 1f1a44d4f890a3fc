"""
tts-relay: Text-to-Speech relay service.

Accepts text over HTTP or a WebSocket, optionally translates it, has an
upstream TTS provider (ElevenLabs or TopMediaI) synthesize it, relays
the audio to the client chunk by chunk while it is being generated,
and stores the assembled audio as a file.

Key Features:
    - POST /tts: synthesize and store, returns the stored file path
    - /ws: generateTTS and textChunk events stream audioChunk frames
      (base64, seq 0..N-1) followed by a completion event
    - Sessions outlive client disconnects; the file is always written
    - Optional translation (Google Translate) for configured languages
    - Structured logging, Prometheus metrics

Example Usage:
    >>> import asyncio
    >>> from tts_relay.core.config import load_settings
    >>> from tts_relay.services.gateway import SynthesisRequest, create_gateway
    >>>
    >>> gateway = create_gateway(load_settings().get_service_config())
    >>> result = asyncio.run(gateway.synthesize(SynthesisRequest(text="Hello", voice_id="abc")))
    >>> result.path
    '/srv/audio_files/audio_1760790000000.mp3'
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
