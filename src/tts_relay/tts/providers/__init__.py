"""
Upstream TTS Provider Implementations.

    - ElevenLabsProvider: chunked streaming endpoint, mp3
    - TopMediaIProvider: job endpoint plus audio download, wav

Providers are normally built through tts_relay.tts.provider.create_provider().
"""
from .elevenlabs_provider import ElevenLabsProvider
from .topmediai_provider import TopMediaIProvider

__all__ = ["ElevenLabsProvider", "TopMediaIProvider"]
