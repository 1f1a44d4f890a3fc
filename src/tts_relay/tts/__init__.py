"""
Audio relay pipeline.

    - provider.py: Upstream TTS provider base class and factory
    - providers/: ElevenLabs and TopMediaI implementations
    - translator.py: Google Translate client
    - channel.py: Per-session output channel and its events
    - relay.py: AudioSession, sequencing and accumulation of chunks
    - storage.py: Flat-file AudioStore
"""
