from __future__ import annotations

import pytest

from tts_relay.core.config import Settings
from tts_relay.services.gateway import SessionGateway
from tts_relay.tts.storage import AudioStore

from fakes import FakeProvider, FakeTranslator


def build_config(audio_dir, **sections):
    raw = {
        "provider": {"api_key": "test-key"},
        "storage": {"audio_dir": str(audio_dir)},
    }
    for name, values in sections.items():
        raw.setdefault(name, {}).update(values)
    return Settings(raw=raw).get_service_config()


@pytest.fixture
def audio_dir(tmp_path):
    return tmp_path / "audio_files"


@pytest.fixture
def make_gateway(audio_dir):
    """Factory: make_gateway(provider=None, translator=None, **config_sections)."""

    def _make(provider=None, translator=None, **sections):
        config = build_config(audio_dir, **sections)
        return SessionGateway(
            config,
            provider or FakeProvider(),
            translator or FakeTranslator(),
            AudioStore.from_config(config.storage),
        )

    return _make
