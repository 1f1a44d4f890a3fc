"""Tests for Prometheus metrics."""
from __future__ import annotations

import asyncio

from tts_relay.core.metrics import RelayMetrics
from tts_relay.services.gateway import SynthesisRequest
from tts_relay.tts.channel import ChunkChannel

from fakes import FakeProvider


class TestRelayMetrics:
    """Counters on a private registry."""

    def test_session_lifecycle(self):
        m = RelayMetrics()
        m.session_started()
        assert m.registry.get_sample_value("tts_relay_active_sessions") == 1.0

        m.session_finished("ws", "success", 0.4)
        assert m.registry.get_sample_value("tts_relay_active_sessions") == 0.0
        assert m.registry.get_sample_value(
            "tts_relay_sessions_total", {"channel": "ws", "status": "success"}
        ) == 1.0
        assert m.registry.get_sample_value(
            "tts_relay_session_duration_seconds_count", {"channel": "ws"}
        ) == 1.0

    def test_chunks_and_drops(self):
        m = RelayMetrics()
        m.record_chunk("elevenlabs", 100, delivered=True)
        m.record_chunk("elevenlabs", 50, delivered=False)

        assert m.registry.get_sample_value("tts_relay_chunks_total", {"provider": "elevenlabs"}) == 2.0
        assert m.registry.get_sample_value("tts_relay_audio_bytes_total", {"provider": "elevenlabs"}) == 150.0
        assert m.registry.get_sample_value("tts_relay_chunks_dropped_total") == 1.0

    def test_exposition(self):
        m = RelayMetrics()
        m.record_catalog("error")
        m.record_translation("success")
        content, content_type = m.get_metrics_response()
        text = content.decode()
        assert content_type.startswith("text/plain")
        assert 'tts_relay_catalog_requests_total{status="error"} 1.0' in text
        assert 'tts_relay_translations_total{status="success"} 1.0' in text

    def test_separate_registries(self):
        a, b = RelayMetrics(), RelayMetrics()
        a.record_catalog("success")
        assert b.registry.get_sample_value("tts_relay_catalog_requests_total", {"status": "success"}) is None


class TestGatewayMetrics:
    """The shared instance moves as sessions run."""

    def test_failed_session_counted(self, make_gateway):
        from tts_relay.core.metrics import metrics

        labels = {"channel": "ws", "status": "stream_interrupted"}
        before = metrics.registry.get_sample_value("tts_relay_sessions_total", labels) or 0.0

        gateway = make_gateway(provider=FakeProvider(fail_after=1))

        async def run():
            task = gateway.start_session(SynthesisRequest(text="Hi", voice_id="v1"), ChunkChannel())
            await asyncio.gather(task, return_exceptions=True)

        asyncio.run(run())

        assert metrics.registry.get_sample_value("tts_relay_sessions_total", labels) == before + 1
        assert metrics.registry.get_sample_value("tts_relay_active_sessions") == 0.0
