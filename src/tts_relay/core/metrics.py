"""
Prometheus Metrics for the TTS Relay.

Metrics Exposed:
    tts_relay_sessions_total{channel,status}   - Sessions by entry point and outcome
    tts_relay_session_duration_seconds{channel} - Session wall time
    tts_relay_chunks_total{provider}           - Audio chunks relayed
    tts_relay_audio_bytes_total{provider}      - Audio bytes relayed
    tts_relay_chunks_dropped_total             - Chunks not delivered to a closed channel
    tts_relay_active_sessions                  - Sessions currently in flight
    tts_relay_catalog_requests_total{status}   - Voice catalog lookups
    tts_relay_translations_total{status}       - Translator calls

Usage:
    from tts_relay.core.metrics import metrics

    metrics.session_started()
    metrics.record_chunk("elevenlabs", 4096, delivered=True)
    metrics.session_finished("ws", "success", duration=1.2)

    content, content_type = metrics.get_metrics_response()

Scrape Config Example:
    scrape_configs:
      - job_name: 'tts-relay'
        static_configs:
          - targets: ['localhost:3000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from typing import Tuple

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class RelayMetrics:
    """
    Metric collection for the relay.

    Each instance owns its CollectorRegistry so that tests can build a
    fresh one without clashing with the module-level singleton.
    """

    def __init__(self) -> None:
        self._registry = CollectorRegistry()

        self._sessions_total = Counter(
            "tts_relay_sessions_total",
            "Synthesis sessions by channel and outcome",
            ["channel", "status"],
            registry=self._registry,
        )
        self._session_duration = Histogram(
            "tts_relay_session_duration_seconds",
            "Synthesis session duration in seconds",
            ["channel"],
            buckets=(0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
            registry=self._registry,
        )
        self._chunks_total = Counter(
            "tts_relay_chunks_total",
            "Audio chunks relayed from the upstream provider",
            ["provider"],
            registry=self._registry,
        )
        self._audio_bytes_total = Counter(
            "tts_relay_audio_bytes_total",
            "Audio bytes relayed from the upstream provider",
            ["provider"],
            registry=self._registry,
        )
        self._chunks_dropped = Counter(
            "tts_relay_chunks_dropped_total",
            "Chunks accumulated but not delivered because the client channel was closed",
            registry=self._registry,
        )
        self._active_sessions = Gauge(
            "tts_relay_active_sessions",
            "Synthesis sessions currently in flight",
            registry=self._registry,
        )
        self._catalog_requests = Counter(
            "tts_relay_catalog_requests_total",
            "Voice catalog lookups",
            ["status"],
            registry=self._registry,
        )
        self._translations = Counter(
            "tts_relay_translations_total",
            "Translator calls",
            ["status"],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def session_started(self) -> None:
        self._active_sessions.inc()

    def session_finished(self, channel: str, status: str, duration: float) -> None:
        """
        Record the end of a session.

        Args:
            channel: "http" or "ws"
            status: "success" or the lower-cased error code
            duration: Session wall time in seconds
        """
        self._active_sessions.dec()
        self._sessions_total.labels(channel=channel, status=status).inc()
        self._session_duration.labels(channel=channel).observe(duration)

    def record_chunk(self, provider: str, size: int, delivered: bool) -> None:
        self._chunks_total.labels(provider=provider).inc()
        self._audio_bytes_total.labels(provider=provider).inc(size)
        if not delivered:
            self._chunks_dropped.inc()

    def record_catalog(self, status: str) -> None:
        self._catalog_requests.labels(status=status).inc()

    def record_translation(self, status: str) -> None:
        self._translations.labels(status=status).inc()

    def get_metrics_response(self) -> Tuple[bytes, str]:
        """Return (content_bytes, content_type) in Prometheus text format."""
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Shared instance: from tts_relay.core.metrics import metrics
metrics = RelayMetrics()
