"""
Chunk Relay: sequencing, live forwarding and accumulation of upstream audio.

Architecture:
    upstream chunks ──► AudioSession.run() ──► ChunkChannel (live client, optional)
                               │
                               └──► ordered buffer ──► AudioStore ──► SessionCompleted

For each non-empty upstream chunk, in arrival order:
    1. assign the next sequence number (0, 1, 2, ...)
    2. offer it to the channel (never waits for the client)
    3. append it to the session buffer

Only once the upstream is exhausted is the buffer joined, stored and a
single SessionCompleted emitted. A closed channel (client gone) stops
delivery but not accumulation, so the file is still written in full.
"""
from __future__ import annotations

import asyncio
from typing import AsyncIterator, List, Optional

from tts_relay.core.config import Defaults
from tts_relay.core.logging import debug, get_logger, verbose, warn
from tts_relay.core.metrics import metrics
from tts_relay.services.errors import StreamInterruptedError, SynthesisFailedError
from tts_relay.tts.channel import AudioChunk, ChunkChannel, SessionCompleted
from tts_relay.tts.provider import ProviderError
from tts_relay.tts.storage import AudioStore

_LOG = get_logger("tts-relay.relay")


async def _aclose(iterator: AsyncIterator[bytes]) -> None:
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
        await aclose()


class AudioSession:
    """
    One synthesis request's relay state.

    The session exclusively owns its buffer; the bytes are handed to the
    AudioStore in one piece when the stream ends. A session is single use.

    Args:
        store: Where the assembled audio is persisted.
        extension: File extension for the stored audio ("mp3", "wav").
        final_text: Text being synthesized, carried into the result.
        channel: Live listener, or None when nobody is streaming (HTTP).
        provider_name: Label for metrics.
        chunk_timeout_s: Longest wait for any single upstream chunk.
    """

    def __init__(
        self,
        store: AudioStore,
        extension: str,
        final_text: str,
        channel: Optional[ChunkChannel] = None,
        provider_name: str = "",
        chunk_timeout_s: float = Defaults.RELAY_CHUNK_TIMEOUT_S,
    ):
        self._store = store
        self._extension = extension
        self._final_text = final_text
        self._channel = channel
        self._provider = provider_name
        self._chunk_timeout = chunk_timeout_s

        self._buffer: List[bytes] = []
        self._next_seq = 0
        self._byte_length = 0
        self._delivered = 0
        self._started = False

    @property
    def chunk_count(self) -> int:
        return self._next_seq

    @property
    def byte_length(self) -> int:
        return self._byte_length

    @property
    def delivered(self) -> int:
        """Chunks accepted by the channel."""
        return self._delivered

    def _accept(self, payload: bytes) -> None:
        chunk = AudioChunk(seq=self._next_seq, payload=payload)
        self._next_seq += 1

        delivered = self._channel.offer(chunk) if self._channel is not None else False
        if delivered:
            self._delivered += 1

        self._buffer.append(payload)
        self._byte_length += len(payload)

        metrics.record_chunk(self._provider, len(payload), delivered=delivered or self._channel is None)
        debug(_LOG, "chunk", seq=chunk.seq, bytes=len(payload), delivered=delivered)

    async def _next(self, iterator: AsyncIterator[bytes]) -> bytes:
        try:
            return await asyncio.wait_for(iterator.__anext__(), timeout=self._chunk_timeout)
        except StopAsyncIteration:
            raise
        except asyncio.TimeoutError as exc:
            raise StreamInterruptedError(
                details={"reason": "chunk timeout", "timeout_s": self._chunk_timeout, "chunks": self._next_seq},
            ) from exc
        except ProviderError as exc:
            details = {
                "provider": exc.provider,
                "status": exc.status_code,
                "error": str(exc),
                "chunks": self._next_seq,
                **exc.details,
            }
            if self._next_seq == 0:
                raise SynthesisFailedError(details=details) from exc
            raise StreamInterruptedError(details=details) from exc
        except Exception as exc:
            raise StreamInterruptedError(
                details={"error_type": type(exc).__name__, "error": str(exc), "chunks": self._next_seq},
            ) from exc

    async def run(self, chunks: AsyncIterator[bytes]) -> SessionCompleted:
        """
        Drain `chunks`, relay and accumulate them, store the result.

        Returns:
            The SessionCompleted event, also offered to the channel.

        Raises:
            SynthesisFailedError: Upstream failed before producing audio.
            StreamInterruptedError: Upstream broke, stalled or produced nothing.
            StorageWriteError: The assembled audio could not be written.
        """
        if self._started:
            raise RuntimeError("AudioSession.run() called twice")
        self._started = True

        iterator = chunks.__aiter__()
        try:
            while True:
                try:
                    payload = await self._next(iterator)
                except StopAsyncIteration:
                    break
                if not payload:
                    continue
                self._accept(payload)
        finally:
            await _aclose(iterator)

        if self._next_seq == 0:
            raise StreamInterruptedError(details={"reason": "upstream produced no audio"})

        audio = b"".join(self._buffer)
        self._buffer.clear()
        stored = await self._store.save(audio, self._extension, final_text=self._final_text)

        if self._channel is not None and self._delivered < self._next_seq:
            warn(_LOG, "partial_delivery", chunks=self._next_seq, delivered=self._delivered)

        completed = SessionCompleted(
            chunks=self._next_seq,
            stored=stored,
            final_text=self._final_text,
            audio=audio,
        )
        if self._channel is not None:
            self._channel.offer(completed)
        verbose(_LOG, "relay_done", chunks=self._next_seq, bytes=self._byte_length)
        return completed
