"""
Per-session output channel between the chunk relay and a client transport.

The relay side never blocks: offer() enqueues without waiting and
reports whether the event was accepted. The transport side iterates
the channel and writes each event to the client at its own pace.

Events, in the order a consumer sees them:
    AudioChunk*  (seq 0, 1, 2, ... with no gaps)
    SessionCompleted | SessionFailed   (exactly one, then iteration ends)

Closing the channel (client went away) drops anything still queued and
makes every later offer() a no-op; the producing session is unaffected.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, AsyncIterator, Optional, Union

from tts_relay.core.logging import get_logger, warn

if TYPE_CHECKING:
    from tts_relay.tts.storage import StoredAudioFile

_LOG = get_logger("tts-relay.channel")


@dataclass(frozen=True)
class AudioChunk:
    seq: int
    payload: bytes


@dataclass(frozen=True)
class SessionCompleted:
    """
    Terminal event of a successful session.

    Attributes:
        chunks: Number of chunks relayed (last seq + 1).
        stored: The persisted audio file.
        final_text: Text actually synthesized (translated if requested).
        audio: The full assembled payload.
    """
    chunks: int
    stored: "StoredAudioFile"
    final_text: str
    audio: bytes

    @property
    def last_seq(self) -> int:
        return self.chunks - 1


@dataclass(frozen=True)
class SessionFailed:
    """Terminal event of a failed session; message is safe to show clients."""
    code: str
    message: str


ChannelEvent = Union[AudioChunk, SessionCompleted, SessionFailed]

_CLOSED = object()


class ChunkChannel:
    """
    Unbounded single-consumer event queue with close semantics.

    Args:
        max_pending: If > 0, once this many chunks are waiting for the
            consumer further chunks are refused for the rest of the
            session, so the consumer receives a gap-free prefix. The
            terminal event is always accepted while the channel is open.
    """

    def __init__(self, max_pending: int = 0):
        self._queue: "asyncio.Queue[object]" = asyncio.Queue()
        self._max_pending = max_pending
        self._closed = False
        self._overflowed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def overflowed(self) -> bool:
        return self._overflowed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, event: ChannelEvent) -> bool:
        """Enqueue an event without waiting. Returns False if it was not accepted."""
        if self._closed:
            return False

        if isinstance(event, AudioChunk):
            if self._overflowed:
                return False
            if self._max_pending and self._queue.qsize() >= self._max_pending:
                self._overflowed = True
                warn(_LOG, "listener_too_slow", seq=event.seq, pending=self._queue.qsize())
                return False
            self._queue.put_nowait(event)
            return True

        # Terminal event: nothing may follow it
        self._queue.put_nowait(event)
        self._closed = True
        return True

    def close(self) -> None:
        """Stop delivery. Queued events are discarded and a waiting consumer wakes up."""
        if self._closed and self._queue.empty():
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[ChannelEvent]:
        """Next event, or None once the channel is closed and drained."""
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any further get() calls
            self._queue.put_nowait(_CLOSED)
            return None
        return item  # type: ignore[return-value]

    async def __aiter__(self) -> AsyncIterator[ChannelEvent]:
        while True:
            event = await self.get()
            if event is None:
                return
            yield event
            if not isinstance(event, AudioChunk):
                return
