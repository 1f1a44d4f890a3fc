"""Tests for ChunkChannel delivery and close semantics."""
from __future__ import annotations

import asyncio

from tts_relay.tts.channel import AudioChunk, ChunkChannel, SessionCompleted, SessionFailed
from tts_relay.tts.storage import StoredAudioFile


def _completed(chunks=2):
    return SessionCompleted(
        chunks=chunks,
        stored=StoredAudioFile(path="/tmp/a.mp3", byte_length=4),
        final_text="hi",
        audio=b"abcd",
    )


async def _drain(channel):
    return [event async for event in channel]


def test_events_delivered_in_order():
    async def run():
        channel = ChunkChannel()
        assert channel.offer(AudioChunk(0, b"a"))
        assert channel.offer(AudioChunk(1, b"b"))
        assert channel.offer(_completed())
        return await _drain(channel)

    events = asyncio.run(run())
    assert [e.seq for e in events[:2]] == [0, 1]
    assert isinstance(events[-1], SessionCompleted)
    assert events[-1].last_seq == 1


def test_nothing_accepted_after_terminal():
    async def run():
        channel = ChunkChannel()
        channel.offer(SessionFailed(code="X", message="TTS generation failed"))
        assert channel.closed
        assert not channel.offer(AudioChunk(0, b"late"))
        return await _drain(channel)

    events = asyncio.run(run())
    assert len(events) == 1
    assert events[0].message == "TTS generation failed"


def test_close_discards_and_wakes_consumer():
    async def run():
        channel = ChunkChannel()
        consumer = asyncio.create_task(_drain(channel))
        await asyncio.sleep(0)
        channel.offer(AudioChunk(0, b"a"))
        await asyncio.sleep(0.01)
        channel.close()
        assert not channel.offer(AudioChunk(1, b"b"))
        return await asyncio.wait_for(consumer, timeout=1)

    events = asyncio.run(run())
    assert [e.seq for e in events] == [0]


def test_get_after_close_returns_none():
    async def run():
        channel = ChunkChannel()
        channel.offer(AudioChunk(0, b"a"))
        channel.close()
        return await channel.get(), await channel.get()

    assert asyncio.run(run()) == (None, None)


def test_max_pending_truncates_to_prefix():
    async def run():
        channel = ChunkChannel(max_pending=2)
        accepted = [channel.offer(AudioChunk(i, b"x")) for i in range(4)]
        terminal = channel.offer(_completed(chunks=4))
        return accepted, terminal, channel.overflowed, await _drain(channel)

    accepted, terminal, overflowed, events = asyncio.run(run())
    assert accepted == [True, True, False, False]
    assert terminal is True
    assert overflowed
    assert [e.seq for e in events if isinstance(e, AudioChunk)] == [0, 1]
    assert isinstance(events[-1], SessionCompleted)


def test_overflow_is_sticky():
    async def run():
        channel = ChunkChannel(max_pending=1)
        channel.offer(AudioChunk(0, b"x"))
        channel.offer(AudioChunk(1, b"x"))  # overflows
        await channel.get()                  # consumer catches up
        return channel.offer(AudioChunk(2, b"x"))

    assert asyncio.run(run()) is False
