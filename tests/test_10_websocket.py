"""
Tests for the /ws relay protocol.

Frames are {"event": ..., "data": ...} JSON text messages.

Tests cover:
- getVoices -> voicesList / error
- generateTTS -> audioChunk* then ttsResult with fileBase64
- textChunk -> audioChunk* then chunkComplete with the chunk count
- Validation errors before any upstream call
- Unknown events and unparseable frames
- Client leaving mid-stream does not lose the stored file
- New sessions refused while the gateway shuts down
"""
import asyncio
import base64
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tts_relay.api.ws import parse_frame
from tts_relay.main import create_app
from tts_relay.tts.provider import ProviderAuthError

from fakes import FakeProvider, FakeTranslator


@pytest.fixture
def socket_for(make_gateway):
    """Factory: socket_for(provider=None, translator=None) -> (client, gateway)."""
    clients = []

    def _make(provider=None, translator=None, **sections):
        gateway = make_gateway(provider=provider, translator=translator, **sections)
        client = TestClient(create_app(gateway=gateway))
        client.__enter__()
        clients.append(client)
        return client, gateway

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


def _send(ws, event, data=None):
    ws.send_json({"event": event, "data": data})


def _receive_session(ws):
    """Frames up to and including the terminal one."""
    frames = []
    while True:
        frame = ws.receive_json()
        frames.append(frame)
        if frame["event"] != "audioChunk":
            return frames


class TestParseFrame:

    def test_valid(self):
        assert parse_frame('{"event": "getVoices"}') == ("getVoices", None)
        assert parse_frame('{"event": "textChunk", "data": {"text": "a"}}') == ("textChunk", {"text": "a"})

    @pytest.mark.parametrize("text", ["", "not json", "[1, 2]", '{"data": {}}', '{"event": 5}'])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_frame(text)


class TestVoices:

    def test_voices_list(self, socket_for):
        catalog = {"voices": [{"voice_id": "v1"}]}
        client, _ = socket_for(provider=FakeProvider(catalog=catalog))
        with client.websocket_connect("/ws") as ws:
            _send(ws, "getVoices")
            assert ws.receive_json() == {"event": "voicesList", "data": catalog}

    def test_voices_error(self, socket_for):
        client, _ = socket_for(provider=FakeProvider(catalog_error=ProviderAuthError("bad", "fake", 401)))
        with client.websocket_connect("/ws") as ws:
            _send(ws, "getVoices")
            assert ws.receive_json() == {"event": "error", "data": "Failed to fetch voices"}


class TestGenerateTTS:

    def test_chunks_then_result(self, socket_for):
        parts = [b"ab", b"cd", b"ef"]
        provider = FakeProvider(chunks=parts)
        client, _ = socket_for(provider=provider)

        with client.websocket_connect("/ws") as ws:
            _send(ws, "generateTTS", {"text": "Hello", "voiceId": "v1"})
            frames = _receive_session(ws)

        chunks = frames[:-1]
        assert [f["event"] for f in chunks] == ["audioChunk"] * 3
        assert [f["data"]["seq"] for f in chunks] == [0, 1, 2]
        assert [base64.b64decode(f["data"]["chunk"]) for f in chunks] == parts

        result = frames[-1]
        assert result["event"] == "ttsResult"
        assert result["data"]["message"] == "Audio saved locally"
        assert result["data"]["translatedText"] == "Hello"
        assert base64.b64decode(result["data"]["fileBase64"]) == b"abcdef"
        assert Path(result["data"]["path"]).read_bytes() == b"abcdef"
        assert provider.calls[0][2] == "eleven_flash_v2_5"

    def test_translated(self, socket_for):
        client, _ = socket_for(translator=FakeTranslator(target_text="नमस्ते"))
        with client.websocket_connect("/ws") as ws:
            _send(ws, "generateTTS", {"text": "Hello", "voiceId": "v1", "language": "hi"})
            result = _receive_session(ws)[-1]
        assert result["data"]["translatedText"] == "नमस्ते"

    def test_upstream_failure(self, socket_for):
        client, _ = socket_for(provider=FakeProvider(fail_after=0))
        with client.websocket_connect("/ws") as ws:
            _send(ws, "generateTTS", {"text": "Hello", "voiceId": "v1"})
            assert ws.receive_json() == {"event": "error", "data": "TTS generation failed"}

    def test_failure_after_chunks(self, socket_for):
        client, _ = socket_for(provider=FakeProvider(fail_after=2))
        with client.websocket_connect("/ws") as ws:
            _send(ws, "generateTTS", {"text": "Hello", "voiceId": "v1"})
            frames = _receive_session(ws)
        assert [f["event"] for f in frames] == ["audioChunk", "audioChunk", "error"]
        assert frames[-1]["data"] == "TTS generation failed"


class TestTextChunk:

    def test_chunk_complete(self, socket_for):
        provider = FakeProvider(chunks=[b"1", b"2", b"3", b"4"])
        client, _ = socket_for(provider=provider)

        with client.websocket_connect("/ws") as ws:
            _send(ws, "textChunk", {"text": "Part one.", "voiceId": "v1"})
            frames = _receive_session(ws)

        assert [f["data"]["seq"] for f in frames[:-1]] == [0, 1, 2, 3]
        done = frames[-1]
        assert done["event"] == "chunkComplete"
        assert done["data"]["message"] == "done"
        assert done["data"]["seq"] == 4
        assert done["data"]["translatedText"] == "Part one."
        assert Path(done["data"]["path"]).read_bytes() == b"1234"
        assert "fileBase64" not in done["data"]
        assert provider.calls[0][2] == "eleven_multilingual_v2"

    def test_too_long(self, socket_for):
        provider = FakeProvider()
        translator = FakeTranslator()
        client, _ = socket_for(provider=provider, translator=translator)

        with client.websocket_connect("/ws") as ws:
            _send(ws, "textChunk", {"text": "x" * 2001, "voiceId": "v1", "language": "hi"})
            assert ws.receive_json() == {"event": "error", "data": "chunk too long"}

        assert provider.calls == []
        assert translator.calls == []

    def test_sessions_in_order(self, socket_for):
        client, _ = socket_for()
        with client.websocket_connect("/ws") as ws:
            _send(ws, "textChunk", {"text": "one", "voiceId": "v1"})
            first = _receive_session(ws)
            _send(ws, "textChunk", {"text": "two", "voiceId": "v1"})
            second = _receive_session(ws)

        assert first[-1]["data"]["translatedText"] == "one"
        assert second[-1]["data"]["translatedText"] == "two"
        assert first[-1]["data"]["path"] != second[-1]["data"]["path"]


class TestProtocolErrors:

    @pytest.mark.parametrize("event", ["generateTTS", "textChunk"])
    @pytest.mark.parametrize("data", [{"text": "Hello"}, {"voiceId": "v1"}, "Hello", None])
    def test_invalid_payload(self, socket_for, event, data):
        provider = FakeProvider()
        client, _ = socket_for(provider=provider)
        with client.websocket_connect("/ws") as ws:
            _send(ws, event, data)
            assert ws.receive_json() == {"event": "error", "data": "text and voiceId required"}
        assert provider.calls == []

    def test_unknown_event(self, socket_for):
        client, _ = socket_for()
        with client.websocket_connect("/ws") as ws:
            _send(ws, "speak", {"text": "x"})
            assert ws.receive_json() == {"event": "error", "data": "unknown event"}

    def test_bad_frame_keeps_connection(self, socket_for):
        client, _ = socket_for()
        with client.websocket_connect("/ws") as ws:
            ws.send_text("this is not json")
            assert ws.receive_json() == {"event": "error", "data": "unknown event"}
            _send(ws, "getVoices")
            assert ws.receive_json()["event"] == "voicesList"


class TestDisconnect:

    def test_file_stored_after_client_leaves(self, make_gateway):
        parts = [bytes([i]) * 8 for i in range(5)]
        gateway = make_gateway(provider=FakeProvider(chunks=parts, delay=0.02))

        with TestClient(create_app(gateway=gateway)) as client:
            with client.websocket_connect("/ws") as ws:
                _send(ws, "generateTTS", {"text": "Hello", "voiceId": "v1"})
                first = ws.receive_json()
            # leaving the TestClient block drains the gateway

        assert first["event"] == "audioChunk"
        info = gateway.store.storage_info()
        assert info["file_count"] == 1
        assert info["total_bytes"] == sum(len(p) for p in parts)


class TestShutdown:

    def test_session_refused_while_closing(self, socket_for):
        """A closing gateway refuses new sessions with the generic failure."""
        provider = FakeProvider()
        client, gateway = socket_for(provider=provider)
        asyncio.run(gateway.aclose())

        with client.websocket_connect("/ws") as ws:
            _send(ws, "generateTTS", {"text": "Hello", "voiceId": "v1"})
            assert ws.receive_json() == {"event": "error", "data": "TTS generation failed"}
            _send(ws, "getVoices")
            assert ws.receive_json()["event"] == "voicesList"

        assert provider.calls == []
