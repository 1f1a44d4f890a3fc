"""
WebSocket Relay Endpoint (/ws).

Frames are JSON text messages of the form {"event": <name>, "data": <payload>}.

Client → server:
    getVoices                       -> voicesList <catalog> | error <message>
    generateTTS {text, voiceId, modelId?, language?}
                                    -> audioChunk* then ttsResult | error
    textChunk   {text, voiceId, modelId?, language?}
                                    -> audioChunk* then chunkComplete | error

Server → client payloads:
    audioChunk     {"chunk": <base64>, "seq": n}          seq = 0, 1, 2, ...
    ttsResult      {"message", "translatedText", "path", "fileBase64"}
    chunkComplete  {"message": "done", "translatedText", "path", "seq": <chunk count>}
    error          "<public message>"

Each synthesis event runs as a session owned by the gateway. The
connection only owns the channels and the pump tasks that copy channel
events to the socket; on disconnect those are closed and the sessions
carry on to store their audio.
"""
from __future__ import annotations

import asyncio
import base64
import json
import uuid
from typing import Any, Optional, Set, Tuple

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from tts_relay.api.dependencies import get_gateway
from tts_relay.core.logging import get_logger, info, set_request_id, verbose, warn
from tts_relay.services.errors import MSG_GENERATION_FAILED, MSG_UNKNOWN_EVENT, RelayError
from tts_relay.services.gateway import RESULT_MESSAGE, SessionGateway, SynthesisRequest
from tts_relay.tts.channel import AudioChunk, ChunkChannel, SessionCompleted, SessionFailed

router = APIRouter()

_LOG = get_logger("tts-relay.ws")

CHUNK_COMPLETE_MESSAGE = "done"


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def parse_frame(text: str) -> Tuple[str, Any]:
    """
    Split a client frame into (event, data).

    Raises:
        ValueError: Not JSON, or not an object with a string "event".
    """
    message = json.loads(text)
    if not isinstance(message, dict) or not isinstance(message.get("event"), str):
        raise ValueError("frame must be an object with an event name")
    return message["event"], message.get("data")


class RelayConnection:
    """
    State of one WebSocket connection.

    All writes to the socket go through send(), serialized by a lock,
    so events of concurrent sessions never interleave inside a frame.
    """

    def __init__(self, websocket: WebSocket, gateway: SessionGateway):
        self._ws = websocket
        self._gateway = gateway
        self._send_lock = asyncio.Lock()
        self._channels: Set[ChunkChannel] = set()
        self._tasks: Set[asyncio.Task] = set()
        self._open = True

    @property
    def open(self) -> bool:
        return self._open

    async def send(self, event: str, data: Any) -> bool:
        """Send one event frame. Returns False once the client is gone."""
        if not self._open:
            return False
        async with self._send_lock:
            try:
                await self._ws.send_json({"event": event, "data": data})
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                verbose(_LOG, "send_failed", event_name=event, error_type=type(e).__name__)
                self.close()
                return False
        return True

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # =========================================================================
    # Event handlers
    # =========================================================================

    async def handle(self, event: str, data: Any) -> None:
        set_request_id(uuid.uuid4().hex[:12])
        verbose(_LOG, "event", event_name=event)

        if event == "getVoices":
            self._spawn(self._send_voices())
        elif event == "generateTTS":
            await self._start(data, complete_event="ttsResult", streaming_model=True)
        elif event == "textChunk":
            await self._start(data, complete_event="chunkComplete", streaming_model=False)
        else:
            await self.send("error", MSG_UNKNOWN_EVENT)

    async def _send_voices(self) -> None:
        try:
            catalog = await self._gateway.list_voices()
        except RelayError as e:
            await self.send("error", e.message)
            return
        await self.send("voicesList", catalog)

    async def _start(self, data: Any, complete_event: str, streaming_model: bool) -> None:
        channel = ChunkChannel(max_pending=self._gateway.config.relay.max_pending_chunks)
        try:
            request = SynthesisRequest.from_payload(data)
            self._gateway.start_session(request, channel, streaming_model=streaming_model)
        except RelayError as e:
            await self.send("error", e.message)
            return
        except RuntimeError as e:
            # gateway is shutting down
            warn(_LOG, "session_refused", error=str(e))
            await self.send("error", MSG_GENERATION_FAILED)
            return
        self._channels.add(channel)
        self._spawn(self._pump(channel, complete_event))

    async def _pump(self, channel: ChunkChannel, complete_event: str) -> None:
        try:
            async for item in channel:
                if isinstance(item, AudioChunk):
                    sent = await self.send("audioChunk", {"chunk": _b64(item.payload), "seq": item.seq})
                elif isinstance(item, SessionCompleted):
                    sent = await self.send(complete_event, self._completion_payload(item, complete_event))
                elif isinstance(item, SessionFailed):
                    sent = await self.send("error", item.message)
                else:
                    sent = True
                if not sent:
                    channel.close()
                    return
        finally:
            self._channels.discard(channel)

    @staticmethod
    def _completion_payload(item: SessionCompleted, complete_event: str) -> dict:
        if complete_event == "ttsResult":
            return {
                "message": RESULT_MESSAGE,
                "translatedText": item.final_text,
                "path": item.stored.path,
                "fileBase64": _b64(item.audio),
            }
        return {
            "message": CHUNK_COMPLETE_MESSAGE,
            "translatedText": item.final_text,
            "path": item.stored.path,
            "seq": item.chunks,
        }

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def close(self) -> None:
        """Stop delivery to this client; running sessions are unaffected."""
        if not self._open:
            return
        self._open = False
        for channel in list(self._channels):
            channel.close()

    async def shutdown(self) -> None:
        self.close()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


async def _receive_text(websocket: WebSocket) -> Optional[str]:
    """Next text frame, "" for a binary frame, None on disconnect."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        return None
    if message.get("text") is not None:
        return message["text"]
    return ""


@router.websocket("/ws")
async def relay_socket(websocket: WebSocket, gateway: SessionGateway = Depends(get_gateway)):
    await websocket.accept()
    conn = RelayConnection(websocket, gateway)
    client = f"{websocket.client.host}:{websocket.client.port}" if websocket.client else "-"
    info(_LOG, "client_connected", client=client)
    try:
        while True:
            text = await _receive_text(websocket)
            if text is None:
                break
            try:
                event, data = parse_frame(text)
            except ValueError:
                warn(_LOG, "bad_frame", client=client, chars=len(text))
                await conn.send("error", MSG_UNKNOWN_EVENT)
                continue
            await conn.handle(event, data)
    except WebSocketDisconnect:
        pass
    finally:
        await conn.shutdown()
        info(_LOG, "client_disconnected", client=client)
