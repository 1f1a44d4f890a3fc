"""
Command-Line Interface for tts-relay.

Without synthesis options it runs the HTTP/WebSocket server; with them
it performs one synthesis through the same gateway the server uses and
prints where the audio was stored.

Usage Examples:
    # Run the server (PORT / TTS_RELAY_HOST or flags)
    tts-relay --host 0.0.0.0 --port 3000

    # Print the provider's voice catalog
    tts-relay --voices --json

    # One-off synthesis, stored under storage.audio_dir
    tts-relay --text "Hello there" --voice 21m00Tcm4TlvDq8ikWAM
    tts-relay "Good morning" --voice 21m00Tcm4TlvDq8ikWAM --language hi

    # ...and copy the audio somewhere else as well
    tts-relay --text "Hello" --voice 21m00Tcm4TlvDq8ikWAM -o hello.mp3

    # Validate and show what would be sent, without any network call
    tts-relay --text "Test" --voice abc --dry-run --json

Environment Variables:
    ELEVENLABS_API_KEY / TOPMEDIAI_API_KEY: Provider credentials
    TTS_RELAY_PROVIDER: elevenlabs (default) or topmediai
    PORT: Listening port (default 3000)
"""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional
from uuid import uuid4

from dotenv import load_dotenv

from tts_relay.core.config import ConfigValidationError, RelayServiceConfig, load_settings
from tts_relay.core.logging import configure_logging, get_logger, info, set_request_id
from tts_relay.services.errors import RelayError, StorageWriteError
from tts_relay.services.gateway import SessionGateway, SynthesisRequest, create_gateway


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="tts-relay: TTS relay server and CLI")

    # Server
    parser.add_argument("--host", help="Bind address (default: server.host)")
    parser.add_argument("--port", type=int, help="Bind port (default: PORT or server.port)")
    parser.add_argument("--settings", help="Settings YAML path (default: config/settings.yaml)")

    # Catalog
    parser.add_argument("--voices", action="store_true", help="Print the provider voice catalog and exit")

    # One-off synthesis
    parser.add_argument("text_pos", nargs="?", help="Text to synthesize (positional)")
    parser.add_argument("--text", help="Text to synthesize")
    parser.add_argument("--voice", help="Provider voice id")
    parser.add_argument("--model", help="Provider model id")
    parser.add_argument("--language", help="Target language (configured languages are translated)")
    parser.add_argument("--output", "-o", help="Also copy the stored audio to this path")

    parser.add_argument("--dry-run", action="store_true", help="Validate only, no upstream calls")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    return parser.parse_args(argv)


def _print(payload: dict, as_json: bool) -> None:
    if as_json:
        print(json.dumps(payload, ensure_ascii=False))
    else:
        print(payload)


def _dry_run(config: RelayServiceConfig, request: SynthesisRequest, as_json: bool) -> int:
    # Borrow the gateway's validation without building any clients
    from tts_relay.services.validators import validate_language, validate_model_id, validate_text, validate_voice_id

    voice_id = validate_voice_id(request.voice_id)
    text = validate_text(request.text, max_length=config.gateway.max_text_chars_http)
    language = validate_language(request.language)
    payload = {
        "ok": True,
        "dry_run": True,
        "provider": config.provider.name,
        "voice_id": voice_id,
        "model_id": validate_model_id(request.model_id) or config.provider.default_model_id,
        "chars": len(text),
        "translate": bool(language) and language in config.translation.languages,
        "audio_dir": config.storage.audio_dir,
    }
    _print(payload, as_json)
    print("DRY_RUN_OK")
    return 0


async def _run_voices(gateway: SessionGateway, as_json: bool) -> int:
    try:
        catalog = await gateway.list_voices()
    finally:
        await gateway.aclose()
    if as_json:
        print(json.dumps(catalog, ensure_ascii=False))
    else:
        print(catalog)
    return 0


async def _run_synthesis(
    gateway: SessionGateway,
    request: SynthesisRequest,
    as_json: bool,
    output: Optional[str] = None,
) -> int:
    try:
        result = await gateway.synthesize(request)
        if output:
            data = await gateway.store.load(result.path)
            try:
                await asyncio.to_thread(Path(output).write_bytes, data)
            except OSError as exc:
                raise StorageWriteError(details={"path": output, "error": str(exc)}) from exc
    finally:
        await gateway.aclose()
    payload = {"ok": True, **result.to_dict(), "bytes": result.byte_length, "chunks": result.chunks}
    if output:
        payload["output"] = output
    _print(payload, as_json)
    return 0


def _serve(config: RelayServiceConfig, host: Optional[str], port: Optional[int]) -> int:
    import uvicorn

    from tts_relay.main import create_app

    app = create_app(gateway=create_gateway(config))
    uvicorn.run(app, host=host or config.server.host, port=port or config.server.port, log_config=None)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code: 0 success, 1 relay error, 2 configuration error.
    """
    args = _parse_args(argv)

    load_dotenv()
    configure_logging()
    log = get_logger("tts-relay.cli")
    set_request_id(uuid4().hex[:12])

    try:
        config = load_settings(args.settings).get_service_config()
    except (ConfigValidationError, FileNotFoundError) as e:
        print(f"[CONFIG ERROR] {e}")
        return 2

    text = args.text or args.text_pos
    request = SynthesisRequest(text=text, voice_id=args.voice, model_id=args.model, language=args.language)

    try:
        if args.dry_run:
            return _dry_run(config, request, args.json)

        try:
            config.require_api_key()
        except ConfigValidationError as e:
            print(f"[CONFIG ERROR] {e}")
            return 2

        if args.voices:
            return asyncio.run(_run_voices(create_gateway(config), args.json))
        if text or args.voice:
            info(log, "synth_start", chars=len(text or ""), voice=args.voice)
            return asyncio.run(_run_synthesis(create_gateway(config), request, args.json, args.output))
        return _serve(config, args.host, args.port)
    except RelayError as e:
        _print({"ok": False, "error": e.message, "code": e.code}, args.json)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
