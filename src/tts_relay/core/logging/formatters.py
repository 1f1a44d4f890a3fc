"""
Log Formatters for JSON and Console Output.

    JsonlFormatter: one JSON object per line, for the rotating log file.
    ColoredConsoleFormatter: human-readable line for the terminal.

Output Examples:
    JSONL:
        {"ts":"2026-10-18T14:30:05+00:00","level":3,"tag":"INFO","message":"chunk","request_id":"ab12cd34ef56","extra":{"seq":3,"bytes":4096}}

    Console:
        14:30:05 [ INFO  ] (ab12cd34ef56) chunk seq=3 bytes=4096
        14:30:06 [SUCCESS] (ab12cd34ef56) session_done chunks=12 1.204s
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, get_tag_color
from .colors import colorize as _colorize


class JsonlFormatter(logging.Formatter):
    """
    Format log records as JSON Lines.

    Fields: ts, level (1-4), tag, message, request_id, and when present
    event, seconds and extra (the keyword fields passed to info() & co).
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format log records as `HH:MM:SS [ TAG ] (rid) message key=value 0.123s`.

    Durations are green under 100ms, yellow under 1s, red above.
    Relay fields (seq, chunks, bytes) get their own colors so a
    session's progress is easy to follow in a busy terminal.
    """

    _FIELD_COLORS = {
        "seq": Colors.MAGENTA,
        "chunks": Colors.MAGENTA,
        "bytes": Colors.CYAN,
        "path": Colors.BLUE,
        "provider": Colors.BLUE,
        "error": Colors.RED,
        "error_type": Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")

        parts = [
            _colorize(ts, Colors.DIM),
            _colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]
        if rid != "-":
            parts.append(_colorize(f"({rid})", Colors.DIM + Colors.CYAN))
        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_colorize(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_colorize(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for key, value in extra_data.items():
                parts.append(_colorize(f"{key}={value}", self._FIELD_COLORS.get(key, Colors.DIM)))

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line
