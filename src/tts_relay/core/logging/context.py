"""
Request Context and Configuration State for Logging.

The request id lives in a ContextVar so it follows a request into the
tasks it spawns: asyncio.create_task() copies the current context, which
means a detached audio session keeps logging under the id of the request
that started it, even after the WebSocket that asked for it is gone.

Environment Variables:
    - TTS_RELAY_LOG_LEVEL: Override log level (1-4 or name)
    - TTS_RELAY_LOG_DIR: Directory for JSONL log files
    - TTS_RELAY_JSONL_FILE: JSONL filename (default tts-relay.jsonl)
    - TTS_RELAY_LOG_ROTATE_BYTES: Max log file size
    - TTS_RELAY_LOG_ROTATE_BACKUP: Number of backup files
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    """Request id of the current context, or "-" outside a request."""
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Bind a request id to the current context for log correlation."""
    _request_id.set(rid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging options from the settings file and environment.

    Priority (highest first): TTS_RELAY_* environment variables, the
    `logging` section of the settings file, built-in defaults.
    """
    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("TTS_RELAY_SETTINGS", "config/settings.yaml")
    if os.path.exists(settings_path):
        try:
            with open(settings_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            cfg.update(raw.get("logging", {}) or {})
        except (OSError, yaml.YAMLError):
            # Unreadable settings are reported by load_settings(); logging
            # falls back to defaults so that the report can be logged.
            pass

    if os.getenv("TTS_RELAY_LOG_LEVEL"):
        cfg["level"] = os.environ["TTS_RELAY_LOG_LEVEL"]
    if os.getenv("TTS_RELAY_LOG_DIR"):
        cfg["log_dir"] = os.environ["TTS_RELAY_LOG_DIR"]
    if os.getenv("TTS_RELAY_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["TTS_RELAY_JSONL_FILE"]
    for env_name, key in (
        ("TTS_RELAY_LOG_ROTATE_BYTES", "rotate_max_bytes"),
        ("TTS_RELAY_LOG_ROTATE_BACKUP", "rotate_backup_count"),
    ):
        value = os.getenv(env_name)
        if value:
            try:
                cfg[key] = int(value)
            except ValueError:
                pass  # Invalid value, keep default

    return cfg
