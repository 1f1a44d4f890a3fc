"""
Configuration Management for tts-relay.

This module provides centralized configuration handling with:
    - Default values (Defaults class)
    - Dataclass-based configuration objects
    - YAML file loading with environment variable overrides
    - Validation with meaningful error messages

Configuration Hierarchy (highest priority first):
    1. Environment variables (ELEVENLABS_API_KEY, PORT, TTS_RELAY_*, etc.)
    2. YAML config file (config/settings.yaml, optional)
    3. Defaults class values

Example settings.yaml:
    provider:
      name: elevenlabs
      default_model_id: eleven_multilingual_v2

    translation:
      languages: [hi]

    storage:
      audio_dir: ./audio_files

    relay:
      chunk_timeout_s: 30
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import os

import yaml


class ConfigValidationError(Exception):
    """
    Raised when configuration validation fails.

    This exception is thrown when a configuration value is outside
    acceptable bounds or of the wrong type.
    """
    pass


class MissingAPIKeyError(ConfigValidationError):
    """Raised at startup when the active provider has no API key."""

    def __init__(self, provider: str, env_var: str):
        self.provider = provider
        self.env_var = env_var
        super().__init__(f"Set {env_var} in the environment or .env ({provider} provider)")


# Environment variable holding the API key of each provider
API_KEY_ENV = {
    "elevenlabs": "ELEVENLABS_API_KEY",
    "topmediai": "TOPMEDIAI_API_KEY",
}

SUPPORTED_PROVIDERS = tuple(API_KEY_ENV)


class Defaults:
    """
    Centralized default configuration values.

    Sections:
        - Provider: upstream TTS API selection and model defaults
        - Translation: which language codes trigger translation
        - Storage: where finished audio files are written
        - Relay: chunk relay timeouts and backpressure
        - Gateway: request limits
        - Logging: log level and formatting
        - Server: listening address
    """

    # ─────────────────────────────────────────────────────────────────────────
    # Provider
    # ─────────────────────────────────────────────────────────────────────────
    PROVIDER_NAME = "elevenlabs"
    PROVIDER_DEFAULT_MODEL_ID = "eleven_multilingual_v2"   # /tts and textChunk
    PROVIDER_STREAM_MODEL_ID = "eleven_flash_v2_5"         # generateTTS
    PROVIDER_OUTPUT_FORMAT = "mp3_44100_128"
    PROVIDER_TIMEOUT_S = 30.0
    PROVIDER_EMOTION = "Neutral"                           # topmediai only

    # ─────────────────────────────────────────────────────────────────────────
    # Translation
    # ─────────────────────────────────────────────────────────────────────────
    TRANSLATION_DEFAULT_LANGUAGE = "en"
    TRANSLATION_LANGUAGES = ("hi",)
    TRANSLATION_TIMEOUT_S = 10.0

    # ─────────────────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────────────────
    STORAGE_AUDIO_DIR = "./audio_files"
    STORAGE_FILE_PREFIX = "audio_"
    STORAGE_TTL_SECONDS = 0             # 0 = keep files forever
    STORAGE_CLEANUP_INTERVAL_S = 3600

    # ─────────────────────────────────────────────────────────────────────────
    # Chunk relay
    # ─────────────────────────────────────────────────────────────────────────
    RELAY_CHUNK_TIMEOUT_S = 30.0        # Max wait for one upstream chunk
    RELAY_MAX_PENDING_CHUNKS = 0        # 0 = never drop a slow listener
    RELAY_SHUTDOWN_GRACE_S = 10.0       # Wait for detached sessions on exit

    # ─────────────────────────────────────────────────────────────────────────
    # Gateway limits
    # ─────────────────────────────────────────────────────────────────────────
    GATEWAY_MAX_TEXT_CHARS_STREAM = 2000
    GATEWAY_MAX_TEXT_CHARS_HTTP = 0           # 0 = no limit on POST /tts

    # ─────────────────────────────────────────────────────────────────────────
    # Logging
    # ─────────────────────────────────────────────────────────────────────────
    LOGGING_TEXT_PREVIEW_CHARS = 80
    LOGGING_LEVEL = 2                   # 1=MINIMAL, 2=NORMAL, 3=VERBOSE, 4=DEBUG

    # ─────────────────────────────────────────────────────────────────────────
    # Server
    # ─────────────────────────────────────────────────────────────────────────
    SERVER_HOST = "0.0.0.0"
    SERVER_PORT = 3000


@dataclass
class ProviderConfig:
    """
    Upstream TTS provider configuration.

    The API key normally comes from the environment variable named in
    API_KEY_ENV, which overrides any value in the settings file.
    """
    name: str = Defaults.PROVIDER_NAME
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    default_model_id: str = Defaults.PROVIDER_DEFAULT_MODEL_ID
    stream_model_id: str = Defaults.PROVIDER_STREAM_MODEL_ID
    output_format: str = Defaults.PROVIDER_OUTPUT_FORMAT
    timeout_s: float = Defaults.PROVIDER_TIMEOUT_S
    emotion: str = Defaults.PROVIDER_EMOTION


@dataclass
class TranslationConfig:
    """Which language codes are translated before synthesis."""
    default_language: str = Defaults.TRANSLATION_DEFAULT_LANGUAGE
    languages: List[str] = field(default_factory=lambda: list(Defaults.TRANSLATION_LANGUAGES))
    timeout_s: float = Defaults.TRANSLATION_TIMEOUT_S


@dataclass
class StorageConfig:
    """
    Flat-file audio storage configuration.

    Every completed session writes one file into audio_dir. With a
    positive ttl_seconds, files older than the TTL are removed by a
    periodic background cleanup.
    """
    audio_dir: str = Defaults.STORAGE_AUDIO_DIR
    file_prefix: str = Defaults.STORAGE_FILE_PREFIX
    ttl_seconds: int = Defaults.STORAGE_TTL_SECONDS
    cleanup_interval_s: int = Defaults.STORAGE_CLEANUP_INTERVAL_S


@dataclass
class RelayConfig:
    """Chunk relay timing and listener backpressure."""
    chunk_timeout_s: float = Defaults.RELAY_CHUNK_TIMEOUT_S
    max_pending_chunks: int = Defaults.RELAY_MAX_PENDING_CHUNKS
    shutdown_grace_s: float = Defaults.RELAY_SHUTDOWN_GRACE_S


@dataclass
class GatewayConfig:
    """Input limits enforced before any upstream call."""
    max_text_chars_stream: int = Defaults.GATEWAY_MAX_TEXT_CHARS_STREAM
    max_text_chars_http: int = Defaults.GATEWAY_MAX_TEXT_CHARS_HTTP


@dataclass
class LoggingConfig:
    """
    Logging configuration.

    Log levels:
        1 = MINIMAL: Startup, shutdown, critical errors only
        2 = NORMAL: Request lifecycle, session outcome (default)
        3 = VERBOSE: Per-chunk flow, timings
        4 = DEBUG: Internal state, full tracing
    """
    text_preview_chars: int = Defaults.LOGGING_TEXT_PREVIEW_CHARS
    level: int = Defaults.LOGGING_LEVEL


@dataclass
class ServerConfig:
    """Listening address for the HTTP/WebSocket server."""
    host: str = Defaults.SERVER_HOST
    port: int = Defaults.SERVER_PORT


@dataclass
class RelayServiceConfig:
    """
    Validated configuration for the relay service.

    This is the main configuration object created from Settings.
    It validates all values and provides typed access to configuration.

    Usage:
        settings = load_settings()
        config = RelayServiceConfig.from_settings(settings)
        print(config.relay.chunk_timeout_s)
    """
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    translation: TranslationConfig = field(default_factory=TranslationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    relay: RelayConfig = field(default_factory=RelayConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "RelayServiceConfig":
        """
        Create RelayServiceConfig from Settings with validation.

        Args:
            settings: Raw Settings object loaded from YAML + environment.

        Returns:
            Validated RelayServiceConfig instance.

        Raises:
            ConfigValidationError: If any value fails validation.
        """
        raw = settings.raw

        # ─────────────────────────────────────────────────────────────────────
        # Provider configuration
        # ─────────────────────────────────────────────────────────────────────
        provider_raw = raw.get("provider", {}) or {}
        provider_name = str(provider_raw.get("name", Defaults.PROVIDER_NAME)).strip().lower()
        if provider_name not in SUPPORTED_PROVIDERS:
            raise ConfigValidationError(
                f"provider.name must be one of {', '.join(SUPPORTED_PROVIDERS)}, got {provider_name!r}"
            )
        provider = ProviderConfig(
            name=provider_name,
            api_key=provider_raw.get("api_key") or None,
            base_url=provider_raw.get("base_url") or None,
            default_model_id=str(provider_raw.get("default_model_id", Defaults.PROVIDER_DEFAULT_MODEL_ID)),
            stream_model_id=str(provider_raw.get("stream_model_id", Defaults.PROVIDER_STREAM_MODEL_ID)),
            output_format=str(provider_raw.get("output_format", Defaults.PROVIDER_OUTPUT_FORMAT)),
            timeout_s=float(provider_raw.get("timeout_s", Defaults.PROVIDER_TIMEOUT_S)),
            emotion=str(provider_raw.get("emotion", Defaults.PROVIDER_EMOTION)),
        )
        cls._validate_positive("provider.timeout_s", provider.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Translation configuration
        # ─────────────────────────────────────────────────────────────────────
        translation_raw = raw.get("translation", {}) or {}
        languages = translation_raw.get("languages", list(Defaults.TRANSLATION_LANGUAGES))
        if isinstance(languages, str):
            languages = [part.strip() for part in languages.split(",") if part.strip()]
        translation = TranslationConfig(
            default_language=str(translation_raw.get("default_language", Defaults.TRANSLATION_DEFAULT_LANGUAGE)),
            languages=[str(code).lower() for code in languages],
            timeout_s=float(translation_raw.get("timeout_s", Defaults.TRANSLATION_TIMEOUT_S)),
        )
        cls._validate_positive("translation.timeout_s", translation.timeout_s)

        # ─────────────────────────────────────────────────────────────────────
        # Storage configuration
        # ─────────────────────────────────────────────────────────────────────
        storage_raw = raw.get("storage", {}) or {}
        storage = StorageConfig(
            audio_dir=str(storage_raw.get("audio_dir", Defaults.STORAGE_AUDIO_DIR)),
            file_prefix=str(storage_raw.get("file_prefix", Defaults.STORAGE_FILE_PREFIX)),
            ttl_seconds=int(storage_raw.get("ttl_seconds", Defaults.STORAGE_TTL_SECONDS)),
            cleanup_interval_s=int(storage_raw.get("cleanup_interval_s", Defaults.STORAGE_CLEANUP_INTERVAL_S)),
        )
        cls._validate_non_negative("storage.ttl_seconds", storage.ttl_seconds)
        cls._validate_positive("storage.cleanup_interval_s", storage.cleanup_interval_s)
        if not storage.file_prefix:
            raise ConfigValidationError("storage.file_prefix must not be empty")

        # ─────────────────────────────────────────────────────────────────────
        # Relay configuration
        # ─────────────────────────────────────────────────────────────────────
        relay_raw = raw.get("relay", {}) or {}
        relay = RelayConfig(
            chunk_timeout_s=float(relay_raw.get("chunk_timeout_s", Defaults.RELAY_CHUNK_TIMEOUT_S)),
            max_pending_chunks=int(relay_raw.get("max_pending_chunks", Defaults.RELAY_MAX_PENDING_CHUNKS)),
            shutdown_grace_s=float(relay_raw.get("shutdown_grace_s", Defaults.RELAY_SHUTDOWN_GRACE_S)),
        )
        cls._validate_positive("relay.chunk_timeout_s", relay.chunk_timeout_s)
        cls._validate_non_negative("relay.max_pending_chunks", relay.max_pending_chunks)
        cls._validate_non_negative("relay.shutdown_grace_s", relay.shutdown_grace_s)

        # ─────────────────────────────────────────────────────────────────────
        # Gateway configuration
        # ─────────────────────────────────────────────────────────────────────
        gateway_raw = raw.get("gateway", {}) or {}
        gateway = GatewayConfig(
            max_text_chars_stream=int(gateway_raw.get("max_text_chars_stream", Defaults.GATEWAY_MAX_TEXT_CHARS_STREAM)),
            max_text_chars_http=int(gateway_raw.get("max_text_chars_http", Defaults.GATEWAY_MAX_TEXT_CHARS_HTTP)),
        )
        cls._validate_positive("gateway.max_text_chars_stream", gateway.max_text_chars_stream)
        cls._validate_non_negative("gateway.max_text_chars_http", gateway.max_text_chars_http)

        # ─────────────────────────────────────────────────────────────────────
        # Logging configuration
        # ─────────────────────────────────────────────────────────────────────
        logging_raw = raw.get("logging", {}) or {}
        log_level_raw = logging_raw.get("level", Defaults.LOGGING_LEVEL)

        # Handle string log levels (e.g., "INFO", "DEBUG")
        if isinstance(log_level_raw, str):
            level_map = {
                "MINIMAL": 1, "1": 1,
                "NORMAL": 2, "INFO": 2, "2": 2,
                "VERBOSE": 3, "3": 3,
                "DEBUG": 4, "TRACE": 4, "4": 4,
            }
            log_level = level_map.get(log_level_raw.upper(), Defaults.LOGGING_LEVEL)
        else:
            log_level = int(log_level_raw)

        logging_cfg = LoggingConfig(
            text_preview_chars=int(logging_raw.get("text_preview_chars", Defaults.LOGGING_TEXT_PREVIEW_CHARS)),
            level=log_level,
        )
        cls._validate_non_negative("logging.text_preview_chars", logging_cfg.text_preview_chars)
        cls._validate_range("logging.level", logging_cfg.level, 1, 4)

        # ─────────────────────────────────────────────────────────────────────
        # Server configuration
        # ─────────────────────────────────────────────────────────────────────
        server_raw = raw.get("server", {}) or {}
        server = ServerConfig(
            host=str(server_raw.get("host", Defaults.SERVER_HOST)),
            port=int(server_raw.get("port", Defaults.SERVER_PORT)),
        )
        cls._validate_range("server.port", server.port, 1, 65535)

        return cls(
            provider=provider,
            translation=translation,
            storage=storage,
            relay=relay,
            gateway=gateway,
            logging=logging_cfg,
            server=server,
        )

    def require_api_key(self) -> str:
        """
        Return the active provider's API key.

        Raises:
            MissingAPIKeyError: If no key is configured. Startup treats
                this as fatal.
        """
        if not self.provider.api_key:
            raise MissingAPIKeyError(self.provider.name, API_KEY_ENV[self.provider.name])
        return self.provider.api_key

    @staticmethod
    def _validate_positive(name: str, value: int | float) -> None:
        """Validate that a value is positive (> 0)."""
        if value <= 0:
            raise ConfigValidationError(f"{name} must be positive, got {value}")

    @staticmethod
    def _validate_non_negative(name: str, value: int | float) -> None:
        """Validate that a value is non-negative (>= 0)."""
        if value < 0:
            raise ConfigValidationError(f"{name} must be non-negative, got {value}")

    @staticmethod
    def _validate_range(name: str, value: int | float, min_val: int | float, max_val: int | float) -> None:
        """Validate that a value is within a range [min_val, max_val]."""
        if not (min_val <= value <= max_val):
            raise ConfigValidationError(f"{name} must be between {min_val} and {max_val}, got {value}")


@dataclass(frozen=True)
class Settings:
    """
    Immutable settings container loaded from YAML and the environment.

    This is the raw settings object before validation. Use
    get_service_config() to get the validated RelayServiceConfig.

    Attributes:
        raw: Dictionary of raw configuration values.
    """
    raw: Dict[str, Any]

    @property
    def provider_name(self) -> str:
        """Get the upstream provider name (elevenlabs, topmediai)."""
        return str((self.raw.get("provider", {}) or {}).get("name", Defaults.PROVIDER_NAME))

    @property
    def audio_dir(self) -> str:
        """Get the directory finished audio files are written to."""
        return str((self.raw.get("storage", {}) or {}).get("audio_dir", Defaults.STORAGE_AUDIO_DIR))

    @property
    def port(self) -> int:
        """Get the listening port."""
        return int((self.raw.get("server", {}) or {}).get("port", Defaults.SERVER_PORT))

    def get_service_config(self) -> RelayServiceConfig:
        """
        Get validated RelayServiceConfig from these settings.

        Raises:
            ConfigValidationError: If validation fails.
        """
        return RelayServiceConfig.from_settings(self)


def apply_env_overrides(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply environment variable overrides to a raw settings dict.

    Environment variables:
        - TTS_RELAY_PROVIDER: provider.name
        - ELEVENLABS_API_KEY / TOPMEDIAI_API_KEY: provider.api_key for the
          active provider
        - TTS_RELAY_AUDIO_DIR: storage.audio_dir
        - TTS_RELAY_TRANSLATE_LANGUAGES: comma separated translation.languages
        - TTS_RELAY_HOST: server.host
        - PORT: server.port
    """
    provider_raw = raw.setdefault("provider", {})
    if provider_raw is None:
        provider_raw = raw["provider"] = {}

    if os.getenv("TTS_RELAY_PROVIDER"):
        provider_raw["name"] = os.environ["TTS_RELAY_PROVIDER"].strip().lower()

    provider_name = str(provider_raw.get("name", Defaults.PROVIDER_NAME)).strip().lower()
    key_env = API_KEY_ENV.get(provider_name)
    if key_env and os.getenv(key_env):
        provider_raw["api_key"] = os.environ[key_env]

    if os.getenv("TTS_RELAY_AUDIO_DIR"):
        raw.setdefault("storage", {})["audio_dir"] = os.environ["TTS_RELAY_AUDIO_DIR"]
    if os.getenv("TTS_RELAY_TRANSLATE_LANGUAGES"):
        raw.setdefault("translation", {})["languages"] = os.environ["TTS_RELAY_TRANSLATE_LANGUAGES"]
    if os.getenv("TTS_RELAY_HOST"):
        raw.setdefault("server", {})["host"] = os.environ["TTS_RELAY_HOST"]
    if os.getenv("PORT"):
        raw.setdefault("server", {})["port"] = os.environ["PORT"]

    return raw


def load_settings(path: Optional[str] = None) -> Settings:
    """
    Load settings from an optional YAML file plus environment overrides.

    Unlike a required config file, a missing settings file is not an
    error: the relay runs on defaults and environment variables alone,
    which is how it is normally deployed.

    Args:
        path: Path to the YAML configuration file. Defaults to
            $TTS_RELAY_SETTINGS or config/settings.yaml.

    Returns:
        Settings object with loaded configuration.

    Raises:
        FileNotFoundError: If an explicitly given settings file doesn't exist.
    """
    explicit = path is not None
    p = Path(path or os.getenv("TTS_RELAY_SETTINGS", "config/settings.yaml"))

    raw: Dict[str, Any] = {}
    if p.exists():
        with p.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    elif explicit:
        raise FileNotFoundError(f"settings file not found: {p.resolve()}")

    return Settings(raw=apply_env_overrides(raw))
