"""
Tests for configuration validation and defaults.

Tests cover:
- RelayServiceConfig.from_settings() - all sections
- Defaults class values
- ConfigValidationError on invalid values
- Environment overrides (provider, API key, PORT)
- load_settings() with and without a settings file
- require_api_key()
"""

import pytest

from tts_relay.core.config import (
    ConfigValidationError,
    Defaults,
    MissingAPIKeyError,
    RelayServiceConfig,
    Settings,
    load_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "TTS_RELAY_PROVIDER", "ELEVENLABS_API_KEY", "TOPMEDIAI_API_KEY", "TTS_RELAY_AUDIO_DIR",
        "TTS_RELAY_TRANSLATE_LANGUAGES", "TTS_RELAY_HOST", "PORT", "TTS_RELAY_SETTINGS",
    ):
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    """Tests for Defaults class values."""

    def test_provider_defaults(self):
        assert Defaults.PROVIDER_NAME == "elevenlabs"
        assert Defaults.PROVIDER_DEFAULT_MODEL_ID == "eleven_multilingual_v2"
        assert Defaults.PROVIDER_STREAM_MODEL_ID == "eleven_flash_v2_5"

    def test_gateway_limits(self):
        assert Defaults.GATEWAY_MAX_TEXT_CHARS_STREAM == 2000
        assert Defaults.GATEWAY_MAX_TEXT_CHARS_HTTP == 0

    def test_server_port(self):
        assert Defaults.SERVER_PORT == 3000

    def test_translation_languages(self):
        assert Defaults.TRANSLATION_LANGUAGES == ("hi",)


class TestFromSettings:
    """Tests for RelayServiceConfig.from_settings()."""

    def test_empty_settings_use_defaults(self):
        config = RelayServiceConfig.from_settings(Settings(raw={}))

        assert config.provider.name == "elevenlabs"
        assert config.provider.api_key is None
        assert config.translation.languages == ["hi"]
        assert config.storage.audio_dir == "./audio_files"
        assert config.relay.chunk_timeout_s == 30.0
        assert config.relay.max_pending_chunks == 0
        assert config.server.port == 3000

    def test_sections_override_defaults(self):
        settings = Settings(raw={
            "provider": {"name": "TopMediaI", "timeout_s": 5},
            "relay": {"chunk_timeout_s": 2.5, "max_pending_chunks": 64},
            "gateway": {"max_text_chars_stream": 100},
        })
        config = settings.get_service_config()

        assert config.provider.name == "topmediai"
        assert config.provider.timeout_s == 5.0
        assert config.relay.chunk_timeout_s == 2.5
        assert config.relay.max_pending_chunks == 64
        assert config.gateway.max_text_chars_stream == 100

    def test_languages_from_comma_string(self):
        settings = Settings(raw={"translation": {"languages": "hi, FR"}})
        assert settings.get_service_config().translation.languages == ["hi", "fr"]

    def test_unknown_provider_rejected(self):
        with pytest.raises(ConfigValidationError, match="provider.name"):
            Settings(raw={"provider": {"name": "acme"}}).get_service_config()

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ConfigValidationError, match="relay.chunk_timeout_s"):
            Settings(raw={"relay": {"chunk_timeout_s": 0}}).get_service_config()

    def test_negative_pending_rejected(self):
        with pytest.raises(ConfigValidationError, match="relay.max_pending_chunks"):
            Settings(raw={"relay": {"max_pending_chunks": -1}}).get_service_config()

    def test_http_limit_zero_allowed(self):
        config = Settings(raw={"gateway": {"max_text_chars_http": 0}}).get_service_config()
        assert config.gateway.max_text_chars_http == 0

    def test_negative_http_limit_rejected(self):
        with pytest.raises(ConfigValidationError, match="gateway.max_text_chars_http"):
            Settings(raw={"gateway": {"max_text_chars_http": -1}}).get_service_config()

    def test_stream_limit_must_be_positive(self):
        with pytest.raises(ConfigValidationError, match="gateway.max_text_chars_stream"):
            Settings(raw={"gateway": {"max_text_chars_stream": 0}}).get_service_config()

    def test_port_range(self):
        with pytest.raises(ConfigValidationError, match="server.port"):
            Settings(raw={"server": {"port": 70000}}).get_service_config()

    def test_string_log_level(self):
        config = Settings(raw={"logging": {"level": "DEBUG"}}).get_service_config()
        assert config.logging.level == 4

    def test_log_level_range(self):
        with pytest.raises(ConfigValidationError, match="logging.level"):
            Settings(raw={"logging": {"level": 9}}).get_service_config()


class TestApiKey:
    """Tests for require_api_key()."""

    def test_missing_key_raises(self):
        config = Settings(raw={}).get_service_config()
        with pytest.raises(MissingAPIKeyError) as exc_info:
            config.require_api_key()
        assert exc_info.value.env_var == "ELEVENLABS_API_KEY"

    def test_missing_key_is_config_error(self):
        assert issubclass(MissingAPIKeyError, ConfigValidationError)

    def test_key_present(self):
        config = Settings(raw={"provider": {"api_key": "k"}}).get_service_config()
        assert config.require_api_key() == "k"


class TestLoadSettings:
    """Tests for load_settings() and environment overrides."""

    def test_missing_default_file_is_fine(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings.raw.get("provider", {}).get("name") is None

    def test_missing_explicit_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(str(tmp_path / "nope.yaml"))

    def test_yaml_file_loaded(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("storage:\n  audio_dir: /data/audio\nserver:\n  port: 8080\n", encoding="utf-8")

        settings = load_settings(str(path))

        assert settings.audio_dir == "/data/audio"
        assert settings.port == 8080

    def test_api_key_from_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("ELEVENLABS_API_KEY", "secret")
        config = load_settings().get_service_config()
        assert config.require_api_key() == "secret"

    def test_key_follows_provider(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("TTS_RELAY_PROVIDER", "topmediai")
        monkeypatch.setenv("ELEVENLABS_API_KEY", "wrong")
        monkeypatch.setenv("TOPMEDIAI_API_KEY", "right")

        config = load_settings().get_service_config()

        assert config.provider.name == "topmediai"
        assert config.provider.api_key == "right"

    def test_port_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("PORT", "4000")
        assert load_settings().get_service_config().server.port == 4000

    def test_audio_dir_env(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("TTS_RELAY_AUDIO_DIR", "/tmp/x")
        assert load_settings().audio_dir == "/tmp/x"
