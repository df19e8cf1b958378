"""Tests for configuration loading."""

from __future__ import annotations

import pytest

from charsplit._internal.config import DEFAULT_SCAN_CHUNK_SIZE, CharSplitConfig, load_config
from charsplit._internal.errors import ConfigError

_ENV_VARS = ("CHARSPLIT_BACKEND", "CHARSPLIT_SCAN_CHUNK_SIZE", "CHARSPLIT_LOG_JSON")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestCharSplitConfig:
    """Tests for the CharSplitConfig dataclass."""

    def test_defaults(self):
        """CharSplitConfig has sensible defaults."""
        config = CharSplitConfig()
        assert config.backend == "auto"
        assert config.scan_chunk_size == DEFAULT_SCAN_CHUNK_SIZE
        assert config.json_logs is False

    def test_frozen(self):
        """CharSplitConfig is immutable."""
        config = CharSplitConfig()
        with pytest.raises(AttributeError):
            config.backend = "fork-pipe"  # type: ignore[misc]


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_defaults_from_env(self):
        """load_config returns defaults when no env vars are set."""
        assert load_config() == CharSplitConfig()

    def test_backend_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """CHARSPLIT_BACKEND is read and normalised."""
        monkeypatch.setenv("CHARSPLIT_BACKEND", " Named-Pipe ")
        assert load_config().backend == "named-pipe"

    def test_unknown_backend_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """An unknown CHARSPLIT_BACKEND raises ConfigError."""
        monkeypatch.setenv("CHARSPLIT_BACKEND", "threads")
        with pytest.raises(ConfigError, match="must be one of"):
            load_config()

    def test_chunk_size_from_env(self, monkeypatch: pytest.MonkeyPatch):
        """CHARSPLIT_SCAN_CHUNK_SIZE is read from the environment."""
        monkeypatch.setenv("CHARSPLIT_SCAN_CHUNK_SIZE", "4096")
        assert load_config().scan_chunk_size == 4096

    def test_invalid_chunk_size_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """Non-integer CHARSPLIT_SCAN_CHUNK_SIZE raises ConfigError."""
        monkeypatch.setenv("CHARSPLIT_SCAN_CHUNK_SIZE", "big")
        with pytest.raises(ConfigError, match="must be an integer"):
            load_config()

    def test_zero_chunk_size_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """CHARSPLIT_SCAN_CHUNK_SIZE of 0 raises ConfigError."""
        monkeypatch.setenv("CHARSPLIT_SCAN_CHUNK_SIZE", "0")
        with pytest.raises(ConfigError, match="must be >= 1"):
            load_config()

    @pytest.mark.parametrize("value", ["1", "true", "YES", "on"])
    def test_json_logs_truthy(self, monkeypatch: pytest.MonkeyPatch, value: str):
        monkeypatch.setenv("CHARSPLIT_LOG_JSON", value)
        assert load_config().json_logs is True

    @pytest.mark.parametrize("value", ["0", "false", "no", ""])
    def test_json_logs_falsy(self, monkeypatch: pytest.MonkeyPatch, value: str):
        monkeypatch.setenv("CHARSPLIT_LOG_JSON", value)
        assert load_config().json_logs is False

    def test_invalid_json_logs_raises_error(self, monkeypatch: pytest.MonkeyPatch):
        """A non-boolean CHARSPLIT_LOG_JSON raises ConfigError."""
        monkeypatch.setenv("CHARSPLIT_LOG_JSON", "maybe")
        with pytest.raises(ConfigError, match="boolean flag"):
            load_config()
