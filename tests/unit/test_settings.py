"""
Unit Tests - Settings
"""

import pytest

from foundry_runner.config.settings import RunnerSettings, get_settings
from foundry_runner.core.exceptions import ConfigurationError


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield get_settings
    get_settings.cache_clear()


class TestRunnerSettings:
    """Tests for RunnerSettings."""

    def test_defaults(self, monkeypatch):
        for name in ("DEBUG_FOUNDRY", "FOUNDRY_DEBUG", "CONTRACTS_DIR", "FOUNDRY_SHELL"):
            monkeypatch.delenv(name, raising=False)

        settings = RunnerSettings(_env_file=None)

        assert settings.debug is False
        assert settings.contracts_dir is None
        assert settings.default_timeout_ms == 30_000
        assert settings.max_buffer_bytes == 10 * 1024 * 1024
        assert settings.shell == "/bin/bash"

    def test_plain_named_variables(self, monkeypatch):
        monkeypatch.setenv("HOME", "/home/deployer")
        monkeypatch.setenv("USER", "deployer")
        monkeypatch.setenv("DEBUG_FOUNDRY", "1")
        monkeypatch.setenv("CONTRACTS_DIR", "/srv/dapp/contracts")

        settings = RunnerSettings(_env_file=None)

        assert settings.home == "/home/deployer"
        assert settings.user == "deployer"
        assert settings.debug is True
        assert settings.contracts_dir == "/srv/dapp/contracts"

    def test_prefixed_tunables(self, monkeypatch):
        monkeypatch.setenv("FOUNDRY_DEFAULT_TIMEOUT_MS", "5000")
        monkeypatch.setenv("FOUNDRY_SHELL", "/bin/sh")
        monkeypatch.setenv("FOUNDRY_ALLOW_BARE_FALLBACK", "false")

        settings = RunnerSettings(_env_file=None)

        assert settings.default_timeout_ms == 5000
        assert settings.shell == "/bin/sh"
        assert settings.allow_bare_fallback is False

    def test_env_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("FOUNDRY_LOG_FORMAT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("FOUNDRY_LOG_FORMAT=json\n")

        settings = RunnerSettings(_env_file=str(env_file))

        assert settings.log_format == "json"

    def test_frozen(self):
        settings = RunnerSettings(_env_file=None)

        with pytest.raises(Exception):
            settings.shell = "/bin/zsh"


class TestGetSettings:
    """Tests for the cached accessor."""

    def test_cached(self, fresh_settings):
        assert fresh_settings() is fresh_settings()

    def test_invalid_value_raises_configuration_error(self, fresh_settings, monkeypatch):
        monkeypatch.setenv("FOUNDRY_DEFAULT_TIMEOUT_MS", "-1")

        with pytest.raises(ConfigurationError) as exc_info:
            fresh_settings()

        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert "default_timeout_ms" in exc_info.value.context["fields"]
