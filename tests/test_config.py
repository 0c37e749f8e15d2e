"""Tests for configuration loading and validation."""

import json
import os

import pytest

from config import ConfigManager, KernelConfig, LoggingConfig, RegistryConfig


@pytest.fixture
def clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("CONCIERGE_"):
            monkeypatch.delenv(name)
    return monkeypatch


class TestKernelConfig:

    def test_defaults(self):
        config = KernelConfig()
        assert config.environment == "development"
        assert config.logging.level == "INFO"
        assert config.registry.wait_timeout == 5.0
        assert config.registry.recovery_enabled is True

    def test_invalid_environment(self):
        with pytest.raises(ValueError):
            KernelConfig(environment="moon")

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            KernelConfig(logging=LoggingConfig(level="LOUD"))

    @pytest.mark.parametrize("registry", [
        RegistryConfig(wait_timeout=0),
        RegistryConfig(poll_interval=-1),
        RegistryConfig(wait_timeout=1.0, poll_interval=2.0),
    ])
    def test_invalid_registry_timing(self, registry):
        with pytest.raises(ValueError):
            KernelConfig(registry=registry)


class TestConfigManager:

    def test_file_values_are_loaded(self, tmp_path, clean_env):
        config_file = tmp_path / "kernel.json"
        config_file.write_text(json.dumps({
            "environment": "staging",
            "registry": {"wait_timeout": 2.5},
        }))

        config = ConfigManager().load_config(str(config_file))

        assert config.environment == "staging"
        assert config.registry.wait_timeout == 2.5
        assert config.registry.poll_interval == 0.1
        assert config.config_file == str(config_file)

    def test_environment_overrides_file(self, tmp_path, clean_env):
        config_file = tmp_path / "kernel.json"
        config_file.write_text(json.dumps({"registry": {"wait_timeout": 2.5}}))
        clean_env.setenv("CONCIERGE_WAIT_TIMEOUT", "9")
        clean_env.setenv("CONCIERGE_RECOVERY_ENABLED", "off")
        clean_env.setenv("CONCIERGE_LOG_LEVEL", "DEBUG")

        config = ConfigManager().load_config(str(config_file))

        assert config.registry.wait_timeout == 9
        assert config.registry.recovery_enabled is False
        assert config.logging.level == "DEBUG"

    def test_missing_file_uses_defaults(self, tmp_path, clean_env):
        config = ConfigManager().load_config(str(tmp_path / "absent.json"))
        assert config.registry.wait_timeout == 5.0
        assert config.config_file is None

    def test_invalid_environment_value_raises(self, clean_env):
        clean_env.setenv("CONCIERGE_POLL_INTERVAL", "0")
        with pytest.raises(ValueError):
            ConfigManager().load_config()

    def test_type_conversion(self):
        manager = ConfigManager()
        assert manager._convert_type("yes") is True
        assert manager._convert_type("False") is False
        assert manager._convert_type("3") == 3
        assert manager._convert_type("0.25") == 0.25
        assert manager._convert_type("concierge") == "concierge"

    def test_save_and_reload(self, tmp_path, clean_env):
        manager = ConfigManager()
        path = tmp_path / "saved.json"
        original = KernelConfig(environment="test", registry=RegistryConfig(wait_timeout=3.0))

        manager.save_config(original, str(path))
        loaded = manager.load_config(str(path))

        assert loaded.environment == "test"
        assert loaded.registry.wait_timeout == 3.0

    def test_env_template(self, tmp_path):
        path = tmp_path / ".env.template"
        ConfigManager().create_env_template(str(path))
        text = path.read_text()
        assert "CONCIERGE_WAIT_TIMEOUT=5.0" in text
        assert "CONCIERGE_RECOVERY_ENABLED=true" in text
