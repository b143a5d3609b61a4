"""Layered configuration lookups."""

from pathlib import Path

import pytest

from fomodkit.core.config import ConfigResolver
from fomodkit.core.errors import ConfigError


class TestConfigResolver:
    def test_cli_priority(self, tmp_path):
        """Test that CLI args have highest priority."""
        user_config = tmp_path / "config.yaml"
        user_config.write_text("paths:\n  data_dir: /from/user\n")

        resolver = ConfigResolver(
            cli_args={"paths": {"data_dir": "/from/cli"}},
            user_config_path=user_config,
        )

        value, source = resolver.resolve("paths.data_dir")
        assert value == "/from/cli"
        assert source == "cli"

    def test_env_priority(self, tmp_path, monkeypatch):
        """Test that ENV overrides config files."""
        user_config = tmp_path / "config.yaml"
        user_config.write_text("paths:\n  data_dir: /from/user\n")

        monkeypatch.setenv("FOMODKIT_PATHS_DATA_DIR", "/from/env")

        resolver = ConfigResolver(cli_args={}, user_config_path=user_config)

        value, source = resolver.resolve("paths.data_dir")
        assert value == "/from/env"
        assert source == "env"

    def test_user_config_priority(self, tmp_path):
        """Test that user config overrides system config."""
        user_config = tmp_path / "user.yaml"
        user_config.write_text("package:\n  script_name: fomod/script.py\n")

        system_config = tmp_path / "system.yaml"
        system_config.write_text("package:\n  script_name: fomod/script.vb\n")

        resolver = ConfigResolver(
            cli_args={},
            user_config_path=user_config,
            system_config_path=system_config,
        )

        value, source = resolver.resolve("package.script_name")
        assert value == "fomod/script.py"
        assert source == "user_config"

    def test_defaults(self, config_resolver):
        """Test that defaults are used when nothing else provides value."""
        value, source = config_resolver.resolve("package.script_name")
        assert value == "fomod/script.cs"
        assert source == "default"

    def test_missing_key(self, config_resolver):
        """Test that a missing key raises ConfigError."""
        with pytest.raises(ConfigError):
            config_resolver.resolve("nonexistent.key")

    def test_invalid_yaml(self, tmp_path):
        """Test that a broken config file raises ConfigError."""
        user_config = tmp_path / "config.yaml"
        user_config.write_text("paths: [unclosed\n")

        resolver = ConfigResolver(user_config_path=user_config)

        with pytest.raises(ConfigError):
            resolver.resolve("paths.data_dir")


class TestTypedResolution:
    def test_resolve_path_expands_home(self, tmp_path):
        resolver = ConfigResolver(
            cli_args={"paths": {"install_log": "~/InstallLog.xml"}},
            user_config_path=tmp_path / "none.yaml",
            system_config_path=tmp_path / "none.yaml",
        )

        path = resolver.resolve_path("paths.install_log")
        assert path == Path.home() / "InstallLog.xml"

    def test_resolve_path_rejects_empty(self, tmp_path):
        resolver = ConfigResolver(
            cli_args={"paths": {"data_dir": "  "}},
            user_config_path=tmp_path / "none.yaml",
        )

        with pytest.raises(ConfigError):
            resolver.resolve_path("paths.data_dir")

    def test_resolve_bool_from_env(self, config_resolver, monkeypatch):
        monkeypatch.setenv("FOMODKIT_ACTIVATION_REMOVE_ORPHANED_FILES", "no")
        assert config_resolver.resolve_bool("activation.remove_orphaned_files") is False

    def test_resolve_bool_default(self, config_resolver):
        assert config_resolver.resolve_bool("activation.remove_orphaned_files") is True

    def test_resolve_bool_invalid(self, config_resolver, monkeypatch):
        monkeypatch.setenv("FOMODKIT_ACTIVATION_REMOVE_ORPHANED_FILES", "maybe")
        with pytest.raises(ConfigError):
            config_resolver.resolve_bool("activation.remove_orphaned_files")


class TestLoggingPolicy:
    def test_default_policy(self, config_resolver):
        policy = config_resolver.resolve_logging_policy()
        assert policy.level_name == "normal"
        assert policy.emit_info is True
        assert policy.emit_verbose is False
        assert policy.emit_debug is False

    def test_debug_policy_normalized(self, tmp_path):
        resolver = ConfigResolver(
            cli_args={"logging": {"level": " DEBUG "}},
            user_config_path=tmp_path / "none.yaml",
        )
        policy = resolver.resolve_logging_policy()
        assert policy.level_name == "debug"
        assert policy.emit_debug is True
        assert policy.source.source == "cli"

    def test_invalid_level(self, tmp_path):
        resolver = ConfigResolver(
            cli_args={"logging": {"level": "chatty"}},
            user_config_path=tmp_path / "none.yaml",
        )
        with pytest.raises(ConfigError):
            resolver.resolve_logging_level()
