"""Unit tests for utils/config_manager.py"""

import os
import tempfile
from unittest.mock import patch

import pytest
import yaml


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host environment variables out of the config lookups"""
    for var in (
        "DOCKER_USERNAME",
        "DOCKER_PASSWORD",
        "REGISTRY_SERVER",
        "REGISTRY_NAMESPACE",
        "OUTPUT_DIR",
        "MIRROR_FAIL_FAST",
    ):
        monkeypatch.delenv(var, raising=False)


def _write_config(config):
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
        return f.name


class TestConfigManagerInitialization:
    """Tests for ConfigManager initialization"""

    def test_loads_default_config_when_file_not_found(self):
        """Test that defaults are used when config file doesn't exist"""
        from utils.config_manager import ConfigManager

        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)

        assert cm.get_max_content() == 10
        assert cm.get_max_workers() == 4
        assert cm.get_timeout() is None
        assert cm.is_fail_fast() is False
        assert cm.get_registry_server() is None
        assert cm.get_containerd_tool() == "nerdctl"
        assert cm.get_containerd_namespace() == "k8s.io"

    def test_loads_config_from_yaml_file(self):
        """Test loading configuration from a YAML file"""
        from utils.config_manager import ConfigManager

        temp_path = _write_config(
            {
                "registry": {"username": "alice", "password": "s3cret", "server": "registry.example.com"},
                "mirror": {"max_content": 25, "max_workers": 8, "timeout": 900, "fail_fast": True},
            }
        )

        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            assert cm.get_registry_credentials() == ("alice", "s3cret")
            assert cm.get_registry_server() == "registry.example.com"
            assert cm.get_max_content() == 25
            assert cm.get_max_workers() == 8
            assert cm.get_timeout() == 900.0
            assert cm.is_fail_fast() is True
        finally:
            os.unlink(temp_path)

    def test_merges_user_config_with_defaults(self):
        """Test that user config is merged with defaults"""
        from utils.config_manager import DEFAULT_CONFIG, ConfigManager

        temp_path = _write_config({"mirror": {"max_workers": 2}})

        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            assert cm.get_max_workers() == 2
            assert cm.get_max_content() == 10
            # Defaults are not mutated by the merge
            assert DEFAULT_CONFIG["mirror"]["max_workers"] == 4
        finally:
            os.unlink(temp_path)

    def test_invalid_yaml_falls_back_to_defaults(self):
        from utils.config_manager import ConfigManager

        with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
            f.write("mirror: [unclosed")
            temp_path = f.name

        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            assert cm.get_max_workers() == 4
        finally:
            os.unlink(temp_path)


class TestEnvironmentOverrides:
    """Tests for environment variable overrides"""

    def test_credentials_from_environment(self, monkeypatch):
        from utils.config_manager import ConfigManager

        monkeypatch.setenv("DOCKER_USERNAME", "bob")
        monkeypatch.setenv("DOCKER_PASSWORD", "hunter2")
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        assert cm.get_registry_credentials() == ("bob", "hunter2")

    def test_namespace_defaults_to_username(self):
        from utils.config_manager import ConfigManager

        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        assert cm.get_namespace("alice") == "alice"

    def test_namespace_override(self, monkeypatch):
        from utils.config_manager import ConfigManager

        monkeypatch.setenv("REGISTRY_NAMESPACE", "mirrors")
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        assert cm.get_namespace("alice") == "mirrors"

    def test_fail_fast_from_environment(self, monkeypatch):
        from utils.config_manager import ConfigManager

        monkeypatch.setenv("MIRROR_FAIL_FAST", "yes")
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        assert cm.is_fail_fast() is True


class TestOutputPaths:
    """Tests for output path resolution"""

    def test_default_paths(self):
        from utils.config_manager import ConfigManager

        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        assert cm.get_pull_script_path() == os.path.join(".", "output.sh")
        assert cm.get_custom_registry_script_path() == os.path.join(".", "cusreg.sh")
        assert cm.get_nerdctl_script_path() == os.path.join(".", "nerdctl.sh")
        assert cm.get_report_path() == os.path.join(".", "mirror-report.json")

    def test_filenames_resolved_under_output_dir(self, monkeypatch):
        from utils.config_manager import ConfigManager

        monkeypatch.setenv("OUTPUT_DIR", "/tmp/mirror")
        cm = ConfigManager(config_file="/nonexistent/config.yaml", validate=False)
        assert cm.get_pull_script_path() == "/tmp/mirror/output.sh"

    def test_paths_with_directories_kept(self):
        from utils.config_manager import ConfigManager

        temp_path = _write_config({"output": {"output_dir": "/tmp/mirror", "nerdctl_script": "out/ctr.sh"}})
        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            assert cm.get_nerdctl_script_path() == "out/ctr.sh"
        finally:
            os.unlink(temp_path)


class TestConfigValidation:
    """Tests for validate_config"""

    def test_defaults_are_valid(self):
        from utils.config_manager import ConfigManager

        ConfigManager(config_file="/nonexistent/config.yaml", validate=True)

    def test_type_errors_raise(self):
        from utils.config_manager import ConfigManager, ConfigValidationError

        temp_path = _write_config({"mirror": {"max_workers": "many"}})
        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            with pytest.raises(ConfigValidationError):
                cm.get_max_workers()
        finally:
            os.unlink(temp_path)

    @pytest.mark.parametrize(
        "config",
        [
            {"mirror": {"max_workers": 0}},
            {"mirror": {"max_content": -1}},
            {"mirror": {"timeout": -5}},
            {"retry": {"max_retries": -1}},
            {"retry": {"initial_delay": 10, "max_delay": 1}},
            {"retry": {"exponential_base": 0.5}},
            {"docker": {"timeout": 0}},
            {"mirror": {"max_workers": "many"}},
        ],
    )
    def test_invalid_values_rejected(self, config):
        from utils.config_manager import ConfigManager, ConfigValidationError
        from utils.error_utils import ConfigError

        temp_path = _write_config(config)
        try:
            with pytest.raises(ConfigValidationError) as exc_info:
                ConfigManager(config_file=temp_path, validate=True)
            assert isinstance(exc_info.value, ConfigError)
        finally:
            os.unlink(temp_path)

    def test_high_worker_count_only_warns(self):
        from utils.config_manager import ConfigManager

        temp_path = _write_config({"mirror": {"max_workers": 64}})
        try:
            with patch("utils.config_manager.logging.warning") as warning:
                ConfigManager(config_file=temp_path, validate=True)
            warning.assert_called_once()
        finally:
            os.unlink(temp_path)


class TestValidationSwitch:
    """Tests for validation_enabled and the module-level instance"""

    @pytest.mark.parametrize(
        "value,expected",
        [("", True), ("false", True), ("true", False), ("1", False), ("YES", False)],
    )
    def test_validation_enabled(self, monkeypatch, value, expected):
        from utils.config_manager import validation_enabled

        monkeypatch.setenv("SKIP_CONFIG_VALIDATION", value)
        assert validation_enabled() is expected

    def test_invalid_file_does_not_raise_until_validated(self):
        from utils.config_manager import ConfigManager, ConfigValidationError

        temp_path = _write_config({"mirror": {"max_workers": 0}})
        try:
            cm = ConfigManager(config_file=temp_path, validate=False)
            with pytest.raises(ConfigValidationError):
                cm.validate_config()
        finally:
            os.unlink(temp_path)
