#!/usr/bin/env python3
"""
Configuration Manager for Hub Mirror

This module handles loading and managing configuration from config.yaml
and environment variables.
"""

import logging
import os
from typing import Any, Dict, Optional, Tuple

import yaml

from utils.error_utils import ConfigError


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails"""

    def __init__(self, message: str):
        super().__init__(message, suggestions=["Check config-example.yaml for the expected format"])


DEFAULT_CONFIG: Dict[str, Any] = {
    "registry": {
        "server": None,  # None = Docker Hub
        "username": None,
        "password": None,
        "namespace": None,  # defaults to the username
    },
    "mirror": {
        "max_content": 10,
        "max_workers": 4,
        "timeout": 0,  # Overall run timeout in seconds, 0 = none
        "fail_fast": False,
        "containerd_tool": "nerdctl",
        "containerd_namespace": "k8s.io",
    },
    "output": {
        "output_dir": ".",
        "pull_script": "output.sh",
        "custom_registry_script": "cusreg.sh",
        "nerdctl_script": "nerdctl.sh",
        "report": "mirror-report.json",
    },
    "retry": {
        "max_retries": 3,
        "initial_delay": 1.0,
        "max_delay": 60.0,
        "exponential_base": 2.0,
        "jitter": True,
    },
    "docker": {
        "base_url": None,  # None = from environment (DOCKER_HOST)
        "timeout": 600,  # Per-request timeout for the daemon API in seconds
    },
}


class ConfigManager:
    """Manages configuration for the hub mirror"""

    def __init__(self, config_file: str = None, validate: bool = True):
        """Initialize ConfigManager

        Args:
            config_file: Path to configuration YAML file (defaults to config.yaml or CONFIG_FILE env var)
            validate: If True, validate configuration on initialization
        """
        if config_file is None:
            config_file = os.environ.get("CONFIG_FILE", "config.yaml")
        self.config_file = config_file
        self.config = self._load_config()

        if validate:
            self.validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file with defaults"""
        try:
            if os.path.exists(self.config_file):
                with open(self.config_file, "r") as f:
                    user_config = yaml.safe_load(f) or {}
                return self._merge_config(DEFAULT_CONFIG, user_config)
            else:
                logging.debug(f"Config file {self.config_file} not found, using defaults")
                return self._merge_config(DEFAULT_CONFIG, {})
        except (OSError, yaml.YAMLError) as e:
            logging.error(f"Error loading config file: {e}")
            return self._merge_config(DEFAULT_CONFIG, {})

    def _merge_config(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge user config with defaults"""
        result = {k: (self._merge_config(v, {}) if isinstance(v, dict) else v) for k, v in default.items()}
        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _section(self, name: str) -> Dict[str, Any]:
        return self.config.get(name) or {}

    def _get_int(self, section: str, key: str) -> int:
        value = self._section(section).get(key, DEFAULT_CONFIG[section][key])
        if isinstance(value, bool):
            raise ConfigValidationError(f"{section}.{key} must be an integer, got: {value}")
        try:
            return int(value)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"{section}.{key} must be an integer, got: {value} (type: {type(value).__name__})"
            )

    def _get_float(self, section: str, key: str) -> float:
        value = self._section(section).get(key, DEFAULT_CONFIG[section][key])
        try:
            return float(value)
        except (ValueError, TypeError):
            raise ConfigValidationError(
                f"{section}.{key} must be a number, got: {value} (type: {type(value).__name__})"
            )

    def _get_bool(self, section: str, key: str, env_var: Optional[str] = None) -> bool:
        if env_var and os.environ.get(env_var):
            return os.environ[env_var].lower() in ("true", "1", "yes")
        value = self._section(section).get(key, DEFAULT_CONFIG[section][key])
        if isinstance(value, str):
            return value.lower() in ("true", "1", "yes")
        return bool(value)

    # Registry configuration
    def get_registry_server(self) -> Optional[str]:
        """Get the destination registry server (None means Docker Hub)"""
        return os.environ.get("REGISTRY_SERVER") or self._section("registry").get("server")

    def get_registry_credentials(self) -> Tuple[Optional[str], Optional[str]]:
        """Get (username, password) from environment or config"""
        registry = self._section("registry")
        username = os.environ.get("DOCKER_USERNAME") or registry.get("username")
        password = os.environ.get("DOCKER_PASSWORD") or registry.get("password")
        return username, password

    def get_namespace(self, username: Optional[str] = None) -> Optional[str]:
        """Get the destination namespace, defaulting to the registry username"""
        return os.environ.get("REGISTRY_NAMESPACE") or self._section("registry").get("namespace") or username

    # Mirror configuration
    def get_max_content(self) -> int:
        """Get the maximum number of source images per run"""
        return self._get_int("mirror", "max_content")

    def get_max_workers(self) -> int:
        """Get the number of concurrent transfers"""
        return self._get_int("mirror", "max_workers")

    def get_timeout(self) -> Optional[float]:
        """Get the overall run timeout in seconds, or None when disabled"""
        timeout = self._get_float("mirror", "timeout")
        return timeout if timeout > 0 else None

    def is_fail_fast(self) -> bool:
        """Whether the first transfer failure cancels the remaining transfers"""
        return self._get_bool("mirror", "fail_fast", env_var="MIRROR_FAIL_FAST")

    def get_containerd_tool(self) -> str:
        return self._section("mirror").get("containerd_tool") or "nerdctl"

    def get_containerd_namespace(self) -> str:
        return self._section("mirror").get("containerd_namespace") or "k8s.io"

    # Output configuration
    def get_output_dir(self) -> str:
        """Get output directory from config"""
        return os.environ.get("OUTPUT_DIR") or self._section("output").get("output_dir") or "."

    def _resolve_output_path(self, key: str) -> str:
        """Resolve an output file under output_dir unless it is absolute or already has a directory."""
        path = self._section("output").get(key) or DEFAULT_CONFIG["output"][key]
        if os.path.isabs(path) or os.path.basename(path) != path:
            return path
        return os.path.join(self.get_output_dir(), path)

    def get_pull_script_path(self) -> str:
        return self._resolve_output_path("pull_script")

    def get_custom_registry_script_path(self) -> str:
        return self._resolve_output_path("custom_registry_script")

    def get_nerdctl_script_path(self) -> str:
        return self._resolve_output_path("nerdctl_script")

    def get_report_path(self) -> str:
        return self._resolve_output_path("report")

    # Retry configuration
    def get_max_retries(self) -> int:
        """Get max retries from config, with type coercion"""
        return self._get_int("retry", "max_retries")

    def get_retry_initial_delay(self) -> float:
        """Get initial retry delay from config, with type coercion"""
        return self._get_float("retry", "initial_delay")

    def get_retry_max_delay(self) -> float:
        """Get max retry delay from config, with type coercion"""
        return self._get_float("retry", "max_delay")

    def get_retry_exponential_base(self) -> float:
        """Get exponential base for retry backoff from config, with type coercion"""
        return self._get_float("retry", "exponential_base")

    def get_retry_jitter(self) -> bool:
        """Get whether to use jitter in retry delays from config"""
        return self._get_bool("retry", "jitter")

    # Docker daemon configuration
    def get_docker_base_url(self) -> Optional[str]:
        return self._section("docker").get("base_url")

    def get_docker_timeout(self) -> int:
        return self._get_int("docker", "timeout")

    def validate_config(self) -> None:
        """Validate configuration values

        Raises:
            ConfigValidationError: If configuration is invalid
        """
        errors = []
        warnings = []

        try:
            max_content = self.get_max_content()
            if max_content < 1:
                errors.append(f"mirror.max_content must be a positive integer, got: {max_content}")

            max_workers = self.get_max_workers()
            if max_workers < 1:
                errors.append(f"mirror.max_workers must be a positive integer, got: {max_workers}")
            elif max_workers > 32:
                warnings.append(f"max_workers is very high ({max_workers}), the daemon may throttle pulls")

            timeout = self._get_float("mirror", "timeout")
            if timeout < 0:
                errors.append(f"mirror.timeout must be a non-negative number (seconds), got: {timeout}")

            max_retries = self.get_max_retries()
            if max_retries < 0:
                errors.append(f"retry.max_retries must be a non-negative integer, got: {max_retries}")
            elif max_retries > 10:
                warnings.append(f"max_retries is very high ({max_retries}), operations may take a long time")

            initial_delay = self.get_retry_initial_delay()
            if initial_delay < 0:
                errors.append(f"retry.initial_delay must be a non-negative number, got: {initial_delay}")

            max_delay = self.get_retry_max_delay()
            if max_delay < 0:
                errors.append(f"retry.max_delay must be a non-negative number, got: {max_delay}")
            elif max_delay < initial_delay:
                errors.append(f"retry.max_delay ({max_delay}) must be >= retry.initial_delay ({initial_delay})")

            exponential_base = self.get_retry_exponential_base()
            if exponential_base < 1.0:
                errors.append(f"retry.exponential_base must be >= 1.0, got: {exponential_base}")

            docker_timeout = self.get_docker_timeout()
            if docker_timeout < 1:
                errors.append(f"docker.timeout must be a positive integer (seconds), got: {docker_timeout}")
        except ConfigValidationError as e:
            errors.append(e.message)

        if not self.get_containerd_tool().strip():
            errors.append("mirror.containerd_tool cannot be empty")

        for warning in warnings:
            logging.warning(f"Configuration warning: {warning}")

        if errors:
            error_msg = "Configuration validation failed:\n  " + "\n  ".join(errors)
            logging.error(error_msg)
            raise ConfigValidationError(error_msg)

    def print_config(self):
        """Print current configuration"""
        username, password = self.get_registry_credentials()
        print("Current Configuration:")
        print(f"  Registry Server: {self.get_registry_server() or 'Docker Hub'}")
        print(f"  Username: {username or 'Not set'}")
        print(f"  Password: {'*' * len(password) if password else 'Not set'}")
        print(f"  Namespace: {self.get_namespace(username) or 'Not set'}")
        print(f"  Max Content: {self.get_max_content()}")
        print(f"  Max Workers: {self.get_max_workers()}")
        print(f"  Timeout: {self.get_timeout() or 'None'}")
        print(f"  Fail Fast: {self.is_fail_fast()}")
        print(f"  Output Directory: {self.get_output_dir()}")


def validation_enabled() -> bool:
    """Validation can be disabled by setting SKIP_CONFIG_VALIDATION=true environment variable"""
    return os.environ.get("SKIP_CONFIG_VALIDATION", "").lower() not in ("true", "1", "yes")


# Global config manager instance
# Validated by the entry points, not on import
config_manager = ConfigManager(validate=False)
