"""
Error types for the mirror run, with actionable guidance for operators.

Fatal errors (configuration, authentication, empty result) stop the run
before or after the transfers. Transfer errors are scoped to one image and
are collected into the result ledger instead of aborting the run.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""

    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    TRANSFER = "transfer"
    RESOURCE = "resource"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        suggestions: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [self.message]

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\nAdditional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class ConfigError(ActionableError):
    """Invalid input or configuration. Raised before any registry call."""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.CONFIGURATION, suggestions, details)


class AuthError(ActionableError):
    """Login to the destination registry failed."""

    def __init__(self, message: str, suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCategory.AUTHENTICATION, suggestions, details)


class TransferStage(Enum):
    """Stage of a single image transfer at which it failed"""

    PULL = "pull"
    TAG = "tag"
    PUSH = "push"
    CANCELLED = "cancelled"


class TransferError(ActionableError):
    """Failure within a single image transfer."""

    stage = None

    def __init__(self, source: str, target: str, cause: Any = None, stage: Optional[TransferStage] = None):
        self.source = source
        self.target = target
        self.cause = cause
        if stage is not None:
            self.stage = stage
        stage_name = self.stage.value if self.stage else "transfer"
        super().__init__(
            message=f"Failed to {stage_name} {source} => {target}: {cause}",
            category=ErrorCategory.TRANSFER,
            details={"stage": stage_name, "source": source, "target": target},
        )


class PullError(TransferError):
    stage = TransferStage.PULL


class TagError(TransferError):
    stage = TransferStage.TAG


class PushError(TransferError):
    stage = TransferStage.PUSH


class TransferCancelledError(TransferError):
    stage = TransferStage.CANCELLED


class EmptyResultError(ActionableError):
    """No image was mirrored successfully, so there is nothing to write."""

    def __init__(self, failures: Optional[List[Any]] = None):
        self.failures = list(failures or [])
        details = {f.source: f"{f.stage.value}: {f.error}" for f in self.failures}
        super().__init__(
            message=f"No images were mirrored ({len(self.failures)} failed)",
            category=ErrorCategory.RESOURCE,
            suggestions=[
                "Check that the source image references exist and are spelled correctly",
                "Verify the destination account can push to its namespace",
                "Re-run with LOG_LEVEL=DEBUG for the full daemon output",
            ],
            details=details,
        )


def create_config_error(field: str, value: Any, reason: str) -> ConfigError:
    """Create actionable error for configuration validation failures"""
    suggestions = [
        f"Check the '{field}' value in config.yaml or on the command line",
        "Check config-example.yaml for the expected format",
    ]

    if field == "content":
        suggestions.insert(0, 'Content must be a JSON object like {"hub-mirror": ["nginx:latest"]}')
    elif "max_content" in field:
        suggestions.insert(0, "Split the image list into smaller batches or raise mirror.max_content")
    elif "timeout" in field or "delay" in field:
        suggestions.insert(0, "Time values must be non-negative numbers")
    elif field == "output_dir":
        suggestions.insert(0, "Check that the output directory exists and is writable, or set OUTPUT_DIR")

    return ConfigError(
        message=f"Configuration error: invalid value for '{field}'",
        suggestions=suggestions,
        details={"field": field, "value": value, "reason": reason},
    )


def create_missing_credentials_error() -> ConfigError:
    """Create actionable error for a missing username or password"""
    return ConfigError(
        message="Registry username or password cannot be empty",
        suggestions=[
            "Pass --username and --password",
            "Or set DOCKER_USERNAME and DOCKER_PASSWORD environment variables",
            "Or set registry.username and registry.password in config.yaml",
        ],
    )


def create_registry_auth_error(registry: str, error: Exception) -> AuthError:
    """Create actionable error for registry authentication failures"""
    error_str = str(error).lower()

    suggestions = [
        "Verify the username and password are correct",
        "If the account uses two-factor authentication, use an access token as the password",
        "Check that the Docker daemon can reach the registry",
    ]

    if "connection" in error_str or "timed out" in error_str:
        suggestions.insert(0, "Verify the Docker daemon is running (docker info)")

    return AuthError(
        message=f"Failed to authenticate with Docker registry {registry}",
        suggestions=suggestions,
        details={
            "registry": registry,
            "error_type": type(error).__name__,
            "error_message": str(error),
        },
    )


def create_docker_connection_error(base_url: Optional[str], error: Exception) -> ActionableError:
    """Create actionable error for Docker daemon connection failures"""
    return ActionableError(
        message=f"Failed to connect to the Docker daemon at {base_url or 'DOCKER_HOST'}",
        category=ErrorCategory.CONNECTION,
        suggestions=[
            "Verify the Docker daemon is running",
            "Check DOCKER_HOST or docker.base_url in config.yaml",
            "Check permissions on the Docker socket",
        ],
        details={"error_type": type(error).__name__, "error_message": str(error)},
    )
