"""
Docker client for mirror operations.

This module wraps the docker SDK with the operations a mirror run needs:
registry login, pull, local tag and push. Pull and push progress reported
by the daemon is streamed to a progress stream (stdout by default), and
transient daemon/registry errors are retried with backoff.
"""

import sys
from threading import Lock
from typing import Any, Dict, Iterable, Optional, TextIO

import docker
from docker.errors import APIError, DockerException
from docker.utils import parse_repository_tag

from utils.error_utils import create_docker_connection_error, create_registry_auth_error
from utils.logging_utils import get_logger
from utils.retry_utils import retry_with_backoff

logger = get_logger(__name__)

DOCKER_HUB = "https://index.docker.io/v1/"


class RegistryStreamError(Exception):
    """The daemon reported an error inside a pull or push progress stream."""


def format_progress_event(event: Dict[str, Any]) -> Optional[str]:
    """Render one decoded progress event the way the docker CLI prints it.

    Returns None for events without a status line (e.g. push digests).
    """
    status = event.get("status")
    if not status:
        return None
    parts = [f"{event['id']}: {status}" if event.get("id") else status]
    if event.get("progress"):
        parts.append(event["progress"])
    return " ".join(parts)


class DockerClient:
    """Registry operations against the local Docker daemon."""

    def __init__(self, config_manager, client: Optional[docker.DockerClient] = None, progress_stream: Optional[TextIO] = None):
        """Initialize DockerClient.

        Args:
            config_manager: ConfigManager instance for accessing configuration
            client: Pre-built docker SDK client (defaults to one built from config/environment)
            progress_stream: Where pull/push progress lines go (defaults to stdout)
        """
        self.config_manager = config_manager
        self.base_url = config_manager.get_docker_base_url()
        self.progress_stream = progress_stream or sys.stdout
        self._progress_lock = Lock()

        if client is None:
            client = self._connect()
        self.client = client
        self.api = client.api

        self._retry = retry_with_backoff(
            max_retries=config_manager.get_max_retries(),
            initial_delay=config_manager.get_retry_initial_delay(),
            max_delay=config_manager.get_retry_max_delay(),
            exponential_base=config_manager.get_retry_exponential_base(),
            jitter=config_manager.get_retry_jitter(),
        )

    def _connect(self) -> docker.DockerClient:
        timeout = self.config_manager.get_docker_timeout()
        try:
            if self.base_url:
                return docker.DockerClient(base_url=self.base_url, timeout=timeout)
            return docker.from_env(timeout=timeout)
        except DockerException as e:
            raise create_docker_connection_error(self.base_url, e) from e

    def login(self, username: str, password: str, registry: Optional[str] = None) -> Dict[str, Any]:
        """Authenticate against the destination registry.

        Raises:
            AuthError: If the registry rejects the credentials or cannot be reached
        """
        registry = registry or DOCKER_HUB
        logger.info(f"Logging in to registry {registry} as {username}")
        try:
            return self.client.login(username=username, password=password, registry=registry, reauth=True)
        except (APIError, DockerException) as e:
            logger.error(f"Failed to authenticate with registry: {registry}")
            raise create_registry_auth_error(registry, e) from e

    def _consume_stream(self, events: Iterable[Dict[str, Any]]) -> None:
        for event in events:
            if event.get("error"):
                raise RegistryStreamError(event["error"])
            line = format_progress_event(event)
            if line is None:
                continue
            with self._progress_lock:
                self.progress_stream.write(line + "\n")
                self.progress_stream.flush()

    def pull(self, ref: str) -> None:
        """Pull ``ref`` into the local image store, streaming progress."""

        @self._retry
        def _pull():
            self._consume_stream(self.api.pull(ref, stream=True, decode=True))

        _pull()

    def tag(self, source: str, target: str) -> None:
        """Tag the local image ``source`` as ``target``."""
        repository, tag = parse_repository_tag(target)
        if not self.api.tag(source, repository, tag=tag or "latest"):
            raise APIError(f"Daemon refused to tag {source} as {target}")

    def push(self, ref: str, auth_config: Dict[str, str]) -> None:
        """Push ``ref`` using the given registry credentials, streaming progress."""

        @self._retry
        def _push():
            self._consume_stream(self.api.push(ref, stream=True, decode=True, auth_config=auth_config))

        _push()
