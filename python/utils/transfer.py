"""
Single-image transfer: pull the source, tag it as the target, push the target.
"""

from dataclasses import dataclass
from threading import Event
from typing import Dict, Optional

from utils.error_utils import (
    PullError,
    PushError,
    TagError,
    TransferCancelledError,
    create_missing_credentials_error,
)
from utils.logging_utils import get_logger
from utils.result_ledger import TransferRecord

logger = get_logger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Destination registry credentials."""

    username: str
    password: str

    def __post_init__(self):
        if not self.username or not self.password:
            raise create_missing_credentials_error()

    def auth_config(self) -> Dict[str, str]:
        """Auth mapping the docker SDK serializes into the X-Registry-Auth header."""
        return {"username": self.username, "password": self.password}

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='****')"


def _check_cancelled(cancel_event: Optional[Event], source: str, target: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise TransferCancelledError(source, target, "run cancelled before this stage")


def transfer_image(
    client,
    source: str,
    target: str,
    auth_config: Dict[str, str],
    cancel_event: Optional[Event] = None,
) -> TransferRecord:
    """Mirror ``source`` to ``target`` through ``client``.

    Args:
        client: Registry client exposing pull/tag/push (e.g. DockerClient)
        source: Image reference to pull
        target: Image reference to push
        auth_config: Destination credentials for the push
        cancel_event: Checked before every stage; when set the transfer stops

    Returns:
        The TransferRecord for the completed transfer

    Raises:
        PullError, TagError, PushError: The stage that failed
        TransferCancelledError: The run was cancelled before the transfer finished
    """
    logger.info(f"Mirroring {source} => {target}")

    _check_cancelled(cancel_event, source, target)
    try:
        client.pull(source)
    except Exception as e:
        raise PullError(source, target, e) from e

    _check_cancelled(cancel_event, source, target)
    try:
        client.tag(source, target)
    except Exception as e:
        raise TagError(source, target, e) from e

    _check_cancelled(cancel_event, source, target)
    try:
        client.push(target, auth_config)
    except Exception as e:
        raise PushError(source, target, e) from e

    logger.info(f"Mirrored {source} => {target}")
    return TransferRecord(source=source, target=target)
