"""
Thread-safe collection of transfer outcomes shared by all transfer workers.
"""

from dataclasses import asdict, dataclass
from threading import Lock
from typing import Any, Dict, Iterator, List

from utils.error_utils import TransferError, TransferStage


@dataclass(frozen=True)
class TransferRecord:
    """A completed transfer: ``source`` is now available as ``target``."""

    source: str
    target: str


@dataclass(frozen=True)
class TransferFailure:
    """A transfer that stopped at ``stage``."""

    source: str
    target: str
    stage: TransferStage
    error: str

    @classmethod
    def from_error(cls, error: TransferError) -> "TransferFailure":
        return cls(source=error.source, target=error.target, stage=error.stage, error=str(error.cause))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["stage"] = self.stage.value
        return data


class ResultLedger:
    """Append-only record of successful and failed transfers.

    Insertion order is completion order, which need not match request order.
    """

    def __init__(self):
        self._lock = Lock()
        self._records: List[TransferRecord] = []
        self._failures: List[TransferFailure] = []

    def add_record(self, record: TransferRecord) -> None:
        with self._lock:
            self._records.append(record)

    def add_failure(self, failure: TransferFailure) -> None:
        with self._lock:
            self._failures.append(failure)

    @property
    def records(self) -> List[TransferRecord]:
        """Snapshot of the successful transfers."""
        with self._lock:
            return list(self._records)

    @property
    def failures(self) -> List[TransferFailure]:
        """Snapshot of the failed transfers."""
        with self._lock:
            return list(self._failures)

    def is_empty(self) -> bool:
        with self._lock:
            return not self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[TransferRecord]:
        return iter(self.records)
