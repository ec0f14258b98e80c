"""Unit tests for utils/result_ledger.py"""

import threading

import pytest

from utils.error_utils import PushError, TransferStage
from utils.result_ledger import ResultLedger, TransferFailure, TransferRecord


class TestResultLedger:
    """Tests for ResultLedger"""

    def test_starts_empty(self):
        ledger = ResultLedger()
        assert ledger.is_empty()
        assert len(ledger) == 0
        assert ledger.records == []
        assert ledger.failures == []

    def test_failures_do_not_count_as_records(self):
        ledger = ResultLedger()
        ledger.add_failure(TransferFailure("nginx", "alice/nginx", TransferStage.PULL, "not found"))
        assert ledger.is_empty()
        assert len(ledger.failures) == 1

    def test_snapshots_are_copies(self):
        ledger = ResultLedger()
        ledger.add_record(TransferRecord("nginx", "alice/nginx"))
        snapshot = ledger.records
        snapshot.append(TransferRecord("redis", "alice/redis"))
        assert len(ledger) == 1

    def test_records_are_immutable(self):
        record = TransferRecord("nginx", "alice/nginx")
        with pytest.raises(AttributeError):
            record.source = "redis"

    def test_iterates_records_in_insertion_order(self):
        ledger = ResultLedger()
        records = [TransferRecord(f"img{i}", f"alice/img{i}") for i in range(3)]
        for record in records:
            ledger.add_record(record)
        assert list(ledger) == records

    @pytest.mark.parametrize("count", [1, 10, 100])
    def test_concurrent_inserts_are_not_lost(self, count):
        """Test that N threads inserting at once yield exactly N records"""
        ledger = ResultLedger()
        barrier = threading.Barrier(count)

        def insert(i):
            barrier.wait()
            ledger.add_record(TransferRecord(f"img{i}", f"alice/img{i}"))

        threads = [threading.Thread(target=insert, args=(i,)) for i in range(count)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ledger) == count
        assert set(ledger.records) == {TransferRecord(f"img{i}", f"alice/img{i}") for i in range(count)}

    def test_failure_from_error(self):
        error = PushError("nginx", "alice/nginx", RuntimeError("denied"))
        failure = TransferFailure.from_error(error)
        assert failure == TransferFailure("nginx", "alice/nginx", TransferStage.PUSH, "denied")
        assert failure.to_dict() == {
            "source": "nginx",
            "target": "alice/nginx",
            "stage": "push",
            "error": "denied",
        }

