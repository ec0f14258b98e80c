"""Unit tests for utils/report_utils.py"""

import json
import os
import stat

from utils.error_utils import TransferStage
from utils.report_utils import format_summary_table, save_json, save_script
from utils.result_ledger import TransferFailure, TransferRecord


class TestSaveScript:
    """Tests for save_script"""

    def test_writes_text_verbatim(self, tmp_path):
        text = "docker pull alice/nginx\ndocker tag alice/nginx nginx\n"
        path = save_script(str(tmp_path / "output.sh"), text)

        with open(path) as f:
            assert f.read() == text

    def test_marks_executable(self, tmp_path):
        path = save_script(str(tmp_path / "output.sh"), "")
        assert os.stat(path).st_mode & stat.S_IXUSR

    def test_not_executable_when_disabled(self, tmp_path):
        path = save_script(str(tmp_path / "notes.txt"), "x\n", executable=False)
        assert not os.stat(path).st_mode & stat.S_IXUSR

    def test_creates_parent_directories(self, tmp_path):
        path = save_script(str(tmp_path / "out" / "scripts" / "nerdctl.sh"), "\n")
        assert os.path.exists(path)


class TestSaveJson:
    """Tests for save_json"""

    def test_serializes_enums_and_tuples(self, tmp_path):
        data = {"stage": TransferStage.PUSH, "sources": ("nginx", "redis")}
        path = save_json(str(tmp_path / "report.json"), data)

        with open(path) as f:
            assert json.load(f) == {"stage": "push", "sources": ["nginx", "redis"]}


class TestFormatSummaryTable:
    """Tests for format_summary_table"""

    def test_lists_successes_and_failures(self):
        records = [TransferRecord(source="nginx", target="alice/nginx")]
        failures = [
            TransferFailure(
                source="redis:nope", target="alice/redis:nope", stage=TransferStage.PULL, error="manifest unknown"
            )
        ]

        table = format_summary_table(records, failures)

        assert "Source" in table and "Error" in table
        assert "mirrored" in table
        assert "failed (pull)" in table
        assert "manifest unknown" in table
        assert table.index("alice/nginx") < table.index("alice/redis:nope")

    def test_empty_run(self):
        table = format_summary_table([], [])
        assert "Source" in table
