"""
Utility functions for writing mirror outputs.

This module provides functions to:
- Save generated shell scripts
- Save the JSON run report
- Format the end-of-run summary table
"""
import json
import os
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from tabulate import tabulate

from utils.logging_utils import get_logger

logger = get_logger(__name__)


# ============================================================================
# Serialization
# ============================================================================

def _to_jsonable(data: Any) -> Any:
    """Recursively convert values json can't serialize (enums, dates, sets, tuples)."""
    if isinstance(data, Enum):
        return data.value
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, (set, frozenset)):
        return sorted(_to_jsonable(item) for item in data)
    if isinstance(data, dict):
        return {k: _to_jsonable(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [_to_jsonable(item) for item in data]
    return data


# ============================================================================
# Saving Functions
# ============================================================================

def save_json(path: str, data: Any) -> str:
    """
    Write JSON data to a file with indentation.

    Args:
        path: Path to save the JSON file
        data: Data to save

    Returns:
        Path to the saved file
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    with open(p, "w") as f:
        json.dump(_to_jsonable(data), f, indent=2)
    logger.info(f"Saved JSON to {p}")
    return str(p)


def save_script(path: str, text: str, executable: bool = True) -> str:
    """
    Write a generated shell script.

    Args:
        path: Destination file path
        text: Script contents
        executable: If True, mark the file executable for its owner

    Returns:
        Path to the saved file
    """
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)

    with open(p, "w") as f:
        f.write(text)
    if executable:
        os.chmod(p, p.stat().st_mode | 0o100)
    logger.info(f"Saved script to {p}")
    return str(p)


# ============================================================================
# Summary Formatting
# ============================================================================

def format_summary_table(records: Iterable[Any], failures: Iterable[Any]) -> str:
    """Tabulate every transfer of a run, successes first.

    Args:
        records: Objects with ``source`` and ``target``
        failures: Objects with ``source``, ``target``, ``stage`` and ``error``
    """
    rows = [[r.source, r.target, "mirrored", ""] for r in records]
    rows.extend([f.source, f.target, f"failed ({f.stage.value})", f.error] for f in failures)
    headers = ["Source", "Target", "Status", "Error"]
    return tabulate(rows, headers=headers, tablefmt="grid")
