import csv
from pathlib import Path
from typing import Dict, List

import pytest

from services.record_validator import JTL_COLUMNS

# 2023-11-14 22:13:20 UTC
BASE_TS = 1700000000000


def make_row(ts, label="Login", elapsed=100, success="true", threads=1, latency=50,
             bytes_in=1000, bytes_out=200, code="200", message="OK") -> Dict[str, str]:
    """Raw JTL row as csv.DictReader would produce it (all strings)."""
    return {
        "timeStamp": "" if ts is None else str(ts),
        "label": label,
        "elapsed": str(elapsed),
        "success": success,
        "allThreads": str(threads),
        "Latency": str(latency),
        "bytes": str(bytes_in),
        "sentBytes": str(bytes_out),
        "responseCode": code,
        "responseMessage": message,
    }


def write_jtl(path: Path, rows: List[Dict[str, str]], columns: List[str] = None) -> Path:
    columns = columns or JTL_COLUMNS
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)
    return path


class StubContext:
    """Minimal stand-in for fastmcp.Context that records log calls."""

    def __init__(self):
        self.messages = []

    async def info(self, message, *args, **kwargs):
        self.messages.append(("info", message))

    async def warning(self, message, *args, **kwargs):
        self.messages.append(("warning", message))

    async def error(self, message, *args, **kwargs):
        self.messages.append(("error", message))

    def levels(self):
        return [level for level, _ in self.messages]


@pytest.fixture
def ctx():
    return StubContext()


@pytest.fixture
def artifacts_dir(tmp_path, monkeypatch):
    """Point the analyzer service at a throwaway artifacts tree."""
    import services.jtl_analyzer as jtl_analyzer

    root = tmp_path / "artifacts"
    root.mkdir()
    monkeypatch.setattr(jtl_analyzer, "ARTIFACTS_PATH", root)
    return root
