from __future__ import annotations

import datetime as _dt

import pytest

from logmonitor.schemas import JobEntryStatus, LogEntry


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep the developer's environment, .env and config file out of every test."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "LOG_MONITOR_WARNING_THRESHOLD_MINUTES",
        "LOG_MONITOR_FAULT_THRESHOLD_MINUTES",
        "LOG_MONITOR_CSV_DELIMITER",
        "LOG_MONITOR_TIME_FORMAT",
        "LOG_MONITOR_AUDIT_DIR",
        "LOG_MONITOR_LOG_LEVEL",
    ):
        # Set first so values loaded from a .env are removed again afterwards
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("LOG_MONITOR_CONFIG", str(tmp_path / "no-config.json"))


def entry(ts: str, pid: int, status: str, description: str = "test job") -> LogEntry:
    return LogEntry(
        timestamp=_dt.time.fromisoformat(ts),
        description=description,
        status=JobEntryStatus(status),
        pid=pid,
    )


@pytest.fixture
def make_entry():
    return entry
