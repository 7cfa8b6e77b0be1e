from __future__ import annotations

import datetime as _dt

import pytest
from pydantic import ValidationError

from logmonitor.monitor import LogMonitor, MonitorConfig
from logmonitor.schemas import JobAnalysisState


def _executions(analyses, state=None):
    return [
        a.execution
        for a in analyses
        if a.has_job_execution and (state is None or a.state is state)
    ]


def _issues(analyses):
    return [a.reason for a in analyses if a.has_dangling_entry]


def test_job_within_threshold_is_ok(make_entry):
    analyses = LogMonitor().process([
        make_entry("11:35:23", 37980, "START"),
        make_entry("11:35:56", 37980, "END"),
    ])
    assert len(analyses) == 1
    assert analyses[0].state is JobAnalysisState.OK
    assert analyses[0].execution.duration == _dt.timedelta(seconds=33)
    assert analyses[0].reason is None


def test_job_over_warning_threshold(make_entry):
    analyses = LogMonitor().process([make_entry("11:00:00", 100, "START"), make_entry("11:06:00", 100, "END")])
    assert [a.state for a in analyses] == [JobAnalysisState.WARNING]
    assert analyses[0].reason == "Exceeded warning threshold (5 min) with duration 06:00"


def test_job_over_fault_threshold(make_entry):
    analyses = LogMonitor().process([make_entry("11:00:00", 123, "START"), make_entry("11:15:00", 123, "END")])
    assert [a.state for a in analyses] == [JobAnalysisState.FAULTY]
    assert analyses[0].has_job_execution
    assert analyses[0].reason == "Exceeded fault threshold (10 min) with duration 15:00"


@pytest.mark.parametrize(
    "end,expected",
    [
        ("11:05:00", JobAnalysisState.OK),       # equal to warning threshold
        ("11:05:01", JobAnalysisState.WARNING),
        ("11:10:00", JobAnalysisState.WARNING),  # equal to fault threshold
        ("11:10:01", JobAnalysisState.FAULTY),
    ],
)
def test_threshold_boundaries(make_entry, end, expected):
    analyses = LogMonitor().process([make_entry("11:00:00", 1, "START"), make_entry(end, 1, "END")])
    assert [a.state for a in analyses] == [expected]


def test_multiple_jobs_are_categorized(make_entry):
    analyses = LogMonitor().process([
        make_entry("11:35:23", 100, "START", "job 1"),
        make_entry("11:35:56", 100, "END", "job 1"),
        make_entry("11:40:00", 200, "START", "job 2"),
        make_entry("11:46:00", 200, "END", "job 2"),
        make_entry("11:50:00", 300, "START", "job 3"),
        make_entry("12:05:00", 300, "END", "job 3"),
    ])
    assert len(_executions(analyses)) == 3
    assert [e.pid for e in _executions(analyses, JobAnalysisState.OK)] == [100]
    assert [e.pid for e in _executions(analyses, JobAnalysisState.WARNING)] == [200]
    assert [e.pid for e in _executions(analyses, JobAnalysisState.FAULTY)] == [300]
    assert _issues(analyses) == []


def test_start_without_end(make_entry):
    analyses = LogMonitor().process([make_entry("11:00:00", 100, "START")])
    assert _executions(analyses) == []
    assert len(_issues(analyses)) == 1
    assert "START event without matching END" in _issues(analyses)[0]
    assert analyses[0].state is JobAnalysisState.FAULTY


def test_end_without_start(make_entry):
    analyses = LogMonitor().process([make_entry("11:35:56", 123, "END")])
    assert _executions(analyses) == []
    assert _issues(analyses) == ["END event without matching START for PID 123 (test job) at 11:35:56"]


def test_duplicate_start_pairs_with_newer_start(make_entry):
    first = make_entry("11:00:00", 100, "START")
    second = make_entry("11:00:30", 100, "START")
    analyses = LogMonitor().process([first, second, make_entry("11:01:00", 100, "END")])

    executions = _executions(analyses, JobAnalysisState.OK)
    assert len(executions) == 1
    assert executions[0].start == second
    assert executions[0].duration == _dt.timedelta(seconds=30)

    dangling = [a for a in analyses if a.has_dangling_entry]
    assert len(dangling) == 1
    assert dangling[0].entry == second
    assert "Duplicate START event" in dangling[0].reason
    assert "Previous START was at 11:00:00" in dangling[0].reason


def test_midnight_rollover(make_entry):
    analyses = LogMonitor().process([make_entry("23:55:00", 1, "START"), make_entry("00:05:00", 1, "END")])
    assert len(analyses) == 1
    assert analyses[0].execution.duration == _dt.timedelta(minutes=10)
    assert analyses[0].state is JobAnalysisState.WARNING


def test_interleaved_jobs(make_entry):
    analyses = LogMonitor().process([
        make_entry("11:00:00", 100, "START", "job 1"),
        make_entry("11:01:00", 200, "START", "job 2"),
        make_entry("11:02:00", 100, "END", "job 1"),
        make_entry("11:03:00", 200, "END", "job 2"),
    ])
    assert len(_executions(analyses, JobAnalysisState.OK)) == 2
    assert _issues(analyses) == []


def test_pid_interleaving_does_not_change_results(make_entry):
    a_start, a_end = make_entry("11:00:00", 1, "START", "a"), make_entry("11:07:00", 1, "END", "a")
    b_start, b_end = make_entry("11:01:00", 2, "START", "b"), make_entry("11:20:00", 2, "END", "b")
    monitor = LogMonitor()

    def per_pid(entries):
        return {a.execution.pid: (a.state, a.execution.duration) for a in monitor.process(entries)}

    expected = per_pid([a_start, a_end, b_start, b_end])
    assert per_pid([a_start, b_start, a_end, b_end]) == expected
    assert per_pid([b_start, a_start, b_end, a_end]) == expected
    assert per_pid([b_start, b_end, a_start, a_end]) == expected


def test_process_is_idempotent(make_entry):
    entries = [
        make_entry("11:00:00", 1, "START"),
        make_entry("11:00:10", 1, "START"),
        make_entry("11:06:00", 1, "END"),
        make_entry("11:07:00", 2, "END"),
        make_entry("11:08:00", 3, "START"),
    ]
    monitor = LogMonitor()
    assert monitor.process(entries) == monitor.process(entries)


def test_output_size_matches_pairs_and_anomalies(make_entry):
    entries = [
        make_entry("10:00:00", 1, "START"),
        make_entry("10:00:05", 1, "START"),
        make_entry("10:01:00", 1, "END"),
        make_entry("10:02:00", 2, "END"),
        make_entry("10:03:00", 3, "START"),
        make_entry("10:04:00", 4, "START"),
        make_entry("10:20:00", 4, "END"),
    ]
    analyses = LogMonitor().process(entries)
    executions = _executions(analyses)
    dangling = [a.entry for a in analyses if a.has_dangling_entry]

    assert len(analyses) == len(executions) + len(dangling)
    covered = [e.start for e in executions] + [e.end for e in executions] + dangling
    # The superseded first START only appears in the duplicate reason
    assert len(covered) == len(entries)
    assert all(e.duration >= _dt.timedelta(0) for e in executions)


def test_unmatched_starts_reported_in_arrival_order(make_entry):
    analyses = LogMonitor().process([
        make_entry("10:00:00", 9, "START"),
        make_entry("10:00:01", 3, "START"),
        make_entry("10:00:02", 5, "START"),
    ])
    assert [a.entry.pid for a in analyses] == [9, 3, 5]


def test_empty_input():
    assert LogMonitor().process([]) == []
    assert LogMonitor().process(None) == []


def test_input_entries_are_not_mutated(make_entry):
    entries = [make_entry("11:00:00", 1, "START"), make_entry("11:01:00", 1, "END")]
    snapshot = list(entries)
    LogMonitor().process(entries)
    assert entries == snapshot


def test_custom_thresholds(make_entry):
    monitor = LogMonitor(MonitorConfig.from_minutes(1, 2))
    analyses = monitor.process([make_entry("11:00:00", 1, "START"), make_entry("11:01:30", 1, "END")])
    assert analyses[0].state is JobAnalysisState.WARNING
    assert analyses[0].reason == "Exceeded warning threshold (1 min) with duration 01:30"


def test_default_thresholds():
    monitor = LogMonitor()
    assert monitor.warning_threshold == _dt.timedelta(minutes=5)
    assert monitor.fault_threshold == _dt.timedelta(minutes=10)


@pytest.mark.parametrize("warning,fault", [(10, 5), (5, 5), (-1, 5)])
def test_invalid_thresholds_rejected(warning, fault):
    with pytest.raises(ValidationError):
        MonitorConfig.from_minutes(warning, fault)
