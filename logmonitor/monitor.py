"""Correlates START/END log entries by pid and classifies each job by duration."""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, model_validator

from .schemas import (
    JobAnalysis,
    JobEntryStatus,
    JobExecution,
    LogEntry,
    completed,
    dangling,
    faulty,
    warning,
)


logger = logging.getLogger(__name__)


class MonitorConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    warning_threshold: _dt.timedelta = _dt.timedelta(minutes=5)
    fault_threshold: _dt.timedelta = _dt.timedelta(minutes=10)

    @model_validator(mode="after")
    def check_thresholds(self) -> "MonitorConfig":
        zero = _dt.timedelta(0)
        if self.warning_threshold < zero or self.fault_threshold < zero:
            raise ValueError("thresholds must not be negative")
        if self.warning_threshold >= self.fault_threshold:
            raise ValueError(
                f"warning threshold ({self.warning_threshold}) must be below fault threshold ({self.fault_threshold})"
            )
        return self

    @classmethod
    def from_minutes(cls, warning_minutes: int, fault_minutes: int) -> "MonitorConfig":
        return cls(
            warning_threshold=_dt.timedelta(minutes=warning_minutes),
            fault_threshold=_dt.timedelta(minutes=fault_minutes),
        )


def _minutes(threshold: _dt.timedelta) -> int:
    return int(threshold.total_seconds() // 60)


class LogMonitor:
    """Turns a flat sequence of log entries into one analysis per job or anomaly.

    Every input entry ends up either inside a ``JobExecution`` or wrapped as a
    dangling entry with a reason; malformed correlations are reported, never
    raised. No state outlives a ``process`` call.
    """

    def __init__(self, config: Optional[MonitorConfig] = None) -> None:
        self.config = config or MonitorConfig()

    @property
    def warning_threshold(self) -> _dt.timedelta:
        return self.config.warning_threshold

    @property
    def fault_threshold(self) -> _dt.timedelta:
        return self.config.fault_threshold

    def process(self, entries: Optional[Iterable[LogEntry]]) -> List[JobAnalysis]:
        if not entries:
            return []

        starts: List[LogEntry] = []
        ends: List[LogEntry] = []
        for entry in entries:
            (starts if entry.status is JobEntryStatus.START else ends).append(entry)

        analyses: List[JobAnalysis] = []
        pending: Dict[int, LogEntry] = {}

        for entry in starts:
            previous = pending.get(entry.pid)
            if previous is not None:
                issue = (
                    f"Duplicate START event for PID {entry.pid} ({entry.description}) at {entry.timestamp}. "
                    f"Previous START was at {previous.timestamp}."
                )
                logger.debug(issue)
                analyses.append(dangling(entry, issue))
            # The newer START becomes the one a later END pairs with
            pending[entry.pid] = entry

        for entry in ends:
            start = pending.pop(entry.pid, None)
            if start is None:
                issue = f"END event without matching START for PID {entry.pid} ({entry.description}) at {entry.timestamp}"
                logger.debug(issue)
                analyses.append(dangling(entry, issue))
                continue
            analyses.append(self.categorize(JobExecution(start=start, end=entry)))

        # Jobs that never finished, or are still running when the log was cut
        for entry in pending.values():
            issue = f"START event without matching END for PID {entry.pid} ({entry.description}) at {entry.timestamp}"
            logger.debug(issue)
            analyses.append(dangling(entry, issue))

        completed_count = sum(1 for a in analyses if a.has_job_execution)
        logger.info(
            "Processed %d log entries: %d jobs completed, %d dangling entries",
            len(starts) + len(ends),
            completed_count,
            len(analyses) - completed_count,
        )
        return analyses

    def categorize(self, job: JobExecution) -> JobAnalysis:
        if self.is_faulty(job):
            reason = (
                f"Exceeded fault threshold ({_minutes(self.fault_threshold)} min) "
                f"with duration {job.formatted_duration}"
            )
            return faulty(job, reason)
        if self.is_warning(job):
            reason = (
                f"Exceeded warning threshold ({_minutes(self.warning_threshold)} min) "
                f"with duration {job.formatted_duration}"
            )
            return warning(job, reason)
        return completed(job)

    def is_warning(self, job: JobExecution) -> bool:
        return self.warning_threshold < job.duration <= self.fault_threshold

    def is_faulty(self, job: JobExecution) -> bool:
        return job.duration > self.fault_threshold
