from __future__ import annotations

import datetime as _dt
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field, model_validator


_DAY = _dt.timedelta(hours=24)


class JobEntryStatus(str, Enum):
    START = "START"
    END = "END"


class JobAnalysisState(str, Enum):
    # Declaration order is the reporting order
    OK = "OK"
    WARNING = "WARNING"
    FAULTY = "FAULTY"


class LogEntry(BaseModel):
    """One parsed log line: ``HH:MM:SS,description,STATUS,pid``."""

    model_config = ConfigDict(frozen=True)

    timestamp: _dt.time
    description: str
    status: JobEntryStatus
    pid: int = Field(..., ge=0)

    @property
    def is_start(self) -> bool:
        return self.status is JobEntryStatus.START

    @property
    def is_end(self) -> bool:
        return self.status is JobEntryStatus.END

    def __str__(self) -> str:
        return ",".join([self.timestamp.isoformat(), self.description, self.status.value, str(self.pid)])


def format_duration(duration: _dt.timedelta) -> str:
    total = int(duration.total_seconds())
    return f"{total // 60:02d}:{total % 60:02d}"


class JobExecution(BaseModel):
    """A START entry paired with the END entry of the same job.

    Pairing a START with anything other than the END of the same pid and
    description is rejected at construction.
    """

    model_config = ConfigDict(frozen=True)

    start: LogEntry
    end: LogEntry

    @model_validator(mode="after")
    def check_pairing(self) -> "JobExecution":
        if not self.start.is_start:
            raise ValueError(f"start entry must have START status, but has {self.start.status.value}")
        if not self.end.is_end:
            raise ValueError(f"end entry must have END status, but has {self.end.status.value}")
        if self.start.pid != self.end.pid:
            raise ValueError(f"PID mismatch: start entry has PID {self.start.pid}, end entry has PID {self.end.pid}")
        if self.start.description != self.end.description:
            raise ValueError(
                f"Job description mismatch: start entry has '{self.start.description}', "
                f"end entry has '{self.end.description}'"
            )
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> _dt.timedelta:
        # Only time of day is known: a negative span means the job crossed midnight
        day = _dt.date.min
        delta = _dt.datetime.combine(day, self.end.timestamp) - _dt.datetime.combine(day, self.start.timestamp)
        if delta < _dt.timedelta(0):
            delta += _DAY
        return delta

    @property
    def pid(self) -> int:
        return self.start.pid

    @property
    def description(self) -> str:
        return self.start.description

    @property
    def formatted_duration(self) -> str:
        return format_duration(self.duration)

    def __str__(self) -> str:
        return (
            f"{self.pid} {self.description} "
            f"{self.start.timestamp.isoformat()}->{self.end.timestamp.isoformat()} ({self.formatted_duration})"
        )


def _require_reason(reason: str) -> str:
    if not reason.strip():
        raise ValueError("reason must not be blank")
    return reason


Reason = Annotated[str, AfterValidator(_require_reason)]


class CompletedJob(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["execution"] = "execution"
    execution: JobExecution
    state: JobAnalysisState
    reason: Optional[Reason] = None

    @model_validator(mode="after")
    def reason_for_non_ok(self) -> "CompletedJob":
        if self.state is not JobAnalysisState.OK and self.reason is None:
            raise ValueError(f"reason is required for a {self.state.value} job")
        return self

    has_job_execution: ClassVar[bool] = True
    has_dangling_entry: ClassVar[bool] = False

    @property
    def has_reason(self) -> bool:
        return self.reason is not None


class DanglingEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["dangling"] = "dangling"
    entry: LogEntry
    reason: Reason
    state: Literal[JobAnalysisState.FAULTY] = JobAnalysisState.FAULTY

    has_job_execution: ClassVar[bool] = False
    has_dangling_entry: ClassVar[bool] = True
    has_reason: ClassVar[bool] = True


JobAnalysis = Annotated[Union[CompletedJob, DanglingEntry], Field(discriminator="kind")]


def completed(execution: JobExecution) -> CompletedJob:
    return CompletedJob(execution=execution, state=JobAnalysisState.OK)


def warning(execution: JobExecution, reason: str) -> CompletedJob:
    return CompletedJob(execution=execution, state=JobAnalysisState.WARNING, reason=reason)


def faulty(execution: JobExecution, reason: str) -> CompletedJob:
    return CompletedJob(execution=execution, state=JobAnalysisState.FAULTY, reason=reason)


def dangling(entry: LogEntry, reason: str) -> DanglingEntry:
    return DanglingEntry(entry=entry, reason=reason)


class AuditEvent(BaseModel):
    run_id: str
    step: str
    status: Literal["ok", "error"]
    ts_iso: str  # UTC ISO 8601
    ts_ns: int   # monotonic clock nanoseconds
    input_digest: Optional[str] = None
    output_digest: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    prev_event_hash: str
    event_hash: str


class FileStats(BaseModel):
    path: str
    sha256: str
    entries: int
    skipped_lines: int


class ParseResult(BaseModel):
    entries: List[LogEntry] = Field(default_factory=list)
    files: List[FileStats] = Field(default_factory=list)

    @property
    def skipped_lines(self) -> int:
        return sum(f.skipped_lines for f in self.files)
