"""Reads job log files made of ``HH:MM:SS,description,STATUS,pid`` lines."""

from __future__ import annotations

import datetime as _dt
import logging
import re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from pydantic import ValidationError

from .hashing import sha256_file
from .schemas import FileStats, JobEntryStatus, LogEntry, ParseResult


logger = logging.getLogger(__name__)

_FIELD_COUNT = 4
DEFAULT_TIME_FORMAT = "%H:%M:%S"
# strptime alone also accepts single-digit fields such as "1:2:3"
_STRICT_TIME = re.compile(r"\d{2}:\d{2}:\d{2}")


class LineParseError(ValueError):
    """A single log line could not be turned into a LogEntry."""


class LogFileError(OSError):
    """A log file is missing or unreadable."""


class CsvLogParser:
    def __init__(self, delimiter: str = ",", time_format: str = DEFAULT_TIME_FORMAT) -> None:
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self.delimiter = delimiter
        self.time_format = time_format

    def parse_line(self, line: Optional[str]) -> LogEntry:
        if line is None or not line.strip():
            raise LineParseError("Line is empty")

        parts = line.split(self.delimiter)
        if len(parts) != _FIELD_COUNT:
            raise LineParseError(f"Expected {_FIELD_COUNT} fields but found {len(parts)}. Line: {line}")
        raw_time, description, raw_status, raw_pid = (p.strip() for p in parts)

        if self.time_format == DEFAULT_TIME_FORMAT and not _STRICT_TIME.fullmatch(raw_time):
            raise LineParseError(f"Invalid timestamp format: {raw_time}")
        try:
            timestamp = _dt.datetime.strptime(raw_time, self.time_format).time()
        except ValueError as e:
            raise LineParseError(f"Invalid timestamp format: {raw_time}") from e

        try:
            status = JobEntryStatus(raw_status.upper())
        except ValueError as e:
            raise LineParseError(f"Invalid status '{raw_status}'. Expected START or END") from e

        # int() alone would also take "+12" or "1_000"
        if not (raw_pid.isascii() and raw_pid.isdigit()):
            raise LineParseError(f"Invalid PID format: {raw_pid}")

        try:
            return LogEntry(timestamp=timestamp, description=description, status=status, pid=int(raw_pid))
        except ValidationError as e:
            raise LineParseError(str(e)) from e

    def _read_lines(self, path: Path) -> List[str]:
        try:
            # Only \n, \r and \r\n end a line; str.splitlines would also split on \x1c, \x85, ...
            with open(path, encoding="utf-8", newline=None) as f:
                return [line.rstrip("\n") for line in f]
        except FileNotFoundError as e:
            raise LogFileError(f"Log file not found: {path}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise LogFileError(f"Cannot read log file {path}: {e}") from e

    def parse_file(self, path: Path) -> Tuple[List[LogEntry], FileStats]:
        path = Path(path)
        logger.info("Reading log file: %s", path)
        lines = self._read_lines(path)

        entries: List[LogEntry] = []
        skipped = 0
        for line_number, line in enumerate(lines, start=1):
            if not line.strip():
                logger.debug("Skipping empty line %d in %s", line_number, path)
                continue
            try:
                entries.append(self.parse_line(line))
            except LineParseError as e:
                skipped += 1
                logger.warning("Failed to parse line %d of %s: %s - %s", line_number, path, line, e)

        logger.info("Parsed %d log entries from %s (%d lines skipped)", len(entries), path, skipped)
        stats = FileStats(path=str(path), sha256=sha256_file(path), entries=len(entries), skipped_lines=skipped)
        return entries, stats

    def parse(self, path: Path) -> List[LogEntry]:
        entries, _ = self.parse_file(path)
        return entries

    def parse_many(self, paths: Iterable[Path]) -> ParseResult:
        """Concatenate entries of all files, in the order given."""
        result = ParseResult()
        for path in paths:
            entries, stats = self.parse_file(path)
            result.entries.extend(entries)
            result.files.append(stats)
        return result
