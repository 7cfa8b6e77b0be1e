from __future__ import annotations

import argparse
import logging
import sys
import time
import traceback
from pathlib import Path
from typing import List, Optional

from .audit import AuditTrail, new_run_id
from .hashing import sha256_text
from .monitor import LogMonitor
from .parser import CsvLogParser
from .report import ReportFormatter, render_json, summarize
from .settings import Settings


logger = logging.getLogger("logmonitor")

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="log-monitor",
        description="Pair job START/END log events and report jobs exceeding duration thresholds",
    )
    parser.add_argument("paths", nargs="*", help="One or more CSV log files (HH:MM:SS,description,STATUS,pid)")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Report format")
    parser.add_argument("--warning-minutes", type=int, help="Warning threshold override in minutes")
    parser.add_argument("--fault-minutes", type=int, help="Fault threshold override in minutes")
    parser.add_argument("--audit-dir", help="Write a hash-chained audit trail for this run under DIR")
    parser.add_argument("--log-level", help="Logging level (default from settings, INFO)")
    return parser


def configure_logging(level: str) -> None:
    lvl = getattr(logging, level.upper(), None)
    # logging also exports helpers and format strings under upper-case names
    if not isinstance(lvl, int):
        lvl = logging.INFO
    # Report goes to stdout; diagnostics stay on stderr
    logging.basicConfig(level=lvl, format="%(asctime)s %(levelname)s %(name)s %(message)s", stream=sys.stderr)


def _dedupe(paths: List[str]) -> List[Path]:
    return [Path(p) for p in dict.fromkeys(paths)]


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    try:
        cfg = Settings.load()
        overrides = {}
        if args.warning_minutes is not None:
            overrides["warning_threshold_minutes"] = args.warning_minutes
        if args.fault_minutes is not None:
            overrides["fault_threshold_minutes"] = args.fault_minutes
        if args.audit_dir:
            overrides["audit_base_dir"] = str(Path(args.audit_dir).resolve())
        if args.log_level:
            overrides["log_level"] = args.log_level.upper()
        cfg = cfg.model_copy(update=overrides)
        monitor_config = cfg.monitor_config()
    except (ValueError, OSError) as e:
        configure_logging(args.log_level or "INFO")
        logger.error("Aborting, invalid configuration: %s", e)
        return EXIT_USAGE

    configure_logging(cfg.log_level)

    if not args.paths:
        logger.error("Aborting, at least one log file path must be provided as argument")
        return EXIT_USAGE
    paths = _dedupe(args.paths)
    missing = [str(p) for p in paths if not p.is_file()]
    if missing:
        logger.error("Aborting, log file(s) not found: %s", missing)
        return EXIT_USAGE

    run_id = new_run_id()
    try:
        run_dir = cfg.audit_dir_for(run_id)
        audit: Optional[AuditTrail] = AuditTrail(run_id, run_dir) if run_dir else None
    except OSError as e:
        logger.error("Aborting, cannot create audit trail: %s", e)
        return EXIT_ERROR
    start_perf_ns = time.perf_counter_ns()

    try:
        if audit:
            audit.log_event(
                "run_started",
                details={"paths": [str(p) for p in paths], "cfg_hash": cfg.cfg_hash},
            )

        parser = CsvLogParser(delimiter=cfg.csv_delimiter, time_format=cfg.time_format)
        parsed = parser.parse_many(paths)
        logger.info("Parsed %d log entries", len(parsed.entries))
        if audit:
            for stats in parsed.files:
                audit.log_event("parse.file", details=stats.model_dump(), input_digest=stats.sha256)

        analyses = LogMonitor(monitor_config).process(parsed.entries)
        summary = summarize(analyses)
        if audit:
            audit.log_event(
                "monitor.process",
                details={
                    "entries": len(parsed.entries),
                    "skipped_lines": parsed.skipped_lines,
                    "completed": summary["completed"],
                    "dangling": summary["dangling"],
                    "counts": summary["counts"],
                },
            )

        report = render_json(analyses) if args.format == "json" else ReportFormatter().format(analyses)
        if audit:
            audit.log_event("report.rendered", details={"format": args.format}, output_digest=sha256_text(report))

        sys.stdout.write(report)
        if not report.endswith("\n"):
            sys.stdout.write("\n")

        if audit:
            duration_ms = (time.perf_counter_ns() - start_perf_ns) // 1_000_000
            audit.log_event("run_finished", details={"duration_ms": int(duration_ms)})
        return EXIT_OK

    except Exception as exc:
        logger.exception("Unexpected error occurred")
        if audit:
            tb_digest = sha256_text(traceback.format_exc())
            audit.log_event(
                "run_failed",
                status="error",
                details={
                    "error_type": type(exc).__name__,
                    "error_message": str(exc),
                    "traceback_digest": tb_digest,
                },
            )
        return EXIT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
