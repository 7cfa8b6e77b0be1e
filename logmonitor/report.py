"""Human-readable and JSON renderings of monitor results. No business logic here."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

import orjson

from .schemas import CompletedJob, DanglingEntry, JobAnalysis, JobAnalysisState


_WIDTH = 128


def _group(analyses: Sequence[JobAnalysis]) -> Dict[JobAnalysisState, List[CompletedJob]]:
    by_state: Dict[JobAnalysisState, List[CompletedJob]] = {state: [] for state in JobAnalysisState}
    for analysis in analyses:
        if analysis.has_job_execution:
            by_state[analysis.state].append(analysis)
    return by_state


def _dangling(analyses: Sequence[JobAnalysis]) -> List[DanglingEntry]:
    return [a for a in analyses if a.has_dangling_entry]


class ReportFormatter:
    def format(self, analyses: Sequence[JobAnalysis]) -> str:
        by_state = _group(analyses)
        dangling = _dangling(analyses)
        completed = len(analyses) - len(dangling)

        lines: List[str] = ["", "=" * _WIDTH, "LOG MONITORING REPORT", "=" * _WIDTH, ""]

        lines.append("Jobs summary")
        for state, jobs in by_state.items():
            lines.append(f"   + {len(jobs)} {state.value}")
        lines.append(f"A total of {completed} jobs completed")
        lines.append("")

        if dangling:
            lines.append("Dangling entries:")
            lines.extend(f" - {a.reason}" for a in dangling)
            lines.append("")

        for state, jobs in by_state.items():
            if not jobs:
                continue
            lines.extend(["-" * _WIDTH, f"{state.value} jobs:", "-" * _WIDTH])
            for job in jobs:
                suffix = f" - {job.reason}" if job.has_reason else ""
                lines.append(f"{job.execution}{suffix}")
            lines.append("")

        lines.append("=" * _WIDTH)
        return "\n".join(lines) + "\n"


def summarize(analyses: Sequence[JobAnalysis]) -> Dict[str, Any]:
    by_state = _group(analyses)
    dangling = _dangling(analyses)
    return {
        "counts": {state.value: len(jobs) for state, jobs in by_state.items()},
        "completed": len(analyses) - len(dangling),
        "dangling": len(dangling),
        "dangling_entries": [
            {"entry": str(a.entry), "reason": a.reason} for a in dangling
        ],
        "jobs": [
            {
                "pid": job.execution.pid,
                "description": job.execution.description,
                "start": job.execution.start.timestamp.isoformat(),
                "end": job.execution.end.timestamp.isoformat(),
                "duration_s": int(job.execution.duration.total_seconds()),
                "state": job.state.value,
                "reason": job.reason,
            }
            for jobs in by_state.values()
            for job in jobs
        ],
    }


def render_json(analyses: Sequence[JobAnalysis]) -> str:
    return orjson.dumps(summarize(analyses), option=orjson.OPT_SORT_KEYS | orjson.OPT_INDENT_2).decode()
