from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Dict, List

import orjson

from .audit import AUDIT_FILENAME
from .hashing import chain_next


def verify_chain(audit_path: Path) -> Dict[str, Any]:
    events: List[Dict[str, Any]] = []
    prev = ""
    break_index = -1
    for idx, line in enumerate(audit_path.read_text(encoding="utf-8").splitlines()):
        if not line.strip():
            continue
        try:
            ev = orjson.loads(line)
        except orjson.JSONDecodeError:
            break_index = idx
            break
        if ev.get("prev_event_hash", "") != prev:
            break_index = idx
            break
        payload = {k: v for k, v in ev.items() if k != "event_hash"}
        if chain_next(prev, payload) != ev.get("event_hash"):
            break_index = idx
            break
        prev = ev["event_hash"]
        events.append(ev)
    return {
        "run_id": events[0]["run_id"] if events else None,
        "events": len(events),
        "valid": break_index == -1,
        "break_index": None if break_index == -1 else break_index,
    }


def _resolve_audit_path(run: str) -> Path:
    target = Path(run)
    if target.is_dir():
        return target / AUDIT_FILENAME
    if target.suffix == ".jsonl":
        return target
    from .settings import Settings

    run_dir = Settings.load().audit_dir_for(run)
    return (run_dir or target) / AUDIT_FILENAME


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Verify a log monitor run audit trail")
    parser.add_argument("--run", required=True, help="Run directory, audit.jsonl path, or run id")
    args = parser.parse_args(argv)

    audit = _resolve_audit_path(args.run)
    if not audit.exists():
        print(orjson.dumps({"valid": False, "error": "audit.jsonl not found", "path": str(audit)}).decode())
        return 2
    result = verify_chain(audit)
    print(orjson.dumps(result, option=orjson.OPT_SORT_KEYS).decode())
    return 0 if result.get("valid") else 1


if __name__ == "__main__":
    raise SystemExit(main())
