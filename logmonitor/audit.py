from __future__ import annotations

import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import orjson

from .hashing import chain_next
from .schemas import AuditEvent


AUDIT_FILENAME = "audit.jsonl"


def new_run_id() -> str:
    return str(uuid.uuid4())


def _read_last_hash(audit_path: Path) -> str:
    if not audit_path.exists():
        return ""
    last = ""
    for line in audit_path.read_text(encoding="utf-8").splitlines():
        if line.strip():
            last = orjson.loads(line).get("event_hash", "")
    return last


class AuditTrail:
    """Append-only, hash-chained record of what one monitoring run did.

    Each run writes ``<run_dir>/audit.jsonl``; every line carries the hash of
    the previous one, so ``cli_verify_audit`` can detect edits or truncation.
    """

    def __init__(self, run_id: str, run_dir: Path) -> None:
        self.run_id = run_id
        self.path = Path(run_dir) / AUDIT_FILENAME
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Resume the chain if the run directory already has events
        self._last_hash = _read_last_hash(self.path)

    def log_event(
        self,
        step: str,
        status: str = "ok",
        details: Optional[Dict[str, Any]] = None,
        input_digest: Optional[str] = None,
        output_digest: Optional[str] = None,
    ) -> AuditEvent:
        event_dict = {
            "run_id": self.run_id,
            "step": step,
            "status": status,
            "ts_iso": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "ts_ns": time.perf_counter_ns(),
            "input_digest": input_digest,
            "output_digest": output_digest,
            "details": details or {},
            "prev_event_hash": self._last_hash,
        }
        event_hash = chain_next(self._last_hash, event_dict)
        event = AuditEvent(**{**event_dict, "event_hash": event_hash})

        line = orjson.dumps(event.model_dump(), option=orjson.OPT_SORT_KEYS)
        with open(self.path, "ab") as f:
            f.write(line + b"\n")

        self._last_hash = event_hash
        return event
