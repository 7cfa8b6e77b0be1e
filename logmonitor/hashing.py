from __future__ import annotations

from hashlib import sha256
from pathlib import Path
from typing import Any, Dict

import orjson


def canonical_json(payload: Dict[str, Any]) -> bytes:
    """Serialize with sorted keys so equal payloads hash equally."""
    return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS)


def sha256_text(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()


def sha256_file(path: Path) -> str:
    """Return hex sha256 of a log file, read in chunks."""
    h = sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            h.update(chunk)
    return h.hexdigest()


def chain_next(prev_hash: str, payload: Dict[str, Any]) -> str:
    """Hash of the next audit event: sha256(prev_hash + canonical payload)."""
    if not isinstance(prev_hash, str):
        raise TypeError("prev_hash must be a string")
    h = sha256()
    h.update(prev_hash.encode("utf-8"))
    h.update(canonical_json(payload))
    return h.hexdigest()
