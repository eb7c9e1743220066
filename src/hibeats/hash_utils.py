#!/usr/bin/env python3
"""
src/hibeats/hash_utils.py

Deterministic hashing helpers behind the local content-addressed store.

Contract:
- sha256_bytes(data): hex sha256 of raw bytes
- canonical_json(obj): sorted keys, compact separators, UTF-8 preserved
- sha256_json(obj): sha256 of canonical_json(obj), so two dicts with the same
  content always get the same address regardless of key order
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any


def _json_default(o: Any) -> Any:
    if isinstance(o, Path):
        return str(o)
    if isinstance(o, (set, frozenset)):
        return sorted(list(o))
    return str(o)


def canonical_json(obj: Any) -> str:
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )


def sha256_bytes(data: bytes) -> str:
    h = hashlib.sha256()
    h.update(data)
    return h.hexdigest()


def sha256_text(s: str, *, encoding: str = "utf-8") -> str:
    return sha256_bytes(s.encode(encoding))


def sha256_json(obj: Any) -> str:
    return sha256_text(canonical_json(obj))


__all__ = [
    "canonical_json",
    "sha256_bytes",
    "sha256_text",
    "sha256_json",
]
