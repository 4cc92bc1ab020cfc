"""
dexter — hashing utilities

File: src/dexter/utils/hashing.py
Last updated: 2026-10-19

Purpose
- Deterministic SHA-256 digests and canonical JSON for cache keys.

Non-functional requirements
- Standard library only; identical inputs hash identically across runs.
"""

from __future__ import annotations

import hashlib
import json

__all__ = ["canonical_json", "sha256_bytes", "sha256_text"]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def canonical_json(value: object) -> str:
    """Serialize ``value`` with sorted keys and no insignificant whitespace."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
