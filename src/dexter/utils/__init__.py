"""Shared utilities."""

from __future__ import annotations

from dexter.utils.concurrency import ReadWriteLock
from dexter.utils.hashing import canonical_json, sha256_text

__all__ = ["ReadWriteLock", "canonical_json", "sha256_text"]
