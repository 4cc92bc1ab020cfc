"""Command safety gating and secret redaction."""

from __future__ import annotations

from dexter.security.redaction import (
    REDACTED_MARKER,
    is_sensitive_key,
    redact_sensitive_text,
    redact_structure,
)
from dexter.security.safety_gate import SafetyGate, SafetyRejection

__all__ = [
    "REDACTED_MARKER",
    "SafetyGate",
    "SafetyRejection",
    "is_sensitive_key",
    "redact_sensitive_text",
    "redact_structure",
]
