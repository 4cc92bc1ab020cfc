"""
dexter — secret redaction for history, session logs and log records

File: src/dexter/security/redaction.py
Last updated: 2026-10-19

Purpose
- Mask credentials in command lines and log payloads while keeping the
  surrounding command structure readable for debugging.

Functional requirements
- Cookie files, bearer tokens, ``x-api-key`` headers, token-like query
  parameters and ``sk-``/``rk-`` style keys are replaced by ``[REDACTED]``.
- Nested structures are redacted by key name as well as by text pattern.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final

REDACTED_MARKER: Final[str] = "[REDACTED]"

_SENSITIVE_KEY_TERMS: Final[tuple[str, ...]] = (
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "password",
    "secret",
    "token",
)

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class _TextRule:
    name: str
    pattern: re.Pattern[str]
    keep_prefix: bool = True


_TEXT_RULES: Final[tuple[_TextRule, ...]] = (
    _TextRule(
        name="cookies_argument",
        pattern=re.compile(r"""(?i)(--cookies(?:=|\s+))("[^"]*"|'[^']*'|\S+)"""),
    ),
    _TextRule(
        name="authorization_bearer",
        pattern=re.compile(r"(?i)(authorization\s*:\s*bearer\s+)([A-Za-z0-9._~+/=-]+)"),
    ),
    _TextRule(
        name="x_api_key_header",
        pattern=re.compile(r"(?i)(x-api-key\s*:\s*)([A-Za-z0-9._~+/=-]+)"),
    ),
    _TextRule(
        name="query_token",
        pattern=re.compile(r"""(?i)([?&](?:token|access_token|api_key|apikey|key)=)([^&\s"']+)"""),
    ),
    _TextRule(
        name="key_like",
        pattern=re.compile(r"(?i)\b(?:sk|rk)-[A-Za-z0-9_-]{12,}\b"),
        keep_prefix=False,
    ),
)


def redact_sensitive_text(text: str) -> str:
    """Return ``text`` with every known secret pattern masked."""

    redacted = text
    for rule in _TEXT_RULES:
        if rule.keep_prefix:
            redacted = rule.pattern.sub(lambda m: f"{m.group(1)}{REDACTED_MARKER}", redacted)
        else:
            redacted = rule.pattern.sub(REDACTED_MARKER, redacted)
    return redacted


def is_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    return any(term in normalized for term in _SENSITIVE_KEY_TERMS)


def redact_structure(value: object) -> object:
    """Deep-redact mappings and sequences by key name and by text pattern."""

    return _redact(value, key=None)


def _redact(value: object, *, key: str | None) -> object:
    if key is not None and is_sensitive_key(key) and isinstance(value, str) and value:
        return REDACTED_MARKER
    if isinstance(value, str):
        return redact_sensitive_text(value)
    if isinstance(value, Mapping):
        return {str(k): _redact(item, key=str(k)) for k, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_redact(item, key=None) for item in value]
    return value


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


__all__ = [
    "REDACTED_MARKER",
    "is_sensitive_key",
    "redact_sensitive_text",
    "redact_structure",
]
