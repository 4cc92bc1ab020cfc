"""
dexter — completion engine error taxonomy

File: src/dexter/llm/errors.py
Last updated: 2026-10-19

Purpose
- Normalized errors raised by a single completion attempt and the aggregate
  raised when every target has failed.

Functional requirements
- Every per-target error carries machine-readable ``provider``, ``model``,
  ``code`` and ``detail`` fields.
- ``ProviderError`` carries a ``FailureKind`` and a ``try_fallback`` hint.
- Per-target errors never escape the fallback loop; only
  ``AllTargetsExhaustedError`` does.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence


class FailureKind(enum.StrEnum):
    RATE_LIMIT = "rate_limit"
    CONTENT_POLICY = "content_policy"
    GENERIC = "generic"


def _normalize_detail(value: object) -> str:
    text = str(value).strip()
    if not text:
        return "unknown error"
    return " ".join(text.split())


class CompletionError(RuntimeError):
    """Base error for one attempt against one (provider, model) target."""

    def __init__(
        self,
        *,
        code: str,
        detail: str,
        provider: str = "provider",
        model: str | None = None,
    ) -> None:
        self.provider = provider
        self.model = model
        self.code = code
        self.detail = _normalize_detail(detail)

        parts = [f"provider={self.provider}", f"code={self.code}"]
        if self.model is not None:
            parts.append(f"model={self.model}")
        parts.append(f"detail={self.detail}")
        super().__init__(" ".join(parts))


class TargetConfigError(CompletionError):
    """Target is misconfigured (for example: a required API key is missing)."""

    def __init__(
        self, detail: str, *, provider: str = "provider", model: str | None = None
    ) -> None:
        super().__init__(code="target_config", detail=detail, provider=provider, model=model)


class TransportError(CompletionError):
    """Network failure before any HTTP status was received."""

    def __init__(
        self, detail: str, *, provider: str = "provider", model: str | None = None
    ) -> None:
        super().__init__(code="transport", detail=detail, provider=provider, model=model)


class ProviderError(CompletionError):
    """Non-2xx response classified into a ``FailureKind``."""

    def __init__(
        self,
        detail: str,
        *,
        kind: FailureKind = FailureKind.GENERIC,
        provider: str = "provider",
        model: str | None = None,
        http_status: int | None = None,
    ) -> None:
        self.kind = kind
        self.http_status = http_status
        super().__init__(code="provider", detail=detail, provider=provider, model=model)

    @property
    def try_fallback(self) -> bool:
        return self.kind is not FailureKind.GENERIC


class ParseError(CompletionError):
    """Success status but the body did not match the expected schema."""

    def __init__(
        self, detail: str, *, provider: str = "provider", model: str | None = None
    ) -> None:
        super().__init__(code="parse", detail=detail, provider=provider, model=model)


class EmptyCandidateError(CompletionError):
    """Parsed body held no usable completion text."""

    def __init__(
        self, detail: str, *, provider: str = "provider", model: str | None = None
    ) -> None:
        super().__init__(code="empty_candidate", detail=detail, provider=provider, model=model)


class AllTargetsExhaustedError(RuntimeError):
    """Raised after every target failed; the message lists one line per target."""

    header = "All LLM targets failed:"

    def __init__(self, failures: Sequence[str], *, header: str | None = None) -> None:
        self.failures = tuple(failures)
        if header is not None:
            self.header = header
        super().__init__("\n".join((self.header, *self.failures)))


__all__ = [
    "AllTargetsExhaustedError",
    "CompletionError",
    "EmptyCandidateError",
    "FailureKind",
    "ParseError",
    "ProviderError",
    "TargetConfigError",
    "TransportError",
]
