"""Provider-fallback completion engine."""

from __future__ import annotations

from dexter.llm.cache import CachePolicy, ResponseCache
from dexter.llm.client import CompletionClient
from dexter.llm.errors import (
    AllTargetsExhaustedError,
    CompletionError,
    EmptyCandidateError,
    FailureKind,
    ParseError,
    ProviderError,
    TargetConfigError,
    TransportError,
)
from dexter.llm.targets import Target, WireFamily, fallback_target, resolve_targets
from dexter.llm.wire import CompletionParams, CompletionRequest

__all__ = [
    "AllTargetsExhaustedError",
    "CachePolicy",
    "CompletionClient",
    "CompletionError",
    "CompletionParams",
    "CompletionRequest",
    "EmptyCandidateError",
    "FailureKind",
    "ParseError",
    "ProviderError",
    "ResponseCache",
    "Target",
    "TargetConfigError",
    "TransportError",
    "WireFamily",
    "fallback_target",
    "resolve_targets",
]
