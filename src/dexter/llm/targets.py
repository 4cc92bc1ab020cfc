"""
dexter — completion target resolution

File: src/dexter/llm/targets.py
Last updated: 2026-10-19

Purpose
- Turn provider configuration plus per-role model preferences into the
  ordered, de-duplicated list of (provider, model) targets that the
  completion client walks when falling back.

Functional requirements
- Explicit routes first; legacy primary/fallback expansion only when no
  explicit route matched; provider-local models always appended behind.
- The first occurrence of an identity wins; order is the fallback contract.
- The result is never empty: a local Ollama target is the last resort.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from dexter.config.providers import (
    AuthScheme,
    ModelPreferences,
    PipelineRole,
    ProviderConfig,
    ProviderKind,
)
from dexter.constants import FALLBACK_OLLAMA_BASE_URL, FALLBACK_OLLAMA_MODEL

TargetIdentity = tuple[str, str, AuthScheme, str | None, str]


class WireFamily(enum.StrEnum):
    """Request/response dialect spoken by a target endpoint."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GEMINI = "gemini"


@dataclass(frozen=True, slots=True)
class Target:
    """One (provider endpoint, model) pair the client may call."""

    display_name: str
    provider_kind: ProviderKind
    api_key: str | None
    base_url: str
    auth_scheme: AuthScheme
    model: str

    @property
    def identity(self) -> TargetIdentity:
        return (self.display_name, self.base_url, self.auth_scheme, self.api_key, self.model)

    @property
    def wire_family(self) -> WireFamily:
        base = self.base_url.lower()
        if self.provider_kind is ProviderKind.ANTHROPIC or "anthropic.com" in base:
            return WireFamily.ANTHROPIC
        if (
            self.provider_kind is ProviderKind.GEMINI
            or "generativelanguage.googleapis.com" in base
        ):
            return WireFamily.GEMINI
        return WireFamily.OPENAI

    @property
    def label(self) -> str:
        return f"{self.display_name} | {self.model}"

    @classmethod
    def from_provider(cls, provider: ProviderConfig, model: str) -> Target:
        return cls(
            display_name=provider.display_name,
            provider_kind=provider.kind,
            api_key=provider.api_key,
            base_url=provider.base_url,
            auth_scheme=provider.auth,
            model=model,
        )


def fallback_target() -> Target:
    """Local Ollama target used when configuration yields nothing."""

    return Target(
        display_name=ProviderKind.OLLAMA.display_name,
        provider_kind=ProviderKind.OLLAMA,
        api_key=None,
        base_url=FALLBACK_OLLAMA_BASE_URL,
        auth_scheme=AuthScheme.NONE,
        model=FALLBACK_OLLAMA_MODEL,
    )


class _TargetList:
    __slots__ = ("_items", "_seen")

    def __init__(self) -> None:
        self._items: list[Target] = []
        self._seen: set[TargetIdentity] = set()

    def add(self, target: Target) -> None:
        identity = target.identity
        if identity in self._seen:
            return
        self._seen.add(identity)
        self._items.append(target)

    def __bool__(self) -> bool:
        return bool(self._items)

    def freeze(self) -> tuple[Target, ...]:
        return tuple(self._items)


def resolve_targets(
    providers: Sequence[ProviderConfig],
    preferences: ModelPreferences,
    role: PipelineRole,
) -> tuple[Target, ...]:
    """Resolve the ordered fallback targets for one pipeline role.

    ``providers`` should already be normalized; only entries for which
    ``is_configured()`` holds take part.
    """

    enabled = [provider for provider in providers if provider.is_configured()]
    targets = _TargetList()

    for route in preferences.routes(role):
        model = route.model.strip()
        if not model:
            continue
        provider = next((p for p in enabled if p.kind is route.provider), None)
        if provider is None:
            continue
        targets.add(Target.from_provider(provider, model))

    global_models = _dedupe_models(
        (preferences.primary_model(role), *preferences.fallback_models(role))
    )
    covered: set[str] = set()
    if not targets:
        for model in global_models:
            for provider in enabled:
                targets.add(Target.from_provider(provider, model))
        covered.update(global_models)

    for provider in enabled:
        for model in provider.models:
            if model in covered:
                continue
            targets.add(Target.from_provider(provider, model))

    if not targets:
        targets.add(fallback_target())
    return targets.freeze()


def _dedupe_models(models: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    ordered: list[str] = []
    for raw in models:
        model = raw.strip()
        if not model or model in seen:
            continue
        seen.add(model)
        ordered.append(model)
    return tuple(ordered)


__all__ = [
    "Target",
    "TargetIdentity",
    "WireFamily",
    "fallback_target",
    "resolve_targets",
]
