"""
dexter — unit tests for completion target resolution

File: tests/unit/llm/test_targets.py
Last updated: 2026-10-19

Purpose
- Validate the ordered fallback list built from providers and model preferences.

What this test file should cover
- Explicit routes, global model expansion and provider-local models.
- Identity de-duplication and deterministic order.
- The local Ollama last resort.
- Wire family selection by kind and base URL.
"""

from __future__ import annotations

import pytest

from dexter.config.providers import (
    AuthScheme,
    ModelPreferences,
    ModelRoute,
    PipelineRole,
    ProviderConfig,
    ProviderKind,
)
from dexter.llm.targets import Target, WireFamily, fallback_target, resolve_targets


def _provider(kind: ProviderKind, *, key: str | None = "k", models: tuple[str, ...] = ()) -> ProviderConfig:
    return ProviderConfig(kind=kind, api_key=key, models=models).normalized()


@pytest.mark.unit
class TestResolveTargets:
    def test_empty_provider_set_falls_back_to_local_ollama(self) -> None:
        targets = resolve_targets((), ModelPreferences(), PipelineRole.ROUTER)
        assert targets == (fallback_target(),)
        assert targets[0].base_url == "http://localhost:11434/v1"
        assert targets[0].model == "llama3.2"
        assert targets[0].auth_scheme is AuthScheme.NONE

    def test_unconfigured_providers_do_not_take_part(self) -> None:
        providers = (
            _provider(ProviderKind.GROQ, key=None),
            ProviderConfig(kind=ProviderKind.DEEPSEEK, api_key="k", enabled=False).normalized(),
        )
        targets = resolve_targets(providers, ModelPreferences(), PipelineRole.EXECUTOR)
        assert targets == (fallback_target(),)

    def test_global_models_expand_across_providers_before_local_models(self) -> None:
        providers = (
            _provider(ProviderKind.DEEPSEEK, models=("deepseek-chat", "local-a")),
            _provider(ProviderKind.GROQ, models=("local-b",)),
        )
        prefs = ModelPreferences(
            executor_model="deepseek-chat", executor_fallback_models=("shared",)
        )
        targets = resolve_targets(providers, prefs, PipelineRole.EXECUTOR)
        pairs = [(t.display_name, t.model) for t in targets]
        assert pairs == [
            ("DEEPSEEK", "deepseek-chat"),
            ("GROQ", "deepseek-chat"),
            ("DEEPSEEK", "shared"),
            ("GROQ", "shared"),
            ("DEEPSEEK", "local-a"),
            ("GROQ", "local-b"),
        ]

    def test_explicit_routes_suppress_global_expansion(self) -> None:
        providers = (
            _provider(ProviderKind.GEMINI, models=("gemini-2.5-flash",)),
            _provider(ProviderKind.GROQ, models=("llama3-8b-8192",)),
        )
        prefs = ModelPreferences(
            router_model="never-used",
            router_routes=(
                ModelRoute(ProviderKind.GROQ, "llama3-8b-8192"),
                ModelRoute(ProviderKind.ANTHROPIC, "claude-sonnet-4-0"),
            ),
        )
        targets = resolve_targets(providers, prefs, PipelineRole.ROUTER)
        pairs = [(t.display_name, t.model) for t in targets]
        assert pairs == [("GROQ", "llama3-8b-8192"), ("GEMINI", "gemini-2.5-flash")]
        assert all(t.model != "never-used" for t in targets)

    def test_identical_entries_collapse(self) -> None:
        provider = _provider(ProviderKind.GROQ, models=("m1", "m1"))
        prefs = ModelPreferences(executor_model="m1")
        targets = resolve_targets((provider, provider), prefs, PipelineRole.EXECUTOR)
        assert [t.model for t in targets] == ["m1"]
        assert len({t.identity for t in targets}) == len(targets)

    def test_resolution_is_deterministic(self) -> None:
        providers = (
            _provider(ProviderKind.GEMINI),
            _provider(ProviderKind.DEEPSEEK),
            _provider(ProviderKind.OLLAMA, key=None),
        )
        prefs = ModelPreferences()
        first = resolve_targets(providers, prefs, PipelineRole.ROUTER)
        second = resolve_targets(providers, prefs, PipelineRole.ROUTER)
        assert first == second
        assert first


@pytest.mark.unit
class TestTarget:
    @pytest.mark.parametrize(
        ("kind", "base_url", "family"),
        [
            (ProviderKind.ANTHROPIC, "https://proxy.example/v1", WireFamily.ANTHROPIC),
            (ProviderKind.CUSTOM, "https://api.anthropic.com/v1", WireFamily.ANTHROPIC),
            (ProviderKind.GEMINI, "https://proxy.example/v1", WireFamily.GEMINI),
            (
                ProviderKind.CUSTOM,
                "https://generativelanguage.googleapis.com/v1beta/openai",
                WireFamily.GEMINI,
            ),
            (ProviderKind.DEEPSEEK, "https://api.deepseek.com/v1", WireFamily.OPENAI),
        ],
    )
    def test_wire_family_uses_kind_then_base_url(
        self, kind: ProviderKind, base_url: str, family: WireFamily
    ) -> None:
        target = Target("x", kind, "k", base_url, AuthScheme.BEARER, "m")
        assert target.wire_family is family

    def test_label_joins_name_and_model(self) -> None:
        provider = _provider(ProviderKind.GROQ)
        target = Target.from_provider(provider, "llama3-8b-8192")
        assert target.label == "GROQ | llama3-8b-8192"
        assert target.base_url == "https://api.groq.com/openai/v1"
