"""
dexter — typed provider and model-preference settings.

File: src/dexter/config/providers.py
Last updated: 2026-10-19

Purpose
- Convert a validated config mapping into immutable runtime settings.
- Own the built-in provider table (display name, endpoint, auth, models).

Functional requirements
- ``ProviderConfig.normalized`` fills defaults and trims user input.
- ``ProviderConfig.is_configured`` decides whether a provider may be used.
- Legacy ``[api_keys]`` entries synthesize providers when no explicit
  ``[[providers]]`` list exists.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Final

from dexter.constants import DEFAULT_CACHE_CAPACITY, DEFAULT_HTTP_TIMEOUT_SECONDS

DEFAULT_ROUTER_MODEL: Final[str] = "gemini-2.5-flash-lite"
DEFAULT_EXECUTOR_MODEL: Final[str] = "gemini-2.5-flash-lite"
LEGACY_CUSTOM_NAME: Final[str] = "Legacy Custom Endpoint"


class ProviderKind(enum.StrEnum):
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"
    GROQ = "groq"
    BASETEN = "baseten"
    OLLAMA = "ollama"
    ANTHROPIC = "anthropic"
    CUSTOM = "custom"

    @property
    def display_name(self) -> str:
        return _PROVIDER_TABLE[self].display_name

    @property
    def default_base_url(self) -> str:
        return _PROVIDER_TABLE[self].base_url

    @property
    def default_auth(self) -> AuthScheme:
        return _PROVIDER_TABLE[self].auth

    @property
    def default_models(self) -> tuple[str, ...]:
        return _PROVIDER_TABLE[self].models


class AuthScheme(enum.StrEnum):
    """How credentials are presented to a provider endpoint."""

    BEARER = "bearer"
    API_KEY = "api_key"
    X_API_KEY = "x_api_key"
    NONE = "none"

    @property
    def requires_key(self) -> bool:
        return self is not AuthScheme.NONE


class PipelineRole(enum.StrEnum):
    ROUTER = "router"
    EXECUTOR = "executor"


@dataclass(frozen=True, slots=True)
class _ProviderDefaults:
    display_name: str
    base_url: str
    auth: AuthScheme
    models: tuple[str, ...]


_PROVIDER_TABLE: Final[dict[ProviderKind, _ProviderDefaults]] = {
    ProviderKind.GEMINI: _ProviderDefaults(
        "GEMINI",
        "https://generativelanguage.googleapis.com/v1beta/openai",
        AuthScheme.BEARER,
        ("gemini-2.5-flash-lite", "gemini-2.5-flash", "gemini-2.5-pro"),
    ),
    ProviderKind.DEEPSEEK: _ProviderDefaults(
        "DEEPSEEK",
        "https://api.deepseek.com/v1",
        AuthScheme.BEARER,
        ("deepseek-chat", "deepseek-reasoner"),
    ),
    ProviderKind.GROQ: _ProviderDefaults(
        "GROQ",
        "https://api.groq.com/openai/v1",
        AuthScheme.BEARER,
        ("llama-3.3-70b-versatile", "llama3-8b-8192", "mixtral-8x7b-32768"),
    ),
    ProviderKind.BASETEN: _ProviderDefaults(
        "BASETEN",
        "https://inference.baseten.co/v1",
        AuthScheme.API_KEY,
        ("deepseek-ai/DeepSeek-V3-0324", "meta-llama/Llama-3.3-70B-Instruct"),
    ),
    ProviderKind.OLLAMA: _ProviderDefaults(
        "OLLAMA",
        "http://localhost:11434/v1",
        AuthScheme.NONE,
        ("llama3.2", "qwen2.5", "gemma3"),
    ),
    ProviderKind.ANTHROPIC: _ProviderDefaults(
        "ANTHROPIC",
        "https://api.anthropic.com/v1",
        AuthScheme.X_API_KEY,
        ("claude-3-5-haiku-latest", "claude-sonnet-4-0"),
    ),
    ProviderKind.CUSTOM: _ProviderDefaults(
        "CUSTOM",
        "https://api.openai.com/v1",
        AuthScheme.BEARER,
        (),
    ),
}


@dataclass(frozen=True, slots=True)
class ProviderConfig:
    """One configured LLM provider endpoint."""

    kind: ProviderKind
    name: str | None = None
    api_key: str | None = None
    base_url: str = ""
    auth: AuthScheme = AuthScheme.BEARER
    enabled: bool = True
    models: tuple[str, ...] = ()

    @classmethod
    def builtin(cls, kind: ProviderKind, api_key: str | None = None) -> ProviderConfig:
        return cls(
            kind=kind,
            name=kind.display_name,
            api_key=api_key,
            base_url=kind.default_base_url,
            auth=kind.default_auth,
            enabled=True,
            models=kind.default_models,
        )

    @property
    def display_name(self) -> str:
        if self.name is not None and self.name.strip():
            return self.name
        return self.kind.display_name

    def normalized(self) -> ProviderConfig:
        base_url = self.base_url.strip() or self.kind.default_base_url
        base_url = base_url.rstrip("/")

        if self.models:
            models = tuple(model.strip() for model in self.models if model.strip())
        else:
            models = self.kind.default_models

        auth = self.auth
        if auth is AuthScheme.BEARER:
            auth = self.kind.default_auth

        return replace(
            self,
            name=_clean_optional(self.name),
            api_key=_clean_optional(self.api_key),
            base_url=base_url,
            auth=auth,
            models=models,
        )

    def is_configured(self) -> bool:
        if not self.enabled:
            return False
        if not self.auth.requires_key:
            return True
        return self.api_key is not None and bool(self.api_key.strip())


@dataclass(frozen=True, slots=True)
class ModelRoute:
    """Explicit (provider, model) pair for one pipeline role."""

    provider: ProviderKind
    model: str


@dataclass(frozen=True, slots=True)
class ModelPreferences:
    router_model: str = DEFAULT_ROUTER_MODEL
    executor_model: str = DEFAULT_EXECUTOR_MODEL
    router_fallback_models: tuple[str, ...] = ()
    executor_fallback_models: tuple[str, ...] = ()
    router_routes: tuple[ModelRoute, ...] = ()
    executor_routes: tuple[ModelRoute, ...] = ()

    def primary_model(self, role: PipelineRole) -> str:
        return self.router_model if role is PipelineRole.ROUTER else self.executor_model

    def fallback_models(self, role: PipelineRole) -> tuple[str, ...]:
        if role is PipelineRole.ROUTER:
            return self.router_fallback_models
        return self.executor_fallback_models

    def routes(self, role: PipelineRole) -> tuple[ModelRoute, ...]:
        return self.router_routes if role is PipelineRole.ROUTER else self.executor_routes


@dataclass(frozen=True, slots=True)
class LegacyApiKeys:
    gemini: str | None = None
    deepseek: str | None = None
    base_url: str | None = None


@dataclass(frozen=True, slots=True)
class DexterSettings:
    """Immutable runtime settings derived from the effective config mapping."""

    providers: tuple[ProviderConfig, ...] = ()
    api_keys: LegacyApiKeys = field(default_factory=LegacyApiKeys)
    models: ModelPreferences = field(default_factory=ModelPreferences)
    theme: str = "auto"
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    cache_capacity: int = DEFAULT_CACHE_CAPACITY

    def effective_providers(self) -> tuple[ProviderConfig, ...]:
        providers = self.providers or self._legacy_providers()
        return tuple(provider.normalized() for provider in providers)

    def configured_providers(self) -> tuple[ProviderConfig, ...]:
        return tuple(p for p in self.effective_providers() if p.is_configured())

    def has_keys(self) -> bool:
        return bool(self.configured_providers())

    def _legacy_providers(self) -> tuple[ProviderConfig, ...]:
        providers: list[ProviderConfig] = []
        gemini = _clean_optional(self.api_keys.gemini)
        deepseek = _clean_optional(self.api_keys.deepseek)

        if gemini is not None:
            providers.append(ProviderConfig.builtin(ProviderKind.GEMINI, gemini))
        if deepseek is not None:
            providers.append(ProviderConfig.builtin(ProviderKind.DEEPSEEK, deepseek))

        base_url = _clean_optional(self.api_keys.base_url)
        if base_url is not None:
            api_key = deepseek or gemini
            providers.insert(
                0,
                ProviderConfig(
                    kind=ProviderKind.CUSTOM,
                    name=LEGACY_CUSTOM_NAME,
                    api_key=api_key,
                    base_url=base_url,
                    auth=AuthScheme.BEARER if api_key is not None else AuthScheme.NONE,
                    enabled=True,
                    models=(),
                ),
            )
        return tuple(providers)


def settings_from_config(config: Mapping[str, object]) -> DexterSettings:
    """Build ``DexterSettings`` from a validated config mapping."""

    providers_raw = config.get("providers")
    providers = tuple(
        _provider_from_mapping(item)
        for item in (providers_raw if isinstance(providers_raw, Sequence) else ())
        if isinstance(item, Mapping)
    )

    api_keys_raw = _mapping(config.get("api_keys"))
    api_keys = LegacyApiKeys(
        gemini=_clean_optional(_str_or_none(api_keys_raw.get("gemini"))),
        deepseek=_clean_optional(_str_or_none(api_keys_raw.get("deepseek"))),
        base_url=_clean_optional(_str_or_none(api_keys_raw.get("base_url"))),
    )

    models_raw = _mapping(config.get("models"))
    models = ModelPreferences(
        router_model=str(models_raw.get("router_model", DEFAULT_ROUTER_MODEL)),
        executor_model=str(models_raw.get("executor_model", DEFAULT_EXECUTOR_MODEL)),
        router_fallback_models=_str_tuple(models_raw.get("router_fallback_models")),
        executor_fallback_models=_str_tuple(models_raw.get("executor_fallback_models")),
        router_routes=_routes(models_raw.get("router_routes")),
        executor_routes=_routes(models_raw.get("executor_routes")),
    )

    timeout = config.get("http_timeout_seconds", DEFAULT_HTTP_TIMEOUT_SECONDS)
    capacity = config.get("cache_capacity", DEFAULT_CACHE_CAPACITY)
    return DexterSettings(
        providers=providers,
        api_keys=api_keys,
        models=models,
        theme=str(config.get("theme", "auto")),
        http_timeout_seconds=float(timeout) if isinstance(timeout, (int, float)) else 60.0,
        cache_capacity=int(capacity) if isinstance(capacity, int) else DEFAULT_CACHE_CAPACITY,
    )


def _provider_from_mapping(payload: Mapping[str, object]) -> ProviderConfig:
    kind = ProviderKind(str(payload["kind"]))
    auth_raw = payload.get("auth")
    enabled = payload.get("enabled", True)
    return ProviderConfig(
        kind=kind,
        name=_str_or_none(payload.get("name")),
        api_key=_str_or_none(payload.get("api_key")),
        base_url=_str_or_none(payload.get("base_url")) or "",
        auth=AuthScheme(str(auth_raw)) if auth_raw is not None else AuthScheme.BEARER,
        enabled=bool(enabled),
        models=_str_tuple(payload.get("models")),
    )


def _routes(value: object) -> tuple[ModelRoute, ...]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return ()
    routes: list[ModelRoute] = []
    for item in value:
        if not isinstance(item, Mapping):
            continue
        routes.append(
            ModelRoute(provider=ProviderKind(str(item["provider"])), model=str(item["model"]))
        )
    return tuple(routes)


def _mapping(value: object) -> Mapping[str, object]:
    return value if isinstance(value, Mapping) else {}


def _str_or_none(value: object) -> str | None:
    return value if isinstance(value, str) else None


def _str_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        return ()
    return tuple(item for item in value if isinstance(item, str))


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


__all__ = [
    "AuthScheme",
    "DEFAULT_EXECUTOR_MODEL",
    "DEFAULT_ROUTER_MODEL",
    "DexterSettings",
    "LEGACY_CUSTOM_NAME",
    "LegacyApiKeys",
    "ModelPreferences",
    "ModelRoute",
    "PipelineRole",
    "ProviderConfig",
    "ProviderKind",
    "settings_from_config",
]
