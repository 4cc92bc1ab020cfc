"""
dexter — configuration schema and validation.

File: src/dexter/config/schema.py
Last updated: 2026-10-19

Purpose
- Define authoritative configuration defaults and strict validation rules.

What should be included in this file
- Schema version check with migration guidance.
- Validation rules for required fields, types, enums, and numeric constraints.
- Deterministic deep-merge helpers.
- Redaction rules for API keys before the config is dumped or logged.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Unknown fields are rejected so typos surface instead of being ignored.
"""

from __future__ import annotations

import copy
import math
import re
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, TypedDict
from urllib.parse import urlsplit

from dexter.config.providers import (
    DEFAULT_EXECUTOR_MODEL,
    DEFAULT_ROUTER_MODEL,
    AuthScheme,
    ProviderKind,
)
from dexter.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_CACHE_CAPACITY,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
)

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION
REDACTED_CONFIG_VALUE: Final[str] = "***REDACTED***"
THEMES: Final[tuple[str, ...]] = ("auto", "dark", "light")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SECRET_KEYS: Final[frozenset[str]] = frozenset(
    {"api_key", "gemini", "deepseek", "token", "secret", "password"}
)

# Config paths that should be normalized (``~`` and env vars expanded).
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (("logging", "log_dir"),)


class MetaConfig(TypedDict):
    schema_version: int


class ModelRouteConfig(TypedDict):
    provider: str
    model: str


class ProviderEntry(TypedDict, total=False):
    kind: str
    name: str
    api_key: str
    base_url: str
    auth: str
    enabled: bool
    models: list[str]


class ModelsConfig(TypedDict):
    router_model: str
    executor_model: str
    router_fallback_models: list[str]
    executor_fallback_models: list[str]
    router_routes: list[ModelRouteConfig]
    executor_routes: list[ModelRouteConfig]


class ApiKeysConfig(TypedDict):
    gemini: str
    deepseek: str
    base_url: str


class LoggingSection(TypedDict):
    level: str
    log_dir: str
    log_to_stderr: bool


class DexterConfig(TypedDict):
    meta: MetaConfig
    theme: str
    http_timeout_seconds: float
    cache_capacity: int
    providers: list[ProviderEntry]
    models: ModelsConfig
    api_keys: ApiKeysConfig
    logging: LoggingSection


DEFAULT_CONFIG: Final[DexterConfig] = {
    "meta": {"schema_version": CONFIG_SCHEMA_VERSION},
    "theme": "auto",
    "http_timeout_seconds": DEFAULT_HTTP_TIMEOUT_SECONDS,
    "cache_capacity": DEFAULT_CACHE_CAPACITY,
    "providers": [],
    "models": {
        "router_model": DEFAULT_ROUTER_MODEL,
        "executor_model": DEFAULT_EXECUTOR_MODEL,
        "router_fallback_models": [],
        "executor_fallback_models": [],
        "router_routes": [],
        "executor_routes": [],
    },
    "api_keys": {"gemini": "", "deepseek": "", "base_url": ""},
    "logging": {
        "level": "INFO",
        "log_dir": "~/.local/state/dexter/logs",
        "log_to_stderr": False,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> DexterConfig:
    """Return a deep copy of deterministic built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade config.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade dexter"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``. Lists are replaced."""

    merged = _plain_copy(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Validate config and return structured issues with deterministic paths."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return ConfigValidationResult(config=None, issues=issues.items())

    normalized = _validate_root(root, issues)
    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted copy with every credential-bearing field masked."""

    redacted = _redact_value(config) if isinstance(config, Mapping) else {}
    return redacted if isinstance(redacted, dict) else {}


def _validate_root(payload: Mapping[str, object], issues: _IssueCollector) -> dict[str, Any]:
    allowed = {
        "meta",
        "theme",
        "http_timeout_seconds",
        "cache_capacity",
        "providers",
        "models",
        "api_keys",
        "logging",
    }
    _reject_unknown_keys(payload, allowed, "", issues)

    out: dict[str, Any] = {}
    _section(payload, key="meta", issues=issues, validator=_validate_meta, out=out)
    _section(payload, key="models", issues=issues, validator=_validate_models, out=out)
    _section(payload, key="api_keys", issues=issues, validator=_validate_api_keys, out=out)
    _section(payload, key="logging", issues=issues, validator=_validate_logging, out=out)

    if "theme" in payload:
        theme = _as_enum(payload["theme"], "theme", issues, allowed_values=THEMES)
        if theme is not None:
            out["theme"] = theme
    if "http_timeout_seconds" in payload:
        timeout = _as_float(
            payload["http_timeout_seconds"], "http_timeout_seconds", issues, minimum=0.1
        )
        if timeout is not None:
            out["http_timeout_seconds"] = timeout
    if "cache_capacity" in payload:
        capacity = _as_int(payload["cache_capacity"], "cache_capacity", issues, minimum=1)
        if capacity is not None:
            out["cache_capacity"] = capacity
    if "providers" in payload:
        out["providers"] = _validate_providers(payload["providers"], "providers", issues)
    return out


def _section(
    payload: Mapping[str, object],
    *,
    key: str,
    issues: _IssueCollector,
    validator: Callable[[dict[str, object], str, _IssueCollector], dict[str, Any]],
    out: dict[str, Any],
) -> None:
    raw = payload.get(key)
    if raw is None:
        return
    section_obj = _as_object(raw, key, issues)
    if section_obj is None:
        return
    out[key] = validator(section_obj, key, issues)


def _validate_meta(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"schema_version"}, path, issues)
    out: dict[str, Any] = {}
    if "schema_version" in payload:
        parsed = _as_int(
            payload["schema_version"], _join(path, "schema_version"), issues, minimum=1
        )
        if parsed is not None:
            out["schema_version"] = parsed
            if parsed != ConfigSchemaVersion:
                issues.add(_join(path, "schema_version"), migration_guidance(parsed))
    return out


def _validate_providers(value: object, path: str, issues: _IssueCollector) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return []

    kinds = tuple(item.value for item in ProviderKind)
    auths = tuple(item.value for item in AuthScheme)
    out: list[dict[str, Any]] = []
    for index, raw in enumerate(value):
        item_path = f"{path}[{index}]"
        entry = _as_object(raw, item_path, issues)
        if entry is None:
            continue
        _reject_unknown_keys(
            entry,
            {"kind", "name", "api_key", "base_url", "auth", "enabled", "models"},
            item_path,
            issues,
        )
        if "kind" not in entry:
            issues.add(_join(item_path, "kind"), "missing required field")
            continue

        normalized: dict[str, Any] = {}
        kind = _as_enum(entry["kind"], _join(item_path, "kind"), issues, allowed_values=kinds)
        if kind is not None:
            normalized["kind"] = kind
        for text_key in ("name", "api_key"):
            if text_key in entry:
                text = _as_text(entry[text_key], _join(item_path, text_key), issues)
                if text is not None:
                    normalized[text_key] = text
        if "base_url" in entry:
            base_url = _as_base_url(entry["base_url"], _join(item_path, "base_url"), issues)
            if base_url is not None:
                normalized["base_url"] = base_url
        if "auth" in entry:
            auth = _as_enum(entry["auth"], _join(item_path, "auth"), issues, allowed_values=auths)
            if auth is not None:
                normalized["auth"] = auth
        if "enabled" in entry:
            enabled = _as_bool(entry["enabled"], _join(item_path, "enabled"), issues)
            if enabled is not None:
                normalized["enabled"] = enabled
        if "models" in entry:
            normalized["models"] = _as_str_list(entry["models"], _join(item_path, "models"), issues)
        out.append(normalized)
    return out


def _validate_models(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {
        "router_model",
        "executor_model",
        "router_fallback_models",
        "executor_fallback_models",
        "router_routes",
        "executor_routes",
    }
    _reject_unknown_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    for key in ("router_model", "executor_model"):
        if key in payload:
            parsed = _as_str(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    for key in ("router_fallback_models", "executor_fallback_models"):
        if key in payload:
            out[key] = _as_str_list(payload[key], _join(path, key), issues)
    for key in ("router_routes", "executor_routes"):
        if key in payload:
            out[key] = _validate_routes(payload[key], _join(path, key), issues)
    return out


def _validate_routes(value: object, path: str, issues: _IssueCollector) -> list[dict[str, str]]:
    if not isinstance(value, list):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return []
    kinds = tuple(item.value for item in ProviderKind)
    routes: list[dict[str, str]] = []
    for index, raw in enumerate(value):
        item_path = f"{path}[{index}]"
        entry = _as_object(raw, item_path, issues)
        if entry is None:
            continue
        _reject_unknown_keys(entry, {"provider", "model"}, item_path, issues)
        _require_keys(entry, {"provider", "model"}, item_path, issues)
        if "provider" not in entry or "model" not in entry:
            continue
        provider = _as_enum(
            entry["provider"], _join(item_path, "provider"), issues, allowed_values=kinds
        )
        model = _as_text(entry["model"], _join(item_path, "model"), issues)
        if provider is not None and model is not None:
            routes.append({"provider": provider, "model": model})
    return routes


def _validate_api_keys(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"gemini", "deepseek", "base_url"}, path, issues)
    out: dict[str, Any] = {}
    for key in ("gemini", "deepseek", "base_url"):
        if key in payload:
            check = _as_base_url if key == "base_url" else _as_text
            parsed = check(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_logging(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    _reject_unknown_keys(payload, {"level", "log_dir", "log_to_stderr"}, path, issues)
    out: dict[str, Any] = {}
    if "level" in payload:
        raw_level = payload["level"]
        level = raw_level.strip().upper() if isinstance(raw_level, str) else raw_level
        parsed_level = _as_enum(level, _join(path, "level"), issues, allowed_values=LOG_LEVELS)
        if parsed_level is not None:
            out["level"] = parsed_level
    if "log_dir" in payload:
        log_dir = _as_str(payload["log_dir"], _join(path, "log_dir"), issues)
        if log_dir is not None:
            if "\x00" in log_dir:
                issues.add(_join(path, "log_dir"), "must not contain NUL bytes")
            else:
                out["log_dir"] = log_dir
    if "log_to_stderr" in payload:
        flag = _as_bool(payload["log_to_stderr"], _join(path, "log_to_stderr"), issues)
        if flag is not None:
            out["log_to_stderr"] = flag
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    # Unlike ``_as_str`` an empty string is allowed and means "unset".
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    return value.strip()


def _as_base_url(value: object, path: str, issues: _IssueCollector) -> str | None:
    text = _as_text(value, path, issues)
    if not text:
        return text
    try:
        parts = urlsplit(text)
        parts.port  # noqa: B018 - raises on a malformed port.
    except ValueError as exc:
        issues.add(path, f"invalid URL: {exc}")
        return None
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        issues.add(path, "must be an http(s) URL with a host")
        return None
    return text


def _as_str_list(value: object, path: str, issues: _IssueCollector) -> list[str]:
    if not isinstance(value, list):
        issues.add(path, f"expected array, got {type(value).__name__}")
        return []
    out: list[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str):
            issues.add(f"{path}[{index}]", f"expected string, got {type(item).__name__}")
            continue
        out.append(item.strip())
    return out


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key not in allowed:
            issues.add(_join(path, key), "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    # Tables merge key by key; arrays and scalars from the overlay replace.
    for key in sorted(overlay):
        value = overlay[key]
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            _merge_into(existing, value)
        else:
            target[key] = _plain_copy(value)


def _plain_copy(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _plain_copy(value[key]) for key in sorted(value) if isinstance(key, str)}
    if isinstance(value, (list, tuple)):
        return [_plain_copy(item) for item in value]
    return copy.deepcopy(value)


def _redact_value(value: object) -> object:
    if isinstance(value, (list, tuple)):
        return [_redact_value(item) for item in value]
    if not isinstance(value, Mapping):
        return value
    return {
        key: (
            REDACTED_CONFIG_VALUE
            if _is_secret_key(key) and isinstance(item, str) and item
            else _redact_value(item)
        )
        for key, item in sorted(value.items())
    }


def _is_secret_key(key: str) -> bool:
    return _normalize_key(key) in _SECRET_KEYS


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DexterConfig",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "REDACTED_CONFIG_VALUE",
    "THEMES",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "redact_config",
    "validate_config",
]
