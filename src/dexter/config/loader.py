"""
dexter — runtime config loader.

File: src/dexter/config/loader.py
Last updated: 2026-10-19

Purpose
- Load effective runtime config from defaults, TOML file, env vars, and CLI overrides.

What should be included in this file
- Precedence logic: CLI > env (DEXTER_) > file > defaults.
- TOML loading via ``tomllib``.
- Deterministic environment variable mapping and coercion.
- Conventional provider key variables (``GEMINI_API_KEY``...) as a last fallback.
- Redacted deterministic dump of effective config.

Functional requirements
- Missing default config file is not an error; an explicit missing path is.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from dexter.config.providers import DexterSettings, settings_from_config
from dexter.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "config.toml"
ENV_PREFIX: Final[str] = "DEXTER_"
CONFIG_PATH_ENV: Final[str] = "DEXTER_CONFIG"

# Conventional variables consulted when ``[api_keys]`` leaves a key blank.
CONVENTIONAL_KEY_ENVS: Final[tuple[tuple[str, tuple[str, ...]], ...]] = (
    ("GEMINI_API_KEY", ("api_keys", "gemini")),
    ("DEEPSEEK_API_KEY", ("api_keys", "deepseek")),
)

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

ConfigPath = tuple[str, ...]


class ConfigLoadError(ValueError):
    """Raised when config cannot be loaded or overrides cannot be coerced."""


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("expected true/false/1/0/yes/no/on/off")


# Keyed by the type of the default value; ``bool`` must precede ``int``.
_ENV_COERCERS: Final[tuple[tuple[type, str, Callable[[str], object]], ...]] = (
    (bool, "a boolean", _parse_bool),
    (int, "an integer", int),
    (float, "a number", float),
    (str, "a string", str),
)


def default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Return ``$XDG_CONFIG_HOME/dexter/config.toml`` or ``~/.config/dexter/config.toml``."""

    env = os.environ if environ is None else environ
    xdg = env.get("XDG_CONFIG_HOME", "").strip()
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "dexter" / DEFAULT_CONFIG_FILE


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Layer defaults, the TOML file, ``DEXTER_*`` variables and CLI overrides.

    The file layer is validated on its own first so a bad file is reported
    against the file, not against a later override.
    """

    env = dict(os.environ if environ is None else environ)
    explicit = config_path if config_path is not None else env.get(CONFIG_PATH_ENV)
    if explicit is None:
        path = default_config_path(env)
    else:
        path = Path(explicit).expanduser().resolve()

    file_layer = _read_toml(path, required=explicit is not None)
    config = assert_valid_config(merge_config(default_config(), file_layer))
    for layer in (_env_layer(config, env), _cli_layer(cli_overrides or {})):
        config = merge_config(config, layer)
    config = _fill_conventional_keys(config, env)
    return normalize_paths(assert_valid_config(config))


def load_settings(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> DexterSettings:
    config = load_config(config_path, cli_overrides=cli_overrides, environ=environ)
    return settings_from_config(config)


def normalize_paths(config: Mapping[str, object]) -> dict[str, Any]:
    """Expand ``~`` and ``$VARS`` in path-valued fields."""

    result = merge_config({}, config)
    for path in PATH_FIELDS:
        value = _lookup(result, path)
        if isinstance(value, str):
            _assign(result, path, Path(os.path.expandvars(value)).expanduser().as_posix())
    return result


def effective_config(config: Mapping[str, object]) -> dict[str, Any]:
    return redact_config(config)


def dump_effective_config(config: Mapping[str, object], *, indent: int | None = None) -> str:
    """Deterministic JSON of the redacted config; compact unless ``indent`` is set."""

    return json.dumps(
        effective_config(config),
        sort_keys=True,
        separators=(",", ":") if indent is None else (",", ": "),
        ensure_ascii=False,
        indent=indent,
    )


def env_name_for(path: ConfigPath) -> str:
    return ENV_PREFIX + "_".join(part.upper() for part in path)


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _scalar_leaves(
    node: Mapping[str, object], prefix: ConfigPath = ()
) -> Iterator[tuple[ConfigPath, object]]:
    for key in sorted(node):
        value = node[key]
        if isinstance(value, Mapping):
            yield from _scalar_leaves(value, (*prefix, key))
        else:
            yield (*prefix, key), value


def _env_layer(config: Mapping[str, object], env: Mapping[str, str]) -> dict[str, Any]:
    """Overrides from ``DEXTER_<PATH>`` variables, typed after the current value."""

    layer: dict[str, Any] = {}
    for path, current in _scalar_leaves(config):
        if path[0] == "meta":
            continue
        name = env_name_for(path)
        raw = env.get(name)
        if raw is None:
            continue
        for kind, label, coerce in _ENV_COERCERS:
            if isinstance(current, kind):
                try:
                    value = coerce(raw.strip())
                except ValueError as exc:
                    raise ConfigLoadError(
                        f"{name} -> {'.'.join(path)} must be {label}: {exc}"
                    ) from exc
                _assign(layer, path, value)
                break
    return layer


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for dotted, value in sorted(overrides.items()):
        if value is None:
            continue
        path = tuple(part for part in dotted.split(".") if part)
        if not path:
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        _assign(layer, path, value)
    return layer


def _fill_conventional_keys(
    config: Mapping[str, object], env: Mapping[str, str]
) -> dict[str, Any]:
    result = merge_config({}, config)
    for name, path in CONVENTIONAL_KEY_ENVS:
        current = _lookup(result, path)
        supplied = env.get(name, "").strip()
        if supplied and not (isinstance(current, str) and current.strip()):
            _assign(result, path, supplied)
    return result


def _assign(target: dict[str, Any], path: ConfigPath, value: object) -> None:
    *parents, leaf = path
    node = target
    for part in parents:
        node = node.setdefault(part, {})
    node[leaf] = value


def _lookup(source: Mapping[str, object], path: ConfigPath) -> object | None:
    node: object = source
    for part in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(part)
    return node


__all__ = [
    "CONFIG_PATH_ENV",
    "CONVENTIONAL_KEY_ENVS",
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "default_config_path",
    "dump_effective_config",
    "effective_config",
    "env_name_for",
    "load_config",
    "load_settings",
    "normalize_paths",
]
