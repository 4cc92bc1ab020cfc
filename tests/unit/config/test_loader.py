"""
dexter — unit tests for config loader

File: tests/unit/config/test_loader.py
Last updated: 2026-10-19

Purpose
- Validate config loading from defaults, TOML, env overrides, and CLI overrides.

What this test file should cover
- Precedence: CLI > env > file > defaults.
- Env var path mapping and type coercion.
- Conventional provider key variables as a last fallback.
- Redacted effective config dumping.

Functional requirements
- Works without provider keys or network.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dexter.config.loader import (
    ConfigLoadError,
    default_config_path,
    dump_effective_config,
    load_config,
    load_settings,
)
from dexter.config.providers import ProviderKind
from dexter.config.schema import ConfigValidationError


def _write_config(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _isolated_env(tmp_path: Path, **extra: str) -> dict[str, str]:
    return {"XDG_CONFIG_HOME": str(tmp_path / "xdg"), **extra}


def test_defaults_load_when_no_config_file_exists(tmp_path: Path) -> None:
    loaded = load_config(environ=_isolated_env(tmp_path))

    assert loaded["meta"]["schema_version"] == 1
    assert loaded["cache_capacity"] == 128
    assert loaded["providers"] == []
    assert loaded["models"]["router_model"] == "gemini-2.5-flash-lite"


def test_default_config_path_follows_xdg(tmp_path: Path) -> None:
    path = default_config_path({"XDG_CONFIG_HOME": str(tmp_path)})
    assert path == tmp_path / "dexter" / "config.toml"


def test_loader_precedence_default_file_env_cli(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.toml", "cache_capacity = 16\n")
    env = _isolated_env(tmp_path)

    file_loaded = load_config(config_path, environ=env)
    env_loaded = load_config(config_path, environ={**env, "DEXTER_CACHE_CAPACITY": "32"})
    cli_loaded = load_config(
        config_path,
        environ={**env, "DEXTER_CACHE_CAPACITY": "32"},
        cli_overrides={"cache_capacity": 64},
    )

    assert file_loaded["cache_capacity"] == 16
    assert env_loaded["cache_capacity"] == 32
    assert cli_loaded["cache_capacity"] == 64


def test_env_override_reaches_nested_fields_with_coercion(tmp_path: Path) -> None:
    env = _isolated_env(
        tmp_path,
        DEXTER_MODELS_ROUTER_MODEL="deepseek-chat",
        DEXTER_LOGGING_LOG_TO_STDERR="yes",
        DEXTER_HTTP_TIMEOUT_SECONDS="12.5",
    )
    loaded = load_config(environ=env)

    assert loaded["models"]["router_model"] == "deepseek-chat"
    assert loaded["logging"]["log_to_stderr"] is True
    assert loaded["http_timeout_seconds"] == 12.5


def test_invalid_env_coercion_raises_config_load_error(tmp_path: Path) -> None:
    env = _isolated_env(tmp_path, DEXTER_CACHE_CAPACITY="lots")
    with pytest.raises(ConfigLoadError, match="DEXTER_CACHE_CAPACITY"):
        load_config(environ=env)


def test_explicit_missing_config_path_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError, match="config file not found"):
        load_config(tmp_path / "missing.toml", environ=_isolated_env(tmp_path))


def test_config_path_env_var_is_treated_as_explicit(tmp_path: Path) -> None:
    env = _isolated_env(tmp_path, DEXTER_CONFIG=str(tmp_path / "nope.toml"))
    with pytest.raises(ConfigLoadError):
        load_config(environ=env)


def test_invalid_toml_is_reported(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.toml", "cache_capacity = = 3\n")
    with pytest.raises(ConfigLoadError, match="invalid TOML"):
        load_config(config_path, environ=_isolated_env(tmp_path))


def test_unknown_keys_fail_validation(tmp_path: Path) -> None:
    config_path = _write_config(tmp_path / "config.toml", "colour = 'blue'\n")
    with pytest.raises(ConfigValidationError) as excinfo:
        load_config(config_path, environ=_isolated_env(tmp_path))
    assert any(issue.path == "colour" for issue in excinfo.value.issues)


def test_conventional_key_env_fills_blank_api_key(tmp_path: Path) -> None:
    env = _isolated_env(tmp_path, GEMINI_API_KEY="gm-from-env")
    settings = load_settings(environ=env)

    providers = settings.effective_providers()
    assert [p.kind for p in providers] == [ProviderKind.GEMINI]
    assert providers[0].api_key == "gm-from-env"


def test_conventional_key_env_never_overrides_file_value(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "config.toml",
        '[api_keys]\ngemini = "gm-from-file"\n',
    )
    env = _isolated_env(tmp_path, GEMINI_API_KEY="gm-from-env")
    loaded = load_config(config_path, environ=env)
    assert loaded["api_keys"]["gemini"] == "gm-from-file"


def test_log_dir_is_expanded(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "config.toml",
        '[logging]\nlog_dir = "~/dexter-logs"\n',
    )
    loaded = load_config(config_path, environ=_isolated_env(tmp_path))
    assert "~" not in loaded["logging"]["log_dir"]


def test_dump_effective_config_redacts_keys(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path / "config.toml",
        """
[api_keys]
deepseek = "sk-live-secret-value"

[[providers]]
kind = "groq"
api_key = "gsk_secret"
""".strip(),
    )
    loaded = load_config(config_path, environ=_isolated_env(tmp_path))
    dumped = dump_effective_config(loaded)

    assert "sk-live-secret-value" not in dumped
    assert "gsk_secret" not in dumped
    payload = json.loads(dumped)
    assert payload["providers"][0]["kind"] == "groq"
    assert dumped == dump_effective_config(loaded)
