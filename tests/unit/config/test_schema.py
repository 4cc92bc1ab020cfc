"""
dexter — unit tests for config schema and provider settings

File: tests/unit/config/test_schema.py
Last updated: 2026-10-19

Purpose
- Validate strict config validation and the conversion into ``DexterSettings``.

What this test file should cover
- Structured issues with dotted paths.
- Schema version mismatch guidance.
- Provider normalization and legacy ``[api_keys]`` providers.
"""

from __future__ import annotations

import pytest

from dexter.config.providers import (
    LEGACY_CUSTOM_NAME,
    AuthScheme,
    ProviderConfig,
    ProviderKind,
    settings_from_config,
)
from dexter.config.schema import (
    REDACTED_CONFIG_VALUE,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)


@pytest.mark.unit
class TestValidation:
    def test_defaults_are_valid(self) -> None:
        result = validate_config(default_config())
        assert result.is_valid
        assert result.issues == ()

    def test_non_mapping_root_is_rejected(self) -> None:
        result = validate_config(["not", "a", "table"])
        assert result.config is None
        assert result.issues[0].path == "<root>"

    def test_issue_paths_are_dotted_and_indexed(self) -> None:
        config = merge_config(
            default_config(),
            {"providers": [{"kind": "martian"}], "logging": {"level": "LOUD"}},
        )
        result = validate_config(config)
        paths = {issue.path for issue in result.issues}
        assert "providers[0].kind" in paths
        assert "logging.level" in paths

    def test_schema_version_mismatch_gives_guidance(self) -> None:
        config = merge_config(default_config(), {"meta": {"schema_version": 2}})
        with pytest.raises(ConfigValidationError, match="upgrade dexter"):
            assert_valid_config(config)

    def test_route_requires_provider_and_model(self) -> None:
        config = merge_config(
            default_config(),
            {"models": {"router_routes": [{"provider": "gemini"}]}},
        )
        result = validate_config(config)
        assert any(issue.path.startswith("models.router_routes[0]") for issue in result.issues)

    @pytest.mark.parametrize(
        "base_url", ["llm.example/v1", "ftp://llm.example", "http://[::1", "https://"]
    )
    def test_base_url_must_be_http_with_host(self, base_url: str) -> None:
        config = merge_config(
            default_config(),
            {
                "providers": [{"kind": "custom", "base_url": base_url}],
                "api_keys": {"base_url": base_url},
            },
        )
        paths = {issue.path for issue in validate_config(config).issues}
        assert {"providers[0].base_url", "api_keys.base_url"} <= paths

    def test_blank_and_http_base_urls_are_accepted(self) -> None:
        config = merge_config(
            default_config(),
            {
                "providers": [{"kind": "ollama", "base_url": "http://localhost:11434/v1"}],
                "api_keys": {"base_url": ""},
            },
        )
        assert validate_config(config).is_valid

    def test_log_level_is_case_insensitive(self) -> None:
        config = merge_config(default_config(), {"logging": {"level": "debug"}})
        assert assert_valid_config(config)["logging"]["level"] == "DEBUG"


@pytest.mark.unit
class TestRedaction:
    def test_secret_fields_are_masked_at_any_depth(self) -> None:
        config = merge_config(
            default_config(),
            {
                "api_keys": {"gemini": "AIza-secret"},
                "providers": [{"kind": "anthropic", "api_key": "sk-ant-secret"}],
            },
        )
        redacted = redact_config(config)
        assert redacted["api_keys"]["gemini"] == REDACTED_CONFIG_VALUE
        assert redacted["providers"][0]["api_key"] == REDACTED_CONFIG_VALUE
        assert redacted["api_keys"]["deepseek"] == ""


@pytest.mark.unit
class TestSettings:
    def test_explicit_providers_are_preferred_over_legacy_keys(self) -> None:
        config = merge_config(
            default_config(),
            {
                "providers": [{"kind": "groq", "api_key": "gsk"}],
                "api_keys": {"gemini": "AIza"},
            },
        )
        settings = settings_from_config(assert_valid_config(config))
        assert [p.kind for p in settings.effective_providers()] == [ProviderKind.GROQ]

    def test_legacy_keys_produce_builtin_providers(self) -> None:
        config = merge_config(
            default_config(), {"api_keys": {"gemini": " AIza ", "deepseek": "sk-ds"}}
        )
        providers = settings_from_config(config).effective_providers()
        assert [p.kind for p in providers] == [ProviderKind.GEMINI, ProviderKind.DEEPSEEK]
        assert providers[0].api_key == "AIza"

    def test_legacy_base_url_inserts_custom_provider_first(self) -> None:
        config = merge_config(
            default_config(),
            {"api_keys": {"deepseek": "sk-ds", "base_url": "https://llm.example/v1"}},
        )
        providers = settings_from_config(config).effective_providers()
        assert providers[0].kind is ProviderKind.CUSTOM
        assert providers[0].display_name == LEGACY_CUSTOM_NAME
        assert providers[0].api_key == "sk-ds"
        assert providers[0].auth is AuthScheme.BEARER

    def test_no_keys_means_nothing_configured(self) -> None:
        settings = settings_from_config(default_config())
        assert settings.effective_providers() == ()
        assert not settings.has_keys()

    def test_normalization_fills_defaults_and_trims(self) -> None:
        provider = ProviderConfig(
            kind=ProviderKind.BASETEN,
            name="  ",
            api_key=" key ",
            base_url="https://proxy.example/v1/",
            models=(" m1 ", ""),
        ).normalized()
        assert provider.base_url == "https://proxy.example/v1"
        assert provider.api_key == "key"
        assert provider.models == ("m1",)
        assert provider.auth is AuthScheme.API_KEY
        assert provider.display_name == "BASETEN"

    def test_disabled_or_keyless_providers_are_not_configured(self) -> None:
        assert not ProviderConfig(kind=ProviderKind.GROQ, api_key=None).is_configured()
        assert not ProviderConfig(
            kind=ProviderKind.GROQ, api_key="k", enabled=False
        ).is_configured()
        ollama = ProviderConfig(kind=ProviderKind.OLLAMA).normalized()
        assert ollama.auth is AuthScheme.NONE
        assert ollama.is_configured()
