"""Configuration: schema, TOML loader, and typed provider settings."""

from __future__ import annotations

from dexter.config.loader import (
    ConfigLoadError,
    default_config_path,
    dump_effective_config,
    effective_config,
    load_config,
    load_settings,
)
from dexter.config.providers import (
    AuthScheme,
    DexterSettings,
    ModelPreferences,
    ModelRoute,
    PipelineRole,
    ProviderConfig,
    ProviderKind,
    settings_from_config,
)
from dexter.config.schema import (
    ConfigValidationError,
    ConfigValidationIssue,
    assert_valid_config,
    default_config,
    validate_config,
)

__all__ = [
    "AuthScheme",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "DexterSettings",
    "ModelPreferences",
    "ModelRoute",
    "PipelineRole",
    "ProviderConfig",
    "ProviderKind",
    "assert_valid_config",
    "default_config",
    "default_config_path",
    "dump_effective_config",
    "effective_config",
    "load_config",
    "load_settings",
    "settings_from_config",
    "validate_config",
]
