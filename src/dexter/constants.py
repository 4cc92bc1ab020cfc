"""Stable constants shared across dexter subsystems."""

from __future__ import annotations

from typing import Final

APP_NAME: Final[str] = "dexter"

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Pipeline polling cadence while busy (seconds).
POLL_INTERVAL_BUSY: Final[float] = 0.05

# Execution progress channel capacity.
PROGRESS_CHANNEL_CAPACITY: Final[int] = 10

# Completion engine defaults.
DEFAULT_CACHE_CAPACITY: Final[int] = 128
DEFAULT_TEMPERATURE: Final[float] = 0.1
DEFAULT_ANTHROPIC_MAX_TOKENS: Final[int] = 1024
DEFAULT_HTTP_TIMEOUT_SECONDS: Final[float] = 60.0
ANTHROPIC_API_VERSION: Final[str] = "2023-06-01"
ERROR_BODY_LIMIT: Final[int] = 500

# Last-resort target when configuration yields nothing.
FALLBACK_OLLAMA_BASE_URL: Final[str] = "http://localhost:11434/v1"
FALLBACK_OLLAMA_MODEL: Final[str] = "llama3.2"

# Router confidence threshold for a direct plugin selection.
ROUTER_CONFIDENCE_THRESHOLD: Final[float] = 0.7

# Context scanning.
CONTEXT_MAX_FILES: Final[int] = 20
CONTEXT_SUMMARY_TOP_FILES: Final[int] = 5

# Session block bodies are truncated to this many characters before logging.
SESSION_BLOCK_LIMIT: Final[int] = 8192

__all__ = [
    "ANTHROPIC_API_VERSION",
    "APP_NAME",
    "CONFIG_SCHEMA_VERSION",
    "CONTEXT_MAX_FILES",
    "CONTEXT_SUMMARY_TOP_FILES",
    "DEFAULT_ANTHROPIC_MAX_TOKENS",
    "DEFAULT_CACHE_CAPACITY",
    "DEFAULT_HTTP_TIMEOUT_SECONDS",
    "DEFAULT_TEMPERATURE",
    "ERROR_BODY_LIMIT",
    "FALLBACK_OLLAMA_BASE_URL",
    "FALLBACK_OLLAMA_MODEL",
    "POLL_INTERVAL_BUSY",
    "PROGRESS_CHANNEL_CAPACITY",
    "ROUTER_CONFIDENCE_THRESHOLD",
    "SESSION_BLOCK_LIMIT",
]
