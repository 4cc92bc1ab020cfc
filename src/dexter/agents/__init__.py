"""Router and generator agents plus the working-directory context they read."""

from __future__ import annotations

from dexter.agents.context import FileContext, scan_directory
from dexter.agents.generator import (
    CommandGenerator,
    CommandValidationError,
    Generator,
    ensure_command_allowed,
)
from dexter.agents.router import (
    Clarify,
    ClarifyOption,
    ClarifyPayload,
    LlmRouter,
    RouteOutcome,
    Router,
    RouterResponseError,
    Selected,
    Unsupported,
)

__all__ = [
    "Clarify",
    "ClarifyOption",
    "ClarifyPayload",
    "CommandGenerator",
    "CommandValidationError",
    "FileContext",
    "Generator",
    "LlmRouter",
    "RouteOutcome",
    "Router",
    "RouterResponseError",
    "Selected",
    "Unsupported",
    "ensure_command_allowed",
    "scan_directory",
]
