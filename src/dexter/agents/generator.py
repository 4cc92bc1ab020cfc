"""Command generation: executor prompt in, one gated and validated command out."""

from __future__ import annotations

from typing import Protocol

import structlog

from dexter.agents.context import FileContext
from dexter.agents.router import CompletionSource
from dexter.llm.cache import CachePolicy
from dexter.plugins import Plugin
from dexter.security.safety_gate import SafetyGate

GENERATOR_USER_MESSAGE = "Please generate the exact command based on the instructions above."
VALIDATION_FAILED_MESSAGE = "Command failed plugin validation logic"

logger = structlog.get_logger(__name__)


class CommandValidationError(ValueError):
    """Raised when a plugin's own validator rejects a command."""

    def __init__(self, plugin: str, command: str) -> None:
        self.plugin = plugin
        self.command = command
        super().__init__(VALIDATION_FAILED_MESSAGE)


class Generator(Protocol):
    async def generate(
        self,
        user_input: str,
        context: FileContext,
        plugin: Plugin,
        cache_policy: CachePolicy = CachePolicy.NORMAL,
    ) -> str: ...


def clean_command(raw: str) -> str:
    return raw.strip().replace("```bash", "").replace("```", "").strip()


def ensure_command_allowed(command: str, plugin: Plugin, gate: SafetyGate) -> None:
    """Run the safety gate, then the plugin validator; raise on the first failure."""

    gate.check(command)
    if not plugin.validate_command(command):
        raise CommandValidationError(plugin.name, command)


class CommandGenerator:
    def __init__(self, llm: CompletionSource, *, gate: SafetyGate | None = None) -> None:
        self._llm = llm
        self._gate = gate or SafetyGate()

    async def generate(
        self,
        user_input: str,
        context: FileContext,
        plugin: Plugin,
        cache_policy: CachePolicy = CachePolicy.NORMAL,
    ) -> str:
        system_prompt = plugin.executor_prompt(context.for_executor(), user_input)
        raw = await self._llm.complete(system_prompt, GENERATOR_USER_MESSAGE, cache_policy)
        command = clean_command(raw)
        ensure_command_allowed(command, plugin, self._gate)
        logger.info("command_generated", plugin=plugin.name, cache_policy=str(cache_policy))
        return command


__all__ = [
    "CommandGenerator",
    "CommandValidationError",
    "GENERATOR_USER_MESSAGE",
    "Generator",
    "VALIDATION_FAILED_MESSAGE",
    "clean_command",
    "ensure_command_allowed",
]
