"""
dexter — tool plugin contract

File: src/dexter/plugins/base.py
Last updated: 2026-10-19

Purpose
- Define what the pipeline needs from a tool plugin: routing and executor
  documentation, an executor prompt, a validator, a dry-run preview and a
  progress-reporting execution.
- Value types exchanged with plugins (``Progress``, ``Preview``).

Functional requirements
- ``validate_command`` is pure and cheap; it runs after the safety gate.
- ``dry_run`` never mutates the filesystem.
- ``execute_with_progress`` raises ``ExecutionFailure`` on a failed run.
"""

from __future__ import annotations

import abc
import shutil
from dataclasses import dataclass
from typing import ClassVar, Protocol, TypeAlias, runtime_checkable


@dataclass(frozen=True, slots=True)
class Progress:
    """One progress report; ``percentage`` is 0.0-100.0 and not necessarily monotonic."""

    percentage: float | None
    message: str


@dataclass(frozen=True, slots=True)
class DiffItem:
    original: str
    new: str
    status: str | None = None


@dataclass(frozen=True, slots=True)
class TextPreview:
    text: str


@dataclass(frozen=True, slots=True)
class DiffPreview:
    items: tuple[DiffItem, ...] = ()


Preview: TypeAlias = TextPreview | DiffPreview


class ProgressSender(Protocol):
    async def send(self, progress: Progress) -> None: ...


@runtime_checkable
class LlmBridge(Protocol):
    """Minimal chat capability handed to plugins for explanations."""

    async def chat(self, system: str, user: str) -> str: ...


class ExecutionFailure(RuntimeError):
    """Raised when the external tool exits unsuccessfully or cannot start."""

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None = None,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)


@runtime_checkable
class Plugin(Protocol):
    name: str
    description: str
    doc_for_router: str
    doc_for_executor: str

    def executor_prompt(self, context: str, user_input: str) -> str: ...

    def validate_command(self, command: str) -> bool: ...

    async def dry_run(self, command: str, llm: LlmBridge | None) -> Preview: ...

    async def execute_with_progress(self, command: str, progress: ProgressSender) -> str: ...


class BasePlugin(abc.ABC):
    """Shared prompt assembly, install probing and LLM-explained dry runs."""

    name: ClassVar[str]
    program: ClassVar[str]
    description: ClassVar[str]
    doc_for_router: ClassVar[str]
    doc_for_executor: ClassVar[str]
    install_hint: ClassVar[str] = ""

    specialist_role: ClassVar[str] = "Command Specialist Agent"
    goal: ClassVar[str] = ""
    hard_constraints: ClassVar[tuple[str, ...]] = (
        "OUTPUT ONLY: Output ONLY the command. No backticks, no markdown, no explanations.",
        "NO SHELL CHAINS: Do NOT use pipes, `&&`, `||`, `;`, backticks, or `$()`.",
    )
    explainer_prompt: ClassVar[str | None] = None
    offline_preview_label: ClassVar[str] = "Executing command"

    def executor_prompt(self, context: str, user_input: str) -> str:
        constraints = "\n".join(
            f"{index}. {rule}" for index, rule in enumerate(self.hard_constraints, start=1)
        )
        return (
            f"You are the {self.specialist_role} for Dexter.\n"
            f"{self.goal or f'Your goal is to generate a valid `{self.program}` command.'}\n\n"
            "### HARD CONSTRAINTS (MUST FOLLOW):\n"
            f"{constraints}\n\n"
            "### Documentation:\n"
            f"{self.doc_for_executor}\n\n"
            "### Context:\n"
            f"{context}\n\n"
            "### User Request:\n"
            f"{user_input}\n"
        )

    @abc.abstractmethod
    def validate_command(self, command: str) -> bool:
        raise NotImplementedError

    async def dry_run(self, command: str, llm: LlmBridge | None) -> Preview:
        if llm is not None and self.explainer_prompt is not None:
            return TextPreview(await llm.chat(self.explainer_prompt, command))
        return TextPreview(f"{self.offline_preview_label}: {command}")

    @abc.abstractmethod
    async def execute_with_progress(self, command: str, progress: ProgressSender) -> str:
        raise NotImplementedError

    def is_installed(self) -> bool:
        return shutil.which(self.program) is not None


__all__ = [
    "BasePlugin",
    "DiffItem",
    "DiffPreview",
    "ExecutionFailure",
    "LlmBridge",
    "Plugin",
    "Preview",
    "Progress",
    "ProgressSender",
    "TextPreview",
]
