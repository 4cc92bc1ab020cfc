"""Argv parsing, injection screening and streaming subprocess execution for plugins.

Commands are never handed to a shell: they are split with ``shlex`` and run
with ``asyncio.create_subprocess_exec``. stdout and stderr are read
concurrently; every line may be turned into a ``Progress`` report.
"""

from __future__ import annotations

import asyncio
import re
import shlex
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import structlog

from dexter.plugins.base import ExecutionFailure, Progress, ProgressSender

FORBIDDEN_EXACT_TOKENS: Final[frozenset[str]] = frozenset(
    {";", "&&", "||", "|", ">", "<", ">>", "<<"}
)
FORBIDDEN_SUBSTRINGS: Final[tuple[str, ...]] = ("`", "$(", "${", ";", "&&", "||", "|", ">", "<")

PERCENT_PATTERN: Final[re.Pattern[str]] = re.compile(r"(?i)\b(\d{1,3}(?:\.\d+)?)%")

NO_OUTPUT_MESSAGE: Final[str] = "Command executed successfully (no output)"

LineHandler = Callable[[str], Progress | None]

logger = structlog.get_logger(__name__)


class CommandParseError(ValueError):
    """Raised when a command cannot be split or contains injection tokens."""


def parse_and_validate_command(raw: str, expected_program: str | Sequence[str]) -> list[str]:
    """Split ``raw`` into argv and reject unexpected programs or injection tokens."""

    trimmed = raw.strip()
    if not trimmed:
        raise CommandParseError("Command is empty")
    try:
        argv = shlex.split(trimmed)
    except ValueError as exc:
        raise CommandParseError(f"Invalid command syntax: {exc}") from exc
    if not argv:
        raise CommandParseError("Command is empty")

    expected = (expected_program,) if isinstance(expected_program, str) else tuple(expected_program)
    if argv[0] not in expected:
        raise CommandParseError(
            f"Unexpected command program: expected `{' or '.join(expected)}`, got `{argv[0]}`"
        )

    for token in argv:
        if token in FORBIDDEN_EXACT_TOKENS or any(bad in token for bad in FORBIDDEN_SUBSTRINGS):
            raise CommandParseError(f"Unsafe token detected: {token}")
    return argv


def contains_arg(argv: Sequence[str], arg: str) -> bool:
    return any(item == arg for item in argv)


def extract_percentage(line: str) -> float | None:
    match = PERCENT_PATTERN.search(line)
    if match is None:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    return max(0.0, min(100.0, value))


@dataclass(frozen=True, slots=True)
class CommandResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def combined(self) -> str:
        return f"{self.stdout}{self.stderr}"


async def run_streaming(
    argv: Sequence[str],
    *,
    progress: ProgressSender | None = None,
    on_line: LineHandler | None = None,
    cwd: str | Path | None = None,
) -> CommandResult:
    """Run ``argv`` to completion, streaming each output line through ``on_line``."""

    if not argv:
        raise ExecutionFailure("Command is empty")

    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd) if cwd is not None else None,
        )
    except FileNotFoundError as exc:
        raise ExecutionFailure(f"Command not found: {argv[0]}", exit_code=127) from exc
    except OSError as exc:
        raise ExecutionFailure(f"Failed to start process: {exc}", exit_code=1) from exc

    assert process.stdout is not None
    assert process.stderr is not None

    async def _pump(stream: asyncio.StreamReader) -> str:
        captured: list[str] = []
        while True:
            line = await stream.readline()
            if not line:
                break
            text = line.decode("utf-8", errors="replace")
            captured.append(text)
            if on_line is None or progress is None:
                continue
            report = on_line(text.rstrip("\r\n"))
            if report is not None:
                await progress.send(report)
        return "".join(captured)

    stdout, stderr = await asyncio.gather(_pump(process.stdout), _pump(process.stderr))
    exit_code = await process.wait()
    logger.debug("tool_process_exited", program=argv[0], exit_code=exit_code)
    return CommandResult(exit_code=exit_code, stdout=stdout, stderr=stderr)


def output_or_placeholder(text: str) -> str:
    return text if text.strip() else NO_OUTPUT_MESSAGE


def percentage_reporter(template: str) -> LineHandler:
    """Build a line handler that reports ``template.format(pct=...)`` for ``NN.N%`` lines."""

    def _handle(line: str) -> Progress | None:
        pct = extract_percentage(line)
        if pct is None:
            return None
        return Progress(percentage=pct, message=template.format(pct=pct))

    return _handle


__all__ = [
    "CommandParseError",
    "CommandResult",
    "FORBIDDEN_EXACT_TOKENS",
    "FORBIDDEN_SUBSTRINGS",
    "LineHandler",
    "NO_OUTPUT_MESSAGE",
    "PERCENT_PATTERN",
    "contains_arg",
    "extract_percentage",
    "output_or_placeholder",
    "parse_and_validate_command",
    "percentage_reporter",
    "run_streaming",
]
