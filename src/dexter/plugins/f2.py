"""
dexter — f2 batch-rename plugin

File: src/dexter/plugins/f2.py
Last updated: 2026-10-19

Purpose
- Generate, preview and apply ``f2`` rename operations.

Functional requirements
- The dry run never applies changes: ``-x``/``-X`` are removed and f2's own
  preview table is parsed into a ``DiffPreview``.
- Output is always requested with ``--no-color`` so the table is parseable.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import ClassVar, Final

from dexter.plugins.base import (
    BasePlugin,
    DiffItem,
    DiffPreview,
    ExecutionFailure,
    LlmBridge,
    Preview,
    Progress,
    ProgressSender,
    TextPreview,
)
from dexter.plugins.command_exec import (
    CommandParseError,
    CommandResult,
    output_or_placeholder,
    parse_and_validate_command,
    run_streaming,
)

APPLY_FLAGS: Final[frozenset[str]] = frozenset({"-x", "-X", "--exec"})
NO_COLOR_FLAG: Final[str] = "--no-color"

_COLUMN_SEPARATORS: Final[tuple[str, ...]] = ("|", "│", "┃")
_BORDER_CHARS: Final[frozenset[str]] = frozenset("-=+─━┼┬┴├┤┌┐└┘ ")
_HEADER_CELLS: Final[frozenset[str]] = frozenset({"ORIGINAL", "INPUT", "OLD"})


def validate_f2_command(command: str) -> bool:
    if not command.strip().startswith("f2 "):
        return False
    try:
        parse_and_validate_command(command, "f2")
    except CommandParseError:
        return False
    return True


def preview_argv(argv: Sequence[str]) -> list[str]:
    """Return ``argv`` without apply flags and with ``--no-color`` appended."""

    safe = [arg for arg in argv if arg not in APPLY_FLAGS]
    if NO_COLOR_FLAG not in safe:
        safe.append(NO_COLOR_FLAG)
    return safe


def execution_argv(argv: Sequence[str]) -> list[str]:
    final = list(argv)
    if NO_COLOR_FLAG not in final:
        final.append(NO_COLOR_FLAG)
    return final


def _split_row(line: str) -> list[str] | None:
    stripped = line.strip()
    for separator in _COLUMN_SEPARATORS:
        if stripped.startswith(separator):
            cells = stripped.strip(separator).split(separator)
            return [cell.strip() for cell in cells]
    return None


def parse_preview_table(output: str) -> DiffPreview | None:
    """Parse f2's preview table; ``None`` when the output carries no table."""

    items: list[DiffItem] = []
    saw_table = False
    for line in output.splitlines():
        cells = _split_row(line)
        if cells is None or len(cells) < 2:
            continue
        if all(set(cell) <= _BORDER_CHARS for cell in cells):
            continue
        saw_table = True
        if cells[0].upper() in _HEADER_CELLS:
            continue
        status = cells[2] if len(cells) > 2 and cells[2] else None
        items.append(DiffItem(original=cells[0], new=cells[1], status=status))

    if not saw_table:
        return None
    return DiffPreview(items=tuple(items))


def _failure(result: CommandResult) -> ExecutionFailure:
    return ExecutionFailure(
        f"f2 error: {result.stdout}\n{result.stderr}",
        exit_code=result.exit_code,
        stdout=result.stdout,
        stderr=result.stderr,
    )


class F2Plugin(BasePlugin):
    name: ClassVar[str] = "f2"
    program: ClassVar[str] = "f2"
    description: ClassVar[str] = "A fast, safe, and powerful batch renamer written in Go."
    doc_for_router: ClassVar[str] = (
        "Best for batch renaming files and directories using search and replace or regex."
    )
    doc_for_executor: ClassVar[str] = """f2 Command Usage:
- Simple find and replace: f2 -f "find" -r "replace"
- Regex find and replace: f2 -f "regexp" -r "replacement"
- Target specific file: f2 -f "find" -r "replace" "filename.txt"
- Undo last operation: f2 -u
- Preview changes: f2 -f "..." -r "..." (Default shows preview)
- Execute changes: f2 -f "..." -r "..." -x

Notes:
1. Always include -x if you want to apply the changes, otherwise f2 only shows a preview.
2. For maximum precision, include the specific filename as a trailing argument.
3. f2 supports full regular expressions in the -f pattern by default."""
    install_hint: ClassVar[str] = "Please install f2 manually: 'brew install f2'"

    specialist_role: ClassVar[str] = "Rename Specialist Agent"
    goal: ClassVar[str] = "Your goal is to generate a valid `f2` command that renames files."
    hard_constraints: ClassVar[tuple[str, ...]] = (
        *BasePlugin.hard_constraints,
        "APPLY: Include `-x` so the rename is applied; Dexter previews without it first.",
        "PRECISION: Use exact filenames from context as trailing arguments when possible.",
    )
    offline_preview_label: ClassVar[str] = "Executing rename command"

    def validate_command(self, command: str) -> bool:
        return validate_f2_command(command)

    async def dry_run(self, command: str, llm: LlmBridge | None) -> Preview:
        try:
            argv = parse_and_validate_command(command, "f2")
        except CommandParseError as exc:
            raise ExecutionFailure(str(exc)) from exc

        result = await run_streaming(preview_argv(argv))
        if not result.succeeded:
            raise _failure(result)

        combined = result.combined
        if not combined.strip():
            return DiffPreview()
        table = parse_preview_table(combined)
        if table is None:
            return TextPreview(combined)
        return table

    async def execute_with_progress(self, command: str, progress: ProgressSender) -> str:
        try:
            argv = parse_and_validate_command(command, "f2")
        except CommandParseError as exc:
            raise ExecutionFailure(str(exc)) from exc

        await progress.send(Progress(percentage=None, message="Renaming files with f2..."))
        result = await run_streaming(execution_argv(argv))
        if not result.succeeded:
            raise _failure(result)
        return output_or_placeholder(result.combined)


__all__ = [
    "F2Plugin",
    "execution_argv",
    "parse_preview_table",
    "preview_argv",
    "validate_f2_command",
]
