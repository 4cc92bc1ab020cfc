"""Plain-text renderings shared by the session log, the CLI and the TUI."""

from __future__ import annotations

from dexter.agents.context import FileContext
from dexter.agents.router import ClarifyOption
from dexter.plugins.base import DiffPreview, Preview, Progress, TextPreview

NO_CHANGES_MESSAGE = "No changes detected."


def preview_to_log(preview: Preview) -> str:
    if isinstance(preview, TextPreview):
        return preview.text
    assert isinstance(preview, DiffPreview)
    if not preview.items:
        return NO_CHANGES_MESSAGE
    lines: list[str] = []
    for index, item in enumerate(preview.items, start=1):
        lines.append(f"FILE {index:02d}")
        if item.status is not None:
            lines.append(f"status={item.status}")
        lines.append(f"old={item.original}")
        lines.append(f"new={item.new}")
        lines.append("")
    return "\n".join(lines)


def format_clarify_block(question: str, options: tuple[ClarifyOption, ...]) -> str:
    lines = [f"question={question}"]
    for option in options:
        lines.extend(
            [
                f"option.id={option.id}",
                f"option.label={option.label}",
                f"option.detail={option.detail}",
                f"option.resolved_intent={option.resolved_intent}",
                "",
            ]
        )
    return "\n".join(lines)


def progress_line(progress: Progress) -> str:
    if progress.percentage is None:
        return progress.message
    return f"{progress.percentage:.1f}% {progress.message}"


def format_context_lines(context: FileContext) -> str:
    if not context.files:
        return "No non-hidden files found in current directory."
    lines = [f"File count: {len(context.files)}"]
    lines.extend(f"{index:02d}. {name}" for index, name in enumerate(context.files, start=1))
    if context.summary is not None:
        lines.append(f"Summary: {context.summary}")
    return "\n".join(lines)


__all__ = [
    "NO_CHANGES_MESSAGE",
    "format_clarify_block",
    "format_context_lines",
    "preview_to_log",
    "progress_line",
]
