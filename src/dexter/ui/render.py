"""Output rendering for the headless dexter CLI.

File: src/dexter/ui/render.py
Last updated: 2026-10-19

Purpose
- Provide a thin rendering layer for CLI output on top of ``rich``.
- Respect NO_COLOR environment variable and --no-color CLI flag.

Functional requirements
- Plain-text rendering must work when stdout is not a terminal.
- Untrusted text (LLM output, tool output) is never interpreted as markup.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, TextIO

from rich.console import Console
from rich.table import Table
from rich.text import Text

from dexter.plugins.base import DiffPreview, Preview, TextPreview

if TYPE_CHECKING:
    from collections.abc import Sequence


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean plain text when color is disabled and styled text
    otherwise. Respects ``NO_COLOR`` env var and ``--no-color`` flag.
    """

    def __init__(self, *, no_color: bool = False, stream: TextIO | None = None) -> None:
        out = stream if stream is not None else sys.stdout
        color = _color_allowed(no_color, out)
        self._console = Console(
            file=out,
            no_color=not color,
            highlight=False,
            emoji=False,
            force_terminal=color or None,
            soft_wrap=True,
        )

    @property
    def console(self) -> Console:
        return self._console

    def heading(self, text: str) -> None:
        self._console.print(text, style="bold", markup=False)

    def kv(self, key: str, value: object) -> None:
        self._console.print(f"{key}: {value}", markup=False)

    def text(self, line: str) -> None:
        self._console.print(line, markup=False)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._console.print()
        self._console.print(title, style="bold cyan", markup=False)

    def warning(self, text: str) -> None:
        self._console.print(f"Warning: {text}", style="yellow", markup=False)

    def error(self, text: str) -> None:
        self._console.print(text, style="bold red", markup=False)

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._console.print(f"  {prefix}{entry}", markup=False)

    def preview(self, preview: Preview) -> None:
        """Render a dry-run preview as text or as a rename table."""

        if isinstance(preview, TextPreview):
            self.text(preview.text)
            return
        assert isinstance(preview, DiffPreview)
        if not preview.items:
            self.text("No changes detected.")
            return
        table = Table(show_edge=False, header_style="bold")
        table.add_column("Original")
        table.add_column("New")
        table.add_column("Status")
        for item in preview.items:
            table.add_row(Text(item.original), Text(item.new), Text(item.status or ""))
        self._console.print(table)


def create_renderer(*, no_color: bool = False, stream: TextIO | None = None) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]
