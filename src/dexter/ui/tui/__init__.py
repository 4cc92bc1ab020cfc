"""Textual front end: presenter (pure) / widgets / app.

Exposes ``tui_available()`` and ``run_tui()`` for the CLI. Textual is an
optional dependency, so nothing here imports it at module load.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from importlib.util import find_spec
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dexter.pipeline.controller import PipelineController
    from dexter.ui.tui.app import Closer

TUI_INSTALL_HINT = "The TUI requires an optional dependency. Install: pip install 'dexter-cli[tui]'"


def tui_available() -> bool:
    """Return whether optional TUI dependencies are available in this environment."""
    return find_spec("textual") is not None


def run_tui(
    controller: PipelineController,
    *,
    no_color: bool = False,
    closers: Sequence[Closer] = (),
) -> int:
    """Run the interactive TUI, or exit with code 2 and install hint if unavailable."""
    if not tui_available():
        print(TUI_INSTALL_HINT, file=sys.stderr)
        return 2

    from dexter.ui.tui.app import run_tui_app

    return run_tui_app(controller, no_color=no_color, closers=closers)


__all__ = ["TUI_INSTALL_HINT", "run_tui", "tui_available"]
