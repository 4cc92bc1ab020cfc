"""UI package exports for CLI, rendering, and optional TUI surfaces."""

from dexter.ui.cli import build_parser, build_session, run_cli, run_headless
from dexter.ui.render import CLIRenderer, create_renderer
from dexter.ui.tui import run_tui, tui_available

__all__ = [
    "CLIRenderer",
    "build_parser",
    "build_session",
    "create_renderer",
    "run_cli",
    "run_headless",
    "run_tui",
    "tui_available",
]
