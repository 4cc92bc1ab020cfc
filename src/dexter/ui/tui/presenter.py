"""Snapshot → text for the TUI. NO Textual imports.

File: src/dexter/ui/tui/presenter.py

Every string the view shows is derived here from a ``PipelineModel`` so the
rendering rules are unit-testable without a running App.
"""

from __future__ import annotations

from typing import Final

from dexter.pipeline.formatting import preview_to_log, progress_line
from dexter.pipeline.state import PipelineModel, StateKind

STATE_LABELS: Final[dict[StateKind, str]] = {
    StateKind.INPUT: "Ready",
    StateKind.PENDING_ROUTING: "Routing",
    StateKind.ROUTING: "Routing",
    StateKind.CLARIFYING: "Needs clarification",
    StateKind.PENDING_GENERATION: "Generating",
    StateKind.GENERATING: "Generating",
    StateKind.PENDING_DRY_RUN: "Previewing",
    StateKind.DRY_RUNNING: "Previewing",
    StateKind.AWAITING_CONFIRMATION: "Awaiting confirmation",
    StateKind.EDITING_COMMAND: "Editing command",
    StateKind.EXECUTING: "Executing",
    StateKind.FINISHED: "Finished",
    StateKind.ERROR: "Error",
}

_HINTS: Final[dict[StateKind, str]] = {
    StateKind.INPUT: "Enter submit · Ctrl+Q quit",
    StateKind.CLARIFYING: "1-9 choose option · Esc back · Ctrl+Q quit",
    StateKind.AWAITING_CONFIRMATION: (
        "Ctrl+E execute · Ctrl+D edit · Ctrl+R regenerate · Esc back"
    ),
    StateKind.EDITING_COMMAND: "Enter preview edited command · Esc cancel",
    StateKind.FINISHED: "Ctrl+T run again · Esc new request",
    StateKind.ERROR: "Ctrl+T retry · Esc new request",
}

_SPINNER: Final[str] = "⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏"


def state_label(kind: StateKind) -> str:
    return STATE_LABELS[kind]


def key_hints(kind: StateKind) -> str:
    return _HINTS.get(kind, "Working… · Ctrl+Q quit")


def spinner_frame(tick: int) -> str:
    return _SPINNER[tick % len(_SPINNER)]


def status_text(model: PipelineModel, *, tick: int = 0) -> str:
    """One-line status: state, selected plugin and progress."""

    kind = model.state.kind
    parts = [state_label(kind)]
    if kind.is_processing:
        parts[0] = f"{spinner_frame(tick)} {parts[0]}"
    if model.selected_plugin is not None:
        parts.append(f"plugin: {model.selected_plugin}")
    if model.current_progress is not None:
        parts.append(progress_line(model.current_progress))
    return " | ".join(parts)


def proposal_text(model: PipelineModel) -> str:
    """Body of the proposal panel for the current state."""

    state = model.state
    kind = state.kind
    if kind is StateKind.CLARIFYING and state.clarify is not None:
        lines = [state.clarify.question, ""]
        for index, option in enumerate(state.clarify.options[:9], start=1):
            lines.append(f"{index}. {option.label}")
            if option.detail:
                lines.append(f"   {option.detail}")
        return "\n".join(lines)
    if kind is StateKind.ERROR:
        return state.message or ""
    if kind is StateKind.FINISHED:
        return state.output or ""
    if kind is StateKind.INPUT:
        return model.notice or ""

    lines: list[str] = []
    if model.generated_command is not None:
        lines.append(f"$ {model.generated_command}")
    if model.preview is not None:
        lines.extend(["", preview_to_log(model.preview)])
    return "\n".join(lines)


__all__ = [
    "STATE_LABELS",
    "key_hints",
    "proposal_text",
    "spinner_frame",
    "state_label",
    "status_text",
]
