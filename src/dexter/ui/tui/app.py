"""Main Textual App: view layer that renders state and emits intents.

File: src/dexter/ui/tui/app.py

This is the top-level Textual App. It:
- Composes the layout (header, transcript, proposal panel, status line, input)
- Wires key bindings and input events to controller actions
- Ticks the controller on a timer and re-renders after every change

All pipeline logic lives in ``PipelineController``; this file only does
rendering.
"""

from __future__ import annotations

import os
from collections.abc import Awaitable, Callable, Sequence

from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.css.query import NoMatches
from textual.widgets import Header, Input

from dexter.constants import POLL_INTERVAL_BUSY
from dexter.pipeline.controller import PipelineController
from dexter.pipeline.state import ClarifySelect, PipelineAction, StateKind
from dexter.ui.tui.widgets import ProposalPanel, StatusLine, TranscriptWidget

Closer = Callable[[], Awaitable[None]]

_EDITABLE_KINDS = frozenset({StateKind.INPUT, StateKind.EDITING_COMMAND})

_CSS_NO_COLOR = """
Screen { background: black; color: white; }
ProposalPanel { border: round white; }
StatusLine { background: black; color: white; }
"""


class DexterApp(App[int]):
    """Interactive front end for the command pipeline."""

    TITLE = "dexter"
    SUB_TITLE = "natural language → media commands"

    BINDINGS = [
        Binding("ctrl+e", "pipeline('execute')", "Execute", priority=True),
        Binding("ctrl+r", "pipeline('regenerate')", "Regenerate", priority=True),
        Binding("ctrl+d", "pipeline('edit_command')", "Edit", priority=True),
        Binding("ctrl+t", "retry", "Retry", priority=True),
        Binding("escape", "back", "Back", priority=True),
        Binding("ctrl+q", "quit_app", "Quit", priority=True),
        *(
            Binding(str(number), f"clarify({number - 1})", show=False)
            for number in range(1, 10)
        ),
    ]

    def __init__(
        self,
        controller: PipelineController,
        *,
        no_color: bool = False,
        closers: Sequence[Closer] = (),
    ) -> None:
        self._no_color = no_color or bool(os.environ.get("NO_COLOR", ""))
        super().__init__()
        self._controller = controller
        self._closers = tuple(closers)
        self._tick = 0
        self._last_kind = controller.state.kind

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def compose(self) -> ComposeResult:
        yield Header(show_clock=False)
        yield TranscriptWidget(no_color=self._no_color, id="transcript")
        yield ProposalPanel("", id="proposal")
        yield Input(placeholder="Describe what you want to do…", id="composer")
        yield StatusLine("", id="status")

    @property
    def composer(self) -> Input:
        return self.query_one("#composer", Input)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_mount(self) -> None:
        self._controller.bind_view(self._render_state)
        self._controller.model.push_log(
            "Welcome to dexter. Describe a conversion, rename or download."
        )
        self.set_interval(POLL_INTERVAL_BUSY, self._pump)
        self._render_state()
        self.composer.focus()

    async def on_unmount(self) -> None:
        self._controller.bind_view(None)
        await self._controller.aclose()
        for closer in self._closers:
            await closer()

    async def _pump(self) -> None:
        self._tick += 1
        changed = await self._controller.pump()
        if not changed and self._controller.is_processing:
            self._render_status()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _render_state(self) -> None:
        model = self._controller.model
        kind = model.state.kind
        try:
            self.query_one(TranscriptWidget).sync(model)
            self.query_one(ProposalPanel).update_from_model(model)
        except NoMatches:
            return
        self._render_status()
        self._sync_composer(kind)
        self._last_kind = kind

    def _render_status(self) -> None:
        try:
            self.query_one(StatusLine).update_from_model(self._controller.model, tick=self._tick)
        except NoMatches:
            return

    def _sync_composer(self, kind: StateKind) -> None:
        composer = self.composer
        composer.disabled = kind not in _EDITABLE_KINDS
        if kind is self._last_kind:
            return
        if kind is StateKind.EDITING_COMMAND:
            composer.value = self._controller.model.draft
        elif kind is StateKind.INPUT:
            composer.value = self._controller.model.input_text
        if not composer.disabled:
            composer.focus()

    # ------------------------------------------------------------------
    # Input events
    # ------------------------------------------------------------------

    def on_input_changed(self, event: Input.Changed) -> None:
        model = self._controller.model
        kind = model.state.kind
        # Programmatic syncs echo back as Changed events; only real edits count.
        if kind is StateKind.INPUT and event.value != model.input_text:
            self._controller.set_input(event.value)
        elif kind is StateKind.EDITING_COMMAND and event.value != model.draft:
            self._controller.update_draft(event.value)

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        kind = self._controller.state.kind
        if kind is StateKind.INPUT:
            self._controller.set_input(event.value)
            await self._controller.dispatch(PipelineAction.SUBMIT)
        elif kind is StateKind.EDITING_COMMAND:
            self._controller.update_draft(event.value)
            await self._controller.dispatch(PipelineAction.PREVIEW_EDITED)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def action_pipeline(self, action: str) -> None:
        await self._controller.dispatch(PipelineAction(action))

    async def action_clarify(self, index: int) -> None:
        await self._controller.dispatch(ClarifySelect(index))

    async def action_retry(self) -> None:
        await self._controller.dispatch(PipelineAction.RETRY)

    async def action_back(self) -> None:
        kind = self._controller.state.kind
        if kind is StateKind.EDITING_COMMAND:
            await self._controller.dispatch(PipelineAction.CANCEL_EDIT)
        elif kind in (StateKind.FINISHED, StateKind.ERROR):
            await self._controller.dispatch(PipelineAction.RESET_TO_INPUT)
        elif kind is StateKind.INPUT:
            await self._controller.dispatch(PipelineAction.CLEAR_INPUT)
            self.composer.value = ""
        else:
            await self._controller.dispatch(PipelineAction.BACK_TO_INPUT)

    def action_quit_app(self) -> None:
        self.exit(0)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def run_tui_app(
    controller: PipelineController,
    *,
    no_color: bool = False,
    closers: Sequence[Closer] = (),
) -> int:
    """Create and run the TUI app, returning exit code."""

    effective_no_color = no_color or bool(os.environ.get("NO_COLOR", ""))
    DexterApp.CSS = _CSS_NO_COLOR if effective_no_color else ""
    app = DexterApp(controller, no_color=effective_no_color, closers=closers)
    result = app.run()
    return result if isinstance(result, int) else 0


__all__ = ["DexterApp", "run_tui_app"]
