"""TUI widgets: transcript, proposal panel and status line.

File: src/dexter/ui/tui/widgets.py

Widgets only render; they receive a ``PipelineModel`` snapshot and never
call the controller.
"""

from __future__ import annotations

from rich.style import Style
from rich.text import Text
from textual.app import ComposeResult
from textual.widget import Widget
from textual.widgets import RichLog, Static

from dexter.pipeline.state import PipelineModel, StateKind
from dexter.ui.tui.presenter import key_hints, proposal_text, status_text

_MAX_BUFFER_LINES = 2_000

_S_DEFAULT = Style(color="#c8cdd8")
_S_COMMAND = Style(color="#72c7ff", bold=True)
_S_ERROR = Style(color="#e05555")
_S_OK = Style(color="#4ec990")
_S_DIM = Style(color="#7f8aa3")


def _line_style(line: str) -> Style:
    lowered = line.lower()
    if "failed" in lowered or "error" in lowered:
        return _S_ERROR
    if line.startswith(("Executing [", "Generated command:", "Command edited:")):
        return _S_COMMAND
    if line.startswith("Execution completed"):
        return _S_OK
    if line.startswith("Context scanned"):
        return _S_DIM
    return _S_DEFAULT


class TranscriptWidget(Widget):
    """Append-only transcript of ``PipelineModel.logs`` backed by a RichLog."""

    DEFAULT_CSS = """
    TranscriptWidget {
        height: 1fr;
        width: 1fr;
    }
    #transcript-area {
        height: 1fr;
        background: #0b1020;
    }
    """

    def __init__(self, *, no_color: bool = False, **kwargs: object) -> None:
        super().__init__(**kwargs)  # type: ignore[arg-type]
        self._no_color = no_color
        self._rendered_total = 0

    def compose(self) -> ComposeResult:
        yield RichLog(
            max_lines=_MAX_BUFFER_LINES,
            wrap=True,
            markup=False,
            auto_scroll=True,
            id="transcript-area",
        )

    def sync(self, model: PipelineModel) -> None:
        """Write log lines added since the previous sync."""

        fresh = model.logged_total - self._rendered_total
        if fresh <= 0:
            return
        log = self.query_one("#transcript-area", RichLog)
        lines = list(model.logs)[-min(fresh, len(model.logs)) :]
        for line in lines:
            if self._no_color:
                log.write(Text(line))
            else:
                log.write(Text(line, style=_line_style(line)))
        self._rendered_total = model.logged_total


class ProposalPanel(Static):
    """Command, preview, clarify options, notice or final output."""

    DEFAULT_CSS = """
    ProposalPanel {
        height: auto;
        max-height: 50%;
        border: round #3fa9f5;
        padding: 0 1;
        overflow-y: auto;
    }
    ProposalPanel.-error {
        border: round #e05555;
    }
    """

    def update_from_model(self, model: PipelineModel) -> None:
        body = proposal_text(model)
        self.update(Text(body))
        self.set_class(model.state.kind is StateKind.ERROR, "-error")
        self.display = bool(body)


class StatusLine(Static):
    """Bottom bar: state, plugin, progress and key hints."""

    DEFAULT_CSS = """
    StatusLine {
        dock: bottom;
        height: 1;
        background: #0b1020;
        color: #7f8aa3;
        padding: 0 1;
    }
    """

    def update_from_model(self, model: PipelineModel, *, tick: int = 0) -> None:
        kind = model.state.kind
        self.update(Text(f"{status_text(model, tick=tick)}  ·  {key_hints(kind)}"))


__all__ = ["ProposalPanel", "StatusLine", "TranscriptWidget"]
