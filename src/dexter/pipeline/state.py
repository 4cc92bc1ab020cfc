"""Pipeline state: pure data, NO Textual imports.

File: src/dexter/pipeline/state.py

Owns the canonical state for the command pipeline. All mutations go through
``PipelineController``; views and the headless CLI read snapshots.
"""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field
from typing import Final, TypeAlias

from dexter.agents.router import ClarifyPayload
from dexter.llm.cache import CachePolicy
from dexter.plugins.base import Preview, Progress

MAX_LOG_LINES: Final[int] = 500

# ---------------------------------------------------------------------------
# States
# ---------------------------------------------------------------------------


class StateKind(enum.StrEnum):
    INPUT = "input"
    PENDING_ROUTING = "pending_routing"
    ROUTING = "routing"
    CLARIFYING = "clarifying"
    PENDING_GENERATION = "pending_generation"
    GENERATING = "generating"
    PENDING_DRY_RUN = "pending_dry_run"
    DRY_RUNNING = "dry_running"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    EDITING_COMMAND = "editing_command"
    EXECUTING = "executing"
    FINISHED = "finished"
    ERROR = "error"

    @property
    def is_processing(self) -> bool:
        return self in _PROCESSING_KINDS

    @property
    def is_terminal(self) -> bool:
        return self in (StateKind.FINISHED, StateKind.ERROR)


_PROCESSING_KINDS: Final[frozenset[StateKind]] = frozenset(
    {
        StateKind.PENDING_ROUTING,
        StateKind.ROUTING,
        StateKind.PENDING_GENERATION,
        StateKind.GENERATING,
        StateKind.PENDING_DRY_RUN,
        StateKind.DRY_RUNNING,
        StateKind.EXECUTING,
    }
)


@dataclass(frozen=True, slots=True)
class PipelineState:
    """One active pipeline state; only the field matching ``kind`` is populated."""

    kind: StateKind
    draft: str | None = None
    output: str | None = None
    message: str | None = None
    clarify: ClarifyPayload | None = None

    @classmethod
    def input(cls) -> PipelineState:
        return cls(StateKind.INPUT)

    @classmethod
    def of(cls, kind: StateKind) -> PipelineState:
        return cls(kind)

    @classmethod
    def editing(cls, draft: str) -> PipelineState:
        return cls(StateKind.EDITING_COMMAND, draft=draft)

    @classmethod
    def finished(cls, output: str) -> PipelineState:
        return cls(StateKind.FINISHED, output=output)

    @classmethod
    def error(cls, message: str) -> PipelineState:
        return cls(StateKind.ERROR, message=message)

    @classmethod
    def clarifying(cls, payload: ClarifyPayload) -> PipelineState:
        return cls(StateKind.CLARIFYING, clarify=payload)

    def __str__(self) -> str:
        return self.kind.value


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class PipelineAction(enum.StrEnum):
    SUBMIT = "submit"
    EXECUTE = "execute"
    EDIT_COMMAND = "edit_command"
    REGENERATE = "regenerate"
    BACK_TO_INPUT = "back_to_input"
    PREVIEW_EDITED = "preview_edited"
    CANCEL_EDIT = "cancel_edit"
    RETRY = "retry"
    RESET_TO_INPUT = "reset_to_input"
    CLEAR_INPUT = "clear_input"


@dataclass(frozen=True, slots=True)
class ClarifySelect:
    index: int


Action: TypeAlias = PipelineAction | ClarifySelect

# ---------------------------------------------------------------------------
# Model
# ---------------------------------------------------------------------------


@dataclass
class PipelineModel:
    """Root data object for one interactive session, mutated only by the controller."""

    state: PipelineState = field(default_factory=PipelineState.input)
    input_text: str = ""

    # Per-request data
    selected_plugin: str | None = None
    generated_command: str | None = None
    draft: str = ""
    preview: Preview | None = None
    notice: str | None = None
    clarify: ClarifyPayload | None = None
    pending_cache_policy: CachePolicy = CachePolicy.NORMAL
    current_progress: Progress | None = None

    # Transcript (ring buffer)
    logs: deque[str] = field(default_factory=lambda: deque(maxlen=MAX_LOG_LINES))
    logged_total: int = 0

    def push_log(self, message: str) -> None:
        self.logs.append(message)
        self.logged_total += 1

    def clear_request_data(self) -> None:
        self.generated_command = None
        self.draft = ""
        self.preview = None
        self.selected_plugin = None
        self.notice = None
        self.clarify = None
        self.pending_cache_policy = CachePolicy.NORMAL
        self.current_progress = None


__all__ = [
    "Action",
    "ClarifySelect",
    "MAX_LOG_LINES",
    "PipelineAction",
    "PipelineModel",
    "PipelineState",
    "StateKind",
]
