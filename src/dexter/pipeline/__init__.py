"""Request pipeline: states, channels and the controller that drives them."""

from __future__ import annotations

from dexter.pipeline.channels import ChannelClosedError, OneShot, ProgressChannel, TaskSpawner
from dexter.pipeline.controller import PipelineController, StateCallback, unsupported_notice
from dexter.pipeline.formatting import (
    NO_CHANGES_MESSAGE,
    format_clarify_block,
    format_context_lines,
    preview_to_log,
    progress_line,
)
from dexter.pipeline.state import (
    Action,
    ClarifySelect,
    PipelineAction,
    PipelineModel,
    PipelineState,
    StateKind,
)

__all__ = [
    "Action",
    "ChannelClosedError",
    "ClarifySelect",
    "NO_CHANGES_MESSAGE",
    "OneShot",
    "PipelineAction",
    "PipelineController",
    "PipelineModel",
    "PipelineState",
    "ProgressChannel",
    "StateCallback",
    "StateKind",
    "TaskSpawner",
    "format_clarify_block",
    "format_context_lines",
    "preview_to_log",
    "progress_line",
    "unsupported_notice",
]
