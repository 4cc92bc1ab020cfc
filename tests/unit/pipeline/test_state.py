"""Unit tests for pipeline state values and plain-text formatting helpers."""

from __future__ import annotations

import pytest

from dexter.agents.context import FileContext
from dexter.agents.router import ClarifyOption
from dexter.llm.cache import CachePolicy
from dexter.pipeline.formatting import (
    NO_CHANGES_MESSAGE,
    format_clarify_block,
    format_context_lines,
    preview_to_log,
    progress_line,
)
from dexter.pipeline.state import MAX_LOG_LINES, PipelineModel, PipelineState, StateKind
from dexter.plugins.base import DiffItem, DiffPreview, Progress, TextPreview


@pytest.mark.unit
class TestStateKind:
    @pytest.mark.parametrize(
        "kind",
        [
            StateKind.PENDING_ROUTING,
            StateKind.ROUTING,
            StateKind.PENDING_GENERATION,
            StateKind.GENERATING,
            StateKind.PENDING_DRY_RUN,
            StateKind.DRY_RUNNING,
            StateKind.EXECUTING,
        ],
    )
    def test_processing_kinds(self, kind: StateKind) -> None:
        assert kind.is_processing
        assert not kind.is_terminal

    @pytest.mark.parametrize(
        "kind",
        [StateKind.INPUT, StateKind.CLARIFYING, StateKind.AWAITING_CONFIRMATION, StateKind.EDITING_COMMAND],
    )
    def test_interactive_kinds_are_idle(self, kind: StateKind) -> None:
        assert not kind.is_processing

    def test_terminal_kinds(self) -> None:
        assert StateKind.FINISHED.is_terminal
        assert StateKind.ERROR.is_terminal


@pytest.mark.unit
class TestPipelineModel:
    def test_defaults(self) -> None:
        model = PipelineModel()
        assert model.state == PipelineState.input()
        assert str(model.state) == "input"
        assert model.pending_cache_policy is CachePolicy.NORMAL

    def test_log_ring_buffer_keeps_total(self) -> None:
        model = PipelineModel()
        for index in range(MAX_LOG_LINES + 3):
            model.push_log(f"line {index}")
        assert len(model.logs) == MAX_LOG_LINES
        assert model.logs[0] == "line 3"
        assert model.logged_total == MAX_LOG_LINES + 3

    def test_clear_request_data_keeps_input_text(self) -> None:
        model = PipelineModel(input_text="keep me")
        model.generated_command = "ffmpeg -i a b"
        model.notice = "n"
        model.pending_cache_policy = CachePolicy.BYPASS
        model.clear_request_data()
        assert model.input_text == "keep me"
        assert model.generated_command is None
        assert model.notice is None
        assert model.pending_cache_policy is CachePolicy.NORMAL


@pytest.mark.unit
class TestFormatting:
    def test_text_preview_logs_verbatim(self) -> None:
        assert preview_to_log(TextPreview("converts a to b")) == "converts a to b"

    def test_empty_diff_preview(self) -> None:
        assert preview_to_log(DiffPreview()) == NO_CHANGES_MESSAGE

    def test_diff_preview_lists_files(self) -> None:
        text = preview_to_log(
            DiffPreview(items=(DiffItem("a.jpeg", "a.jpg", "ok"), DiffItem("b.jpeg", "b.jpg")))
        )
        assert text.splitlines()[:4] == ["FILE 01", "status=ok", "old=a.jpeg", "new=a.jpg"]
        assert "FILE 02\nold=b.jpeg\nnew=b.jpg" in text

    def test_clarify_block(self) -> None:
        option = ClarifyOption(id="a", label="Resize", detail="half size", resolved_intent="resize a.jpg")
        block = format_clarify_block("Which?", (option,))
        assert block.splitlines()[:5] == [
            "question=Which?",
            "option.id=a",
            "option.label=Resize",
            "option.detail=half size",
            "option.resolved_intent=resize a.jpg",
        ]

    def test_progress_line(self) -> None:
        assert progress_line(Progress(12.345, "Downloading")) == "12.3% Downloading"
        assert progress_line(Progress(None, "Renaming")) == "Renaming"

    def test_context_lines(self) -> None:
        assert format_context_lines(FileContext()) == "No non-hidden files found in current directory."
        text = format_context_lines(FileContext(files=("a.jpg",), summary="big dir"))
        assert text.splitlines() == ["File count: 1", "01. a.jpg", "Summary: big dir"]
