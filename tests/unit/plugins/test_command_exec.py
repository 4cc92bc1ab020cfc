"""
dexter — unit tests for plugin command parsing and streaming execution

File: tests/unit/plugins/test_command_exec.py
Last updated: 2026-10-19

Purpose
- Validate argv parsing, injection screening, percentage extraction and
  subprocess streaming.

Functional requirements
- Subprocess tests run the current interpreter, never a media tool.
"""

from __future__ import annotations

import asyncio
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from dexter.plugins.base import ExecutionFailure, Progress
from dexter.plugins.command_exec import (
    NO_OUTPUT_MESSAGE,
    CommandParseError,
    extract_percentage,
    output_or_placeholder,
    parse_and_validate_command,
    percentage_reporter,
    run_streaming,
)


@dataclass(slots=True)
class _RecordingSender:
    sent: list[Progress] = field(default_factory=list)

    async def send(self, progress: Progress) -> None:
        self.sent.append(progress)


@pytest.mark.unit
class TestParseAndValidate:
    def test_quoted_arguments_are_single_tokens(self) -> None:
        argv = parse_and_validate_command('f2 -f "my file" -r new', "f2")
        assert argv == ["f2", "-f", "my file", "-r", "new"]

    def test_accepts_any_of_several_programs(self) -> None:
        argv = parse_and_validate_command("vipsthumbnail a.jpg -o t.jpg", ("vips", "vipsthumbnail"))
        assert argv[0] == "vipsthumbnail"

    @pytest.mark.parametrize(
        ("command", "message"),
        [
            ("", "empty"),
            ("ffmpeg -i 'unterminated", "Invalid command syntax"),
            ("ls -la", "Unexpected command program"),
            ("ffmpeg -i a.mp4 b.mp4 ; ls", "Unsafe token"),
            ("ffmpeg -i $(whoami).mp4 b.mp4", "Unsafe token"),
            ("ffmpeg -i ${HOME}/a.mp4 b.mp4", "Unsafe token"),
            ("ffmpeg -i 'a|b.mp4' b.mp4", "Unsafe token"),
        ],
    )
    def test_rejections(self, command: str, message: str) -> None:
        with pytest.raises(CommandParseError, match=message):
            parse_and_validate_command(command, "ffmpeg")


@pytest.mark.unit
class TestPercentages:
    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("[download]  45.3% of 10.00MiB at 1.2MiB/s", 45.3),
            ("[download] 100% of 3.1MiB", 100.0),
            ("progress 7%", 7.0),
            ("999% impossible", 100.0),
            ("no number here", None),
        ],
    )
    def test_extract_percentage(self, line: str, expected: float | None) -> None:
        assert extract_percentage(line) == expected

    def test_reporter_formats_template(self) -> None:
        report = percentage_reporter("Downloading: {pct:.1f}%")("[download]  12.5% of 1MiB")
        assert report == Progress(percentage=12.5, message="Downloading: 12.5%")
        assert percentage_reporter("{pct}")("nothing") is None


@pytest.mark.unit
def test_output_placeholder_for_blank_output() -> None:
    assert output_or_placeholder("  \n") == NO_OUTPUT_MESSAGE
    assert output_or_placeholder("done") == "done"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_streaming_captures_both_streams_and_reports_lines() -> None:
    script = (
        "import sys\n"
        "print('10% done', flush=True)\n"
        "print('warming up', file=sys.stderr, flush=True)\n"
        "print('90% done', flush=True)\n"
    )
    sender = _RecordingSender()
    result = await run_streaming(
        [sys.executable, "-c", script],
        progress=sender,
        on_line=percentage_reporter("{pct:.0f}"),
    )
    assert result.succeeded
    assert result.stdout.splitlines() == ["10% done", "90% done"]
    assert "warming up" in result.stderr
    assert [p.percentage for p in sender.sent] == [10.0, 90.0]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_streaming_reports_nonzero_exit() -> None:
    result = await run_streaming(
        [sys.executable, "-c", "import sys; sys.stderr.write('bad'); sys.exit(3)"]
    )
    assert not result.succeeded
    assert result.exit_code == 3
    assert result.stderr == "bad"


@pytest.fixture
def unwritten_stdin() -> Iterator[None]:
    """Point fd 0 at a pipe nobody writes to, so an inherited stdin blocks."""

    read_fd, write_fd = os.pipe()
    saved = os.dup(0)
    os.dup2(read_fd, 0)
    try:
        yield
    finally:
        os.dup2(saved, 0)
        for fd in (saved, read_fd, write_fd):
            os.close(fd)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_run_streaming_child_reads_eof_from_stdin(unwritten_stdin: None) -> None:
    script = "import sys; print(repr(sys.stdin.readline()))"
    result = await asyncio.wait_for(run_streaming([sys.executable, "-c", script]), timeout=10)
    assert result.succeeded
    assert result.stdout.strip() == "''"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_program_is_execution_failure(tmp_path: Path) -> None:
    with pytest.raises(ExecutionFailure) as excinfo:
        await run_streaming([str(tmp_path / "definitely-not-a-tool")])
    assert excinfo.value.exit_code == 127
