"""FFmpeg plugin: media conversion with ``Duration``/``time=`` progress tracking."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import ClassVar, Final

from dexter.plugins.base import BasePlugin, ExecutionFailure, Progress, ProgressSender
from dexter.plugins.command_exec import (
    CommandParseError,
    contains_arg,
    output_or_placeholder,
    parse_and_validate_command,
    run_streaming,
)

DURATION_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)"
)
TIME_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\b(?:out_)?time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)"
)
PROGRESS_ARGS: Final[tuple[str, ...]] = ("-progress", "pipe:1", "-nostats")
_PROGRESS_KEY = re.compile(r"^[a-z_]+=\S*$")


def validate_ffmpeg_command(command: str) -> bool:
    if not command.strip().startswith("ffmpeg "):
        return False
    try:
        argv = parse_and_validate_command(command, "ffmpeg")
    except CommandParseError:
        return False
    return contains_arg(argv, "-i")


def _seconds(match: re.Match[str]) -> float:
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def _clock(seconds: float) -> str:
    whole = int(seconds)
    return f"{whole // 3600:02d}:{whole % 3600 // 60:02d}:{whole % 60:02d}"


class FfmpegProgressTracker:
    """Stateful line handler: remembers the input duration, reports elapsed time."""

    def __init__(self) -> None:
        self.duration: float | None = None

    def __call__(self, line: str) -> Progress | None:
        duration = DURATION_PATTERN.search(line)
        if duration is not None:
            self.duration = _seconds(duration)
            return None

        elapsed_match = TIME_PATTERN.search(line)
        if elapsed_match is None:
            return None
        elapsed = _seconds(elapsed_match)
        if not self.duration:
            return Progress(percentage=None, message=f"Processing: {_clock(elapsed)}")
        pct = max(0.0, min(100.0, elapsed / self.duration * 100.0))
        return Progress(
            percentage=pct,
            message=f"Processing: {_clock(elapsed)} / {_clock(self.duration)}",
        )


def execution_argv(argv: Sequence[str]) -> list[str]:
    final = list(argv)
    if not contains_arg(final, "-progress"):
        final[1:1] = PROGRESS_ARGS
    return final


def _strip_progress_lines(text: str) -> str:
    kept = [line for line in text.splitlines() if not _PROGRESS_KEY.match(line.strip())]
    return "\n".join(kept)


class FfmpegPlugin(BasePlugin):
    name: ClassVar[str] = "ffmpeg"
    program: ClassVar[str] = "ffmpeg"
    description: ClassVar[str] = (
        "A complete, cross-platform solution to record, convert and stream audio and video."
    )
    doc_for_router: ClassVar[str] = (
        "Best for video/audio conversion, resizing, extracting audio, and complex media "
        "processing."
    )
    doc_for_executor: ClassVar[str] = """ffmpeg Command Usage:
- Convert video format: ffmpeg -i input.mp4 output.mkv
- Extract audio: ffmpeg -i input.mp4 -vn -acodec libmp3lame output.mp3
- Change resolution: ffmpeg -i input.mp4 -vf scale=1280:720 output_720p.mp4
- Fast seek and clip: ffmpeg -ss 00:00:10 -i input.mp4 -t 00:00:30 -c copy output.mp4
- Compress video: ffmpeg -i input.mp4 -vcodec libx265 -crf 28 output.mp4

Important: Always specify the input with -i and the output file at the end."""
    install_hint: ClassVar[str] = "Please install ffmpeg manually: 'brew install ffmpeg'"

    specialist_role: ClassVar[str] = "Media Specialist Agent"
    goal: ClassVar[str] = "Your goal is to generate a valid `ffmpeg` command."
    hard_constraints: ClassVar[tuple[str, ...]] = (
        *BasePlugin.hard_constraints,
        "INPUT: Always specify the input with `-i` and put the output file last.",
        "PRECISION: Treat filenames as literal strings; use exact characters from context.",
    )
    explainer_prompt: ClassVar[str | None] = (
        "You are a playful but precise command explainer for Dexter. Describe what this "
        "FFmpeg command will do in simple terms. Mention input, output, and key "
        "transformations. Output plain text only."
    )
    offline_preview_label: ClassVar[str] = "Executing media command"

    def validate_command(self, command: str) -> bool:
        return validate_ffmpeg_command(command)

    async def execute_with_progress(self, command: str, progress: ProgressSender) -> str:
        try:
            argv = parse_and_validate_command(command, "ffmpeg")
        except CommandParseError as exc:
            raise ExecutionFailure(str(exc)) from exc

        await progress.send(Progress(percentage=0.0, message="Starting ffmpeg..."))
        result = await run_streaming(
            execution_argv(argv),
            progress=progress,
            on_line=FfmpegProgressTracker(),
        )
        if not result.succeeded:
            raise ExecutionFailure(
                f"ffmpeg error:\n{result.stderr}",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return output_or_placeholder(_strip_progress_lines(result.stdout))


__all__ = [
    "FfmpegPlugin",
    "FfmpegProgressTracker",
    "execution_argv",
    "validate_ffmpeg_command",
]
