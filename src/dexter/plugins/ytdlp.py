"""yt-dlp plugin: downloads with ``--newline`` percentage progress."""

from __future__ import annotations

from typing import ClassVar, Final

from dexter.plugins.base import BasePlugin, ExecutionFailure, ProgressSender
from dexter.plugins.command_exec import (
    CommandParseError,
    contains_arg,
    output_or_placeholder,
    parse_and_validate_command,
    percentage_reporter,
    run_streaming,
)

PROGRAM: Final[str] = "yt-dlp"
BANNED_TOKENS: Final[tuple[str, ...]] = ("&&", "||", ";", "|", "`", "$(")
PROGRESS_TEMPLATE: Final[str] = "Downloading: {pct:.1f}%"


def validate_ytdlp_command(command: str) -> bool:
    trimmed = command.strip()
    if not trimmed.startswith(f"{PROGRAM} "):
        return False
    if "--exec" in trimmed:
        return False
    return not any(token in trimmed for token in BANNED_TOKENS)


class YtDlpPlugin(BasePlugin):
    name: ClassVar[str] = PROGRAM
    program: ClassVar[str] = PROGRAM
    description: ClassVar[str] = (
        "A feature-rich video/audio downloader with format selection and audio extraction."
    )
    doc_for_router: ClassVar[str] = (
        "Best for downloading videos or audio from supported sites, extracting audio, and "
        "choosing formats."
    )
    doc_for_executor: ClassVar[str] = """yt-dlp Command Usage:
- Download best available: yt-dlp "https://example.com/video"
- Save with template: yt-dlp -o "%(title)s.%(ext)s" "https://example.com/video"
- Choose format: yt-dlp -f "bv*+ba/b" "https://example.com/video"
- Extract audio to mp3: yt-dlp -x --audio-format mp3 "https://example.com/video"
- Download playlist: yt-dlp -o "%(playlist_index)s - %(title)s.%(ext)s" "https://example.com/playlist"
- Use cookies: yt-dlp --cookies cookies.txt "https://example.com/video"
- Force single video from a playlist: yt-dlp --no-playlist "https://example.com/video"

Notes:
1. Prefer -o for output naming instead of shell redirection.
2. Use --newline for line-by-line progress (Dexter may add it automatically).
3. Do NOT use --exec (blocked for safety)."""
    install_hint: ClassVar[str] = (
        "Please install yt-dlp manually:\n"
        "- macOS (brew): brew install yt-dlp\n"
        "- pipx: pipx install yt-dlp\n"
        "- pip: pip install -U yt-dlp\n"
        "- Debian/Ubuntu: sudo apt install yt-dlp"
    )

    specialist_role: ClassVar[str] = "Download Specialist Agent"
    goal: ClassVar[str] = "Your goal is to generate a valid `yt-dlp` command."
    hard_constraints: ClassVar[tuple[str, ...]] = (
        *BasePlugin.hard_constraints,
        "NO --exec: This flag is blocked and must never appear.",
        "DEFAULTS: Do NOT add `--no-playlist` unless the user explicitly requests a single "
        "video.",
        "PRECISION: Treat URLs and filenames as literal strings; use exact characters from "
        "context.",
        "NO --newline: Dexter will add `--newline` during execution if needed.",
    )
    explainer_prompt: ClassVar[str | None] = (
        "You are a clear and concise command explainer for Dexter. Describe what this yt-dlp "
        "command will do in simple terms. Mention source URL(s), output naming, and key "
        "options. Output plain text only."
    )
    offline_preview_label: ClassVar[str] = "Executing download command"

    def validate_command(self, command: str) -> bool:
        return validate_ytdlp_command(command)

    async def execute_with_progress(self, command: str, progress: ProgressSender) -> str:
        try:
            argv = parse_and_validate_command(command, PROGRAM)
        except CommandParseError as exc:
            raise ExecutionFailure(str(exc)) from exc
        if not contains_arg(argv, "--newline"):
            argv.append("--newline")

        result = await run_streaming(
            argv,
            progress=progress,
            on_line=percentage_reporter(PROGRESS_TEMPLATE),
        )
        if not result.succeeded:
            raise ExecutionFailure(
                f"yt-dlp error:\n{result.stderr}",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return output_or_placeholder(f"{result.stdout}\n{result.stderr}")


__all__ = ["YtDlpPlugin", "validate_ytdlp_command"]
