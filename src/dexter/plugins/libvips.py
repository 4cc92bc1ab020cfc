"""libvips plugin: ``vips`` image operations and ``vipsthumbnail`` batches."""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from typing import ClassVar, Final

from dexter.plugins.base import BasePlugin, ExecutionFailure, Progress, ProgressSender
from dexter.plugins.command_exec import (
    CommandParseError,
    output_or_placeholder,
    parse_and_validate_command,
    run_streaming,
)

PROGRAMS: Final[tuple[str, ...]] = ("vips", "vipsthumbnail")
ALLOWED_VIPS_OPERATIONS: Final[frozenset[str]] = frozenset(
    {
        "thumbnail",
        "resize",
        "crop",
        "rot",
        "flip",
        "flop",
        "autorot",
        "copy",
        "embed",
        "extract_area",
    }
)


def _has_output_option(argv: Sequence[str]) -> bool:
    for index, arg in enumerate(argv):
        if arg in ("-o", "--output"):
            if index + 1 < len(argv) and argv[index + 1].strip():
                return True
        if arg.startswith("--output=") and arg.removeprefix("--output=").strip():
            return True
    return False


def _validate_vips(argv: Sequence[str]) -> bool:
    if len(argv) < 4:
        return False
    return argv[1] in ALLOWED_VIPS_OPERATIONS


def _validate_vipsthumbnail(argv: Sequence[str]) -> bool:
    if len(argv) < 2:
        return False
    if any(arg == "-" for arg in argv):
        return False
    return _has_output_option(argv)


def validate_libvips_command(command: str) -> bool:
    try:
        argv = parse_and_validate_command(command, PROGRAMS)
    except CommandParseError:
        return False

    if any(arg.startswith("@") or "descriptor=" in arg for arg in argv):
        return False
    if argv[0] == "vips":
        return _validate_vips(argv)
    return _validate_vipsthumbnail(argv)


def progress_message(argv: Sequence[str]) -> str:
    if argv and argv[0] == "vips":
        operation = argv[1] if len(argv) > 1 else "operation"
        return f"Running libvips {operation} operation..."
    if argv and argv[0] == "vipsthumbnail":
        return "Generating thumbnails with libvips..."
    return "Running libvips command..."


class LibvipsPlugin(BasePlugin):
    name: ClassVar[str] = "libvips"
    program: ClassVar[str] = "vips"
    description: ClassVar[str] = (
        "High-performance image processing with vips/vipsthumbnail for resize, crop, "
        "rotate, and conversion workflows."
    )
    doc_for_router: ClassVar[str] = (
        "Best for fast image resize/crop/rotate/thumbnail/conversion workflows using vips "
        "or vipsthumbnail."
    )
    doc_for_executor: ClassVar[str] = """libvips Command Usage:
- Resize image: vips resize input.jpg output.jpg 0.5
- Smart thumbnail: vips thumbnail input.jpg output.jpg 512
- Crop region: vips crop input.jpg output.jpg 100 80 640 480
- Auto rotate by EXIF: vips autorot input.jpg output.jpg
- Batch thumbnail with output pattern: vipsthumbnail input.jpg -s 256 -o tn_%s.jpg

Safety Constraints:
1. Use `vips` with explicit operation and file paths, or `vipsthumbnail` with explicit `-o/--output`.
2. Do NOT use descriptor-based stdin/stdout forms like `[descriptor=0]`.
3. Limit `vips` operations to common image transforms: thumbnail/resize/crop/rot/flip/flop/autorot/copy/embed/extract_area.
4. Do NOT use shell redirection; keep all IO in command arguments."""
    install_hint: ClassVar[str] = (
        "Please install libvips tools manually:\n"
        "- macOS (brew): brew install vips\n"
        "- Debian/Ubuntu: sudo apt install libvips-tools"
    )

    specialist_role: ClassVar[str] = "Image Processing Specialist Agent"
    goal: ClassVar[str] = (
        "Your goal is to generate a valid `vips` or `vipsthumbnail` command for libvips."
    )
    hard_constraints: ClassVar[tuple[str, ...]] = (
        *BasePlugin.hard_constraints,
        "SAFE IO: Do NOT use descriptor-based stdin/stdout patterns (e.g. `[descriptor=0]`).",
        "vips SCOPE: If using `vips`, only use one of: `thumbnail`, `resize`, `crop`, `rot`, "
        "`flip`, `flop`, `autorot`, `copy`, `embed`, `extract_area`.",
        "vipsthumbnail OUTPUT: If using `vipsthumbnail`, include `-o/--output`.",
        "PRECISION: Treat file paths and filenames as literal strings from context.",
    )
    explainer_prompt: ClassVar[str | None] = (
        "You are a clear and concise command explainer for Dexter. Describe what this libvips "
        "command will do, including operation type (resize/crop/rotate/thumbnail), input "
        "files, output files, and sizing parameters. Output plain text only."
    )
    offline_preview_label: ClassVar[str] = "Executing image processing command"

    def validate_command(self, command: str) -> bool:
        return validate_libvips_command(command)

    def is_installed(self) -> bool:
        return any(shutil.which(program) is not None for program in PROGRAMS)

    async def execute_with_progress(self, command: str, progress: ProgressSender) -> str:
        try:
            argv = parse_and_validate_command(command, PROGRAMS)
        except CommandParseError as exc:
            raise ExecutionFailure(str(exc)) from exc
        if not validate_libvips_command(command):
            raise ExecutionFailure("Command failed libvips validation logic")

        await progress.send(Progress(percentage=None, message=progress_message(argv)))
        result = await run_streaming(argv)
        if not result.succeeded:
            raise ExecutionFailure(
                f"libvips error: {result.stdout}\n{result.stderr}",
                exit_code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
            )
        return output_or_placeholder(result.combined)


__all__ = [
    "ALLOWED_VIPS_OPERATIONS",
    "LibvipsPlugin",
    "progress_message",
    "validate_libvips_command",
]
