"""Working-directory snapshot handed to the router and the command generator."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from dexter.constants import CONTEXT_MAX_FILES, CONTEXT_SUMMARY_TOP_FILES


@dataclass(frozen=True, slots=True)
class FileContext:
    files: tuple[str, ...] = ()
    summary: str | None = None

    def for_router(self) -> str:
        if self.summary is not None:
            return self.summary
        return ", ".join(self.files)

    def for_executor(self) -> str:
        if self.summary is not None:
            return self.summary
        return numbered(self.files)


def numbered(names: tuple[str, ...] | list[str]) -> str:
    return "\n".join(f"{index}. {name}" for index, name in enumerate(names, start=1))


def scan_directory(path: str | Path | None = None) -> FileContext:
    """List non-hidden regular files in ``path`` (default: cwd), summarizing large dirs."""

    root = Path.cwd() if path is None else Path(path)
    files: list[str] = []
    dir_count = 0
    for entry in root.iterdir():
        if entry.is_dir():
            dir_count += 1
        elif entry.is_file() and not entry.name.startswith("."):
            files.append(entry.name)
    files.sort()

    if len(files) <= CONTEXT_MAX_FILES:
        return FileContext(files=tuple(files))

    summary = (
        f"Directory contains {len(files)} files and {dir_count} subdirectories.\n"
        f"Top {CONTEXT_SUMMARY_TOP_FILES} files:\n"
        f"{numbered(files[:CONTEXT_SUMMARY_TOP_FILES])}"
    )
    return FileContext(files=tuple(files[:CONTEXT_MAX_FILES]), summary=summary)


__all__ = ["FileContext", "numbered", "scan_directory"]
