"""
dexter — command history store

File: src/dexter/persistence/history.py
Last updated: 2026-10-19

Purpose
- Append executed commands to a JSON-lines file and read them back.

Functional requirements
- Commands are redacted before they touch disk.
- ``load`` tolerates corrupt lines: they are counted and skipped, never fatal.
- A missing history file reads as empty.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

import structlog

from dexter.constants import APP_NAME
from dexter.security.redaction import redact_sensitive_text

HISTORY_FILE_NAME = "history.jsonl"

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class HistoryEntry:
    timestamp: str
    plugin: str
    command: str

    @classmethod
    def from_mapping(cls, raw: Mapping[str, object]) -> HistoryEntry:
        fields = {}
        for name in ("timestamp", "plugin", "command"):
            value = raw.get(name)
            if not isinstance(value, str):
                raise ValueError(f"history field {name!r} must be a string")
            fields[name] = value
        return cls(**fields)


def default_history_path(environ: Mapping[str, str] | None = None) -> Path:
    env = os.environ if environ is None else environ
    data_home = env.get("XDG_DATA_HOME", "").strip()
    base = Path(data_home) if data_home else Path.home() / ".local" / "share"
    return base / APP_NAME / HISTORY_FILE_NAME


class HistoryStore:
    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else default_history_path()

    @property
    def path(self) -> Path:
        return self._path

    def append(self, plugin: str, command: str) -> HistoryEntry:
        entry = HistoryEntry(
            timestamp=datetime.now(UTC).isoformat(),
            plugin=plugin,
            command=redact_sensitive_text(command),
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(asdict(entry), ensure_ascii=False, separators=(",", ":"))
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(line + "\n")
        return entry

    def load(self) -> tuple[list[HistoryEntry], int]:
        """Return ``(entries, skipped_lines)`` in file order."""

        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return [], 0

        entries: list[HistoryEntry] = []
        skipped = 0
        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line:
                continue
            try:
                payload = json.loads(line)
                if not isinstance(payload, Mapping):
                    raise ValueError("history line is not an object")
                entries.append(HistoryEntry.from_mapping(payload))
            except ValueError:
                skipped += 1

        if skipped:
            logger.warning("history_lines_skipped", skipped=skipped, path=str(self._path))
        return entries, skipped


__all__ = ["HISTORY_FILE_NAME", "HistoryEntry", "HistoryStore", "default_history_path"]
