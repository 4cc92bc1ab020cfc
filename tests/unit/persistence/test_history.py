"""
dexter — unit tests for the command history store

File: tests/unit/persistence/test_history.py
Last updated: 2026-10-19

Purpose
- Validate JSON-lines append, redaction on write and tolerant reads.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from dexter.persistence.history import (
    HISTORY_FILE_NAME,
    HistoryEntry,
    HistoryStore,
    default_history_path,
)
from dexter.security.redaction import REDACTED_MARKER


@pytest.mark.unit
class TestHistoryStore:
    def test_missing_file_reads_as_empty(self, tmp_path: Path) -> None:
        assert HistoryStore(tmp_path / "none.jsonl").load() == ([], 0)

    def test_append_then_load_preserves_order(self, tmp_path: Path) -> None:
        store = HistoryStore(tmp_path / "nested" / "history.jsonl")
        store.append("ffmpeg", "ffmpeg -i a.mov a.mp4")
        store.append("f2", "f2 -f a -r b -x")

        entries, skipped = store.load()
        assert skipped == 0
        assert [(e.plugin, e.command) for e in entries] == [
            ("ffmpeg", "ffmpeg -i a.mov a.mp4"),
            ("f2", "f2 -f a -r b -x"),
        ]
        assert entries[0].timestamp.endswith("+00:00")

    def test_secrets_are_redacted_before_writing(self, tmp_path: Path) -> None:
        store = HistoryStore(tmp_path / "history.jsonl")
        entry = store.append("yt-dlp", "yt-dlp --cookies secret.txt https://example.com/v")

        raw = store.path.read_text(encoding="utf-8")
        assert "secret.txt" not in raw
        assert entry.command == f"yt-dlp --cookies {REDACTED_MARKER} https://example.com/v"
        assert json.loads(raw.splitlines()[0])["plugin"] == "yt-dlp"

    def test_invalid_lines_are_skipped_and_counted(self, tmp_path: Path) -> None:
        path = tmp_path / "history.jsonl"
        good = json.dumps({"timestamp": "t", "plugin": "f2", "command": "f2 -u"})
        path.write_text(
            "\n".join(
                [
                    good,
                    "{not json",
                    "[1, 2]",
                    json.dumps({"timestamp": "t", "plugin": 3, "command": "x"}),
                    "",
                    good,
                ]
            ),
            encoding="utf-8",
        )
        entries, skipped = HistoryStore(path).load()
        assert entries == [HistoryEntry("t", "f2", "f2 -u")] * 2
        assert skipped == 3


@pytest.mark.unit
def test_default_path_follows_xdg_data_home(tmp_path: Path) -> None:
    path = default_history_path({"XDG_DATA_HOME": str(tmp_path)})
    assert path == tmp_path / "dexter" / HISTORY_FILE_NAME
