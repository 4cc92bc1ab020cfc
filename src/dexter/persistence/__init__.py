"""On-disk persistence: command history."""

from __future__ import annotations

from dexter.persistence.history import HistoryEntry, HistoryStore, default_history_path

__all__ = ["HistoryEntry", "HistoryStore", "default_history_path"]
