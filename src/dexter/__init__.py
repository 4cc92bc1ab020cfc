"""
dexter — package root

File: src/dexter/__init__.py
Last updated: 2026-10-19

Purpose
- Natural-language front end for media command-line tools.
- Routes a request to a tool plugin, synthesizes the command through an LLM
  with provider fallback, gates it for safety, previews it, then runs it.

Import boundary rules
- No side effects at import time (no config loading, no logging init).
- Keep heavy submodules (httpx clients, Textual) out of the package root.
"""

from __future__ import annotations

__version__ = "0.4.0"

__all__ = ["__version__"]
