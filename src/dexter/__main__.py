"""Module entrypoint for ``python -m dexter``."""

from __future__ import annotations

from dexter.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
