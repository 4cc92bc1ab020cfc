"""Process entrypoint: runs the CLI and turns escaped exceptions into exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    REJECTED = 1
    CONFIG_ERROR = 2
    PROVIDER_ERROR = 3
    INTERNAL_ERROR = 4


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Used by ``python -m dexter`` and the ``dexter`` console script."""

    try:
        from dexter.ui.cli import run_cli

        return _coerce_exit(run_cli(argv))
    except SystemExit as exc:
        return _coerce_exit(exc.code)
    except KeyboardInterrupt:
        _stderr_line("Interrupted.")
        return ExitCode.REJECTED
    except BaseException as exc:  # noqa: BLE001 - CLI boundary normalization.
        code = exit_code_for(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            _stderr_line(str(exc).strip() or type(exc).__name__)
        return code


def exit_code_for(exc: BaseException) -> ExitCode:
    """First matching class anywhere in the cause/context chain decides the code."""

    from dexter.config.loader import ConfigLoadError
    from dexter.config.schema import ConfigValidationError
    from dexter.llm.errors import AllTargetsExhaustedError, CompletionError, TargetConfigError
    from dexter.plugins.base import ExecutionFailure
    from dexter.security.safety_gate import SafetyRejection

    table: tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...] = (
        ((ConfigLoadError, ConfigValidationError, TargetConfigError), ExitCode.CONFIG_ERROR),
        ((CompletionError, AllTargetsExhaustedError), ExitCode.PROVIDER_ERROR),
        ((SafetyRejection, ExecutionFailure), ExitCode.REJECTED),
    )
    for link in _chain(exc):
        for types, code in table:
            if isinstance(link, types):
                return code
    return ExitCode.INTERNAL_ERROR


def _chain(exc: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        if current.__cause__ is not None:
            current = current.__cause__
        elif current.__suppress_context__:
            current = None
        else:
            current = current.__context__


def _coerce_exit(raw: object) -> int:
    if raw is None:
        return ExitCode.SUCCESS
    if isinstance(raw, int) and raw in {code.value for code in ExitCode}:
        return raw
    if isinstance(raw, str) and raw.strip():
        _stderr_line(raw.strip())
    return ExitCode.INTERNAL_ERROR


def _stderr_line(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for"]
