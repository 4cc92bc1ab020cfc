"""Command-line interface router for dexter."""

from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from dexter import __version__
from dexter.agents.generator import CommandGenerator
from dexter.agents.router import LlmRouter
from dexter.config import (
    PipelineRole,
    dump_effective_config,
    load_config,
    settings_from_config,
)
from dexter.config.loader import default_config_path
from dexter.config.providers import DexterSettings
from dexter.llm.client import CompletionClient
from dexter.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    configure_structlog,
    setup_structured_logging,
    shutdown_logging,
)
from dexter.persistence.history import HistoryStore
from dexter.pipeline.controller import PipelineController
from dexter.pipeline.formatting import progress_line
from dexter.pipeline.state import ClarifySelect, PipelineAction, StateKind
from dexter.plugins import default_catalog
from dexter.ui.render import CLIRenderer, create_renderer

CONFIRM_PROMPT: Final[str] = "Execute? [y/N] "
_YES: Final[frozenset[str]] = frozenset({"y", "yes"})

Prompt = Callable[[str], str]


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class Session:
    """A wired controller plus the clients it owns."""

    controller: PipelineController
    clients: tuple[CompletionClient, ...] = field(default_factory=tuple)

    async def aclose(self) -> None:
        await self.controller.aclose()
        for client in self.clients:
            await client.aclose()


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="dexter",
        description=(
            "dexter: natural-language front end for media command-line tools.\n\n"
            "Common workflows:\n"
            '  dexter run "convert clip.mov to mp4"   Route, preview and run a request\n'
            "  dexter models --role router           List models the providers expose\n"
            "  dexter config --show                  Show the effective config\n"
            "  dexter tui                            Launch the interactive UI\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to the TOML config (default: $XDG_CONFIG_HOME/dexter/config.toml).",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command")

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Route, preview and execute one request without the TUI",
        description=(
            "Run the whole pipeline for one request.\n\n"
            "Examples:\n"
            '  dexter run "convert every .mov here to mp4"\n'
            '  dexter run "rename photos to lowercase" --preview-only\n'
            '  dexter run "download https://example.com/v" --yes\n'
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument("request", nargs="+", help="Natural-language request")
    run_parser.add_argument(
        "--yes", "-y", action="store_true", help="Execute without asking for confirmation"
    )
    run_parser.add_argument(
        "--preview-only", action="store_true", help="Stop after showing the dry-run preview"
    )
    run_parser.set_defaults(handler=_cmd_run)

    # models --------------------------------------------------------------
    models_parser = subparsers.add_parser(
        "models",
        parents=[common],
        help="List models available from the configured providers",
    )
    models_parser.add_argument(
        "--role",
        choices=[role.value for role in PipelineRole],
        default=PipelineRole.EXECUTOR.value,
        help="Which role's fallback targets to query (default: executor)",
    )
    models_parser.set_defaults(handler=_cmd_models)

    # config --------------------------------------------------------------
    config_parser = subparsers.add_parser(
        "config",
        parents=[common],
        help="Show the config path or the redacted effective config",
    )
    config_parser.add_argument(
        "--show", action="store_true", help="Print the redacted effective config as JSON"
    )
    config_parser.set_defaults(handler=_cmd_config)

    # history -------------------------------------------------------------
    history_parser = subparsers.add_parser(
        "history",
        parents=[common],
        help="Show recently executed commands",
    )
    history_parser.add_argument(
        "--limit", type=int, default=20, help="Number of entries to show (default: 20)"
    )
    history_parser.set_defaults(handler=_cmd_history)

    # tui -----------------------------------------------------------------
    tui_parser = subparsers.add_parser(
        "tui",
        parents=[common],
        help="Launch the interactive TUI",
    )
    tui_parser.set_defaults(handler=_cmd_tui)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    configure_structlog()
    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        if sys.stdout.isatty() and sys.stdin.isatty():
            namespace = parser.parse_args(["tui"])
            handler = _cmd_tui
        else:
            parser.print_help(sys.stderr)
            return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging()
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _start_logging(config)
    settings = settings_from_config(config)
    renderer = _get_renderer(args)
    request = " ".join(args.request).strip()
    if not request:
        raise CLIError("request must not be empty", exit_code=2)

    async def _main() -> int:
        session = build_session(settings)
        try:
            return await run_headless(
                session.controller,
                request,
                renderer=renderer,
                assume_yes=bool(args.yes),
                preview_only=bool(args.preview_only),
            )
        finally:
            await session.aclose()

    return asyncio.run(_main())


def _cmd_models(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    _start_logging(config)
    settings = settings_from_config(config)
    role = PipelineRole(args.role)
    renderer = _get_renderer(args)

    async def _main() -> list[str]:
        async with CompletionClient.for_role(settings, role) as client:
            return await client.list_models()

    names = asyncio.run(_main())
    renderer.heading(f"Models for {role.value} ({len(names)})")
    renderer.items(names)
    return 0


def _cmd_config(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    config = _load_effective_config(args)
    if args.show:
        renderer.text(dump_effective_config(config, indent=2))
        return 0
    path = Path(args.config_path) if args.config_path else default_config_path()
    renderer.kv("Config file", path)
    renderer.kv("Exists", "yes" if path.is_file() else "no")
    settings = settings_from_config(config)
    renderer.kv("Configured providers", len(settings.configured_providers()))
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    renderer = _get_renderer(args)
    entries, skipped = HistoryStore().load()
    limit = max(0, int(args.limit))
    shown = entries[-limit:] if limit else []
    if not shown:
        renderer.text("No history yet.")
    for entry in shown:
        renderer.text(f"{entry.timestamp}  [{entry.plugin}]  {entry.command}")
    if skipped:
        renderer.warning(f"{skipped} unreadable history line(s) skipped")
    return 0


def _cmd_tui(args: argparse.Namespace) -> int:
    from dexter.ui.tui import TUI_INSTALL_HINT, run_tui, tui_available

    if not tui_available():
        raise CLIError(TUI_INSTALL_HINT, exit_code=2)
    config = _load_effective_config(args)
    _start_logging(config)
    session = build_session(settings_from_config(config))
    closers = tuple(client.aclose for client in session.clients)
    return run_tui(session.controller, no_color=bool(args.no_color), closers=closers)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_session(
    settings: DexterSettings,
    *,
    history: HistoryStore | None = None,
) -> Session:
    """Build router and executor clients and the controller that drives them."""

    router_client = CompletionClient.for_role(settings, PipelineRole.ROUTER)
    executor_client = CompletionClient.for_role(settings, PipelineRole.EXECUTOR)
    controller = PipelineController(
        catalog=default_catalog(),
        router=LlmRouter(router_client),
        generator=CommandGenerator(executor_client),
        llm=executor_client,
        history=history if history is not None else HistoryStore(),
    )
    return Session(controller=controller, clients=(router_client, executor_client))


async def run_headless(
    controller: PipelineController,
    request: str,
    *,
    renderer: CLIRenderer,
    assume_yes: bool = False,
    preview_only: bool = False,
    prompt: Prompt | None = None,
) -> int:
    """Drive one request to a terminal state, asking on stdin where the TUI would."""

    ask = prompt or _ask
    last_progress: list[str] = []

    def _echo_progress() -> None:
        current = controller.model.current_progress
        if current is None:
            return
        line = progress_line(current)
        if not last_progress or last_progress[-1] != line:
            last_progress.append(line)
            print(line, file=sys.stderr)

    controller.bind_view(_echo_progress)
    controller.set_input(request)
    controller.apply(PipelineAction.SUBMIT)

    while True:
        state = await controller.run_until_idle()
        model = controller.model
        kind = state.kind

        if kind is StateKind.CLARIFYING and state.clarify is not None:
            renderer.section(state.clarify.question)
            for index, option in enumerate(state.clarify.options, start=1):
                renderer.text(f"  {index}. {option.label}")
                if option.detail:
                    renderer.text(f"     {option.detail}")
            answer = ask(f"Choose an option [1-{len(state.clarify.options)}]: ").strip()
            if not answer.isdigit() or not controller.apply(ClarifySelect(int(answer) - 1)):
                renderer.error("No option selected.")
                return 1
            continue

        if kind is StateKind.INPUT:
            renderer.warning(model.notice or "Request was not handled.")
            return 1

        if kind is StateKind.AWAITING_CONFIRMATION:
            renderer.section(f"Command ({model.selected_plugin})")
            renderer.text(f"$ {model.generated_command}")
            if model.preview is not None:
                renderer.section("Preview")
                renderer.preview(model.preview)
            if preview_only:
                return 0
            if not assume_yes and ask(CONFIRM_PROMPT).strip().lower() not in _YES:
                renderer.text("Aborted.")
                return 1
            controller.apply(PipelineAction.EXECUTE)
            continue

        if kind is StateKind.FINISHED:
            renderer.text(state.output or "")
            return 0

        renderer.error(state.message or "Unknown error")
        return 1


def _ask(message: str) -> str:
    try:
        return input(message)
    except EOFError:
        return ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=bool(getattr(args, "no_color", False)))


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    return load_config(getattr(args, "config_path", None))


def _start_logging(config: Mapping[str, object]) -> StructuredLoggingHandle | None:
    section = config.get("logging")
    logging_config = LoggingConfig.from_mapping(section if isinstance(section, Mapping) else {})
    try:
        return setup_structured_logging(logging_config)
    except OSError as exc:
        print(f"warning: file logging disabled: {exc}", file=sys.stderr)
        return None


__all__ = [
    "CLIError",
    "CONFIRM_PROMPT",
    "Session",
    "build_parser",
    "build_session",
    "run_cli",
    "run_headless",
]
