"""Controller layer: owns PipelineModel, spawns tasks, polls their results.

File: src/dexter/pipeline/controller.py

NO widget/Textual imports. The controller:
1. Receives actions from the view layer (TUI keys or the headless CLI).
2. Spawns routing, generation, dry-run and execution tasks.
3. Polls their one-shot results on ``tick`` and reduces them into state.
4. Notifies the view layer via a callback when state changes.

This keeps the whole pipeline testable without Textual.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from dexter.agents.context import FileContext, scan_directory
from dexter.agents.generator import CommandValidationError, Generator, ensure_command_allowed
from dexter.agents.router import Clarify, RouteOutcome, Router, Selected, Unsupported
from dexter.constants import POLL_INTERVAL_BUSY
from dexter.llm.cache import CachePolicy
from dexter.observability.logging import correlation_scope, log_session_block
from dexter.persistence.history import HistoryStore
from dexter.pipeline.channels import OneShot, ProgressChannel, TaskSpawner
from dexter.pipeline.formatting import (
    format_clarify_block,
    format_context_lines,
    preview_to_log,
    progress_line,
)
from dexter.pipeline.state import (
    Action,
    ClarifySelect,
    PipelineAction,
    PipelineModel,
    PipelineState,
    StateKind,
)
from dexter.plugins import Plugin, PluginCatalog
from dexter.plugins.base import LlmBridge, Preview
from dexter.security.safety_gate import SafetyGate, SafetyRejection

# Type alias for the state-change notification callback
StateCallback = Callable[[], Awaitable[None] | None]
ContextProvider = Callable[[], FileContext]

UNSUPPORTED_HINT = "Try: convert formats or rename files (rename only, no conversion)."


def unsupported_notice(reason: str) -> str:
    return f"This request isn't supported.\n{reason}\n{UNSUPPORTED_HINT}"


class PipelineController:
    """Finite-state orchestrator for route → generate → preview → confirm → execute."""

    def __init__(
        self,
        *,
        catalog: PluginCatalog,
        router: Router,
        generator: Generator,
        llm: LlmBridge | None = None,
        gate: SafetyGate | None = None,
        history: HistoryStore | None = None,
        context_provider: ContextProvider = scan_directory,
        model: PipelineModel | None = None,
        on_state_change: StateCallback | None = None,
        logger: Any | None = None,
    ) -> None:
        self.model = model or PipelineModel()
        self._catalog = catalog
        self._router = router
        self._generator = generator
        self._llm = llm
        self._gate = gate or SafetyGate()
        self._history = history
        self._context_provider = context_provider
        self._on_state_change = on_state_change
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

        self._spawner = TaskSpawner()
        self._context = FileContext()
        self._request_id: str | None = None

        self._routing_rx: OneShot[RouteOutcome] | None = None
        self._generation_rx: OneShot[str] | None = None
        self._dry_run_rx: OneShot[Preview] | None = None
        self._execution_rx: OneShot[str] | None = None
        self._progress: ProgressChannel | None = None

        self._handlers: dict[tuple[StateKind, PipelineAction], Callable[[], None]] = {
            (StateKind.INPUT, PipelineAction.SUBMIT): self._submit,
            (StateKind.INPUT, PipelineAction.CLEAR_INPUT): self._clear_input,
            (StateKind.CLARIFYING, PipelineAction.BACK_TO_INPUT): self.reset_to_input_preserve_text,
            (StateKind.AWAITING_CONFIRMATION, PipelineAction.EXECUTE): self._execute,
            (StateKind.AWAITING_CONFIRMATION, PipelineAction.EDIT_COMMAND): self._edit_command,
            (StateKind.AWAITING_CONFIRMATION, PipelineAction.REGENERATE): self._regenerate,
            (
                StateKind.AWAITING_CONFIRMATION,
                PipelineAction.BACK_TO_INPUT,
            ): self.reset_to_input_preserve_text,
            (StateKind.EDITING_COMMAND, PipelineAction.PREVIEW_EDITED): self._preview_edited,
            (StateKind.EDITING_COMMAND, PipelineAction.CANCEL_EDIT): self._cancel_edit,
            (StateKind.FINISHED, PipelineAction.RETRY): self._retry,
            (StateKind.FINISHED, PipelineAction.RESET_TO_INPUT): self.reset_to_input_preserve_text,
            (StateKind.ERROR, PipelineAction.RETRY): self._retry,
            (StateKind.ERROR, PipelineAction.RESET_TO_INPUT): self.reset_to_input_preserve_text,
        }

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self.model.state

    @property
    def is_processing(self) -> bool:
        return self.model.state.kind.is_processing

    @property
    def context(self) -> FileContext:
        return self._context

    @property
    def catalog(self) -> PluginCatalog:
        return self._catalog

    def live_receivers(self) -> int:
        receivers = (self._routing_rx, self._generation_rx, self._dry_run_rx, self._execution_rx)
        return sum(1 for receiver in receivers if receiver is not None)

    # ------------------------------------------------------------------
    # State notification
    # ------------------------------------------------------------------

    def bind_view(self, callback: StateCallback | None) -> None:
        """Replace the state-change callback (the TUI binds itself after mount)."""

        self._on_state_change = callback

    async def _notify(self) -> None:
        if self._on_state_change is not None:
            result = self._on_state_change()
            if asyncio.iscoroutine(result):
                await result

    def _set_state(self, new_state: PipelineState) -> None:
        previous = self.model.state
        self.model.state = new_state
        if previous.kind is not new_state.kind:
            self._logger.debug(
                "pipeline_transition",
                from_state=previous.kind.value,
                to_state=new_state.kind.value,
                request_id=self._request_id,
            )

    def _session_block(self, label: str, body: str) -> None:
        log_session_block(self._logger, label, body)

    def _fail(self, label: str, message: str, detail: str) -> None:
        self._session_block(label, detail)
        self._set_state(PipelineState.error(message))

    # ------------------------------------------------------------------
    # Intents (actions from the view)
    # ------------------------------------------------------------------

    def set_input(self, text: str) -> None:
        self.model.input_text = text
        if self.model.state.kind is StateKind.INPUT:
            self.model.notice = None
            self.model.clarify = None

    def update_draft(self, text: str) -> None:
        if self.model.state.kind is not StateKind.EDITING_COMMAND:
            return
        self.model.draft = text
        self._set_state(PipelineState.editing(text))

    def apply(self, action: Action) -> bool:
        """Apply a user action; returns ``False`` when the current state ignores it."""

        kind = self.model.state.kind
        if isinstance(action, ClarifySelect):
            handled = kind is StateKind.CLARIFYING and self._select_clarify(action.index)
        else:
            handler = self._handlers.get((kind, action))
            handled = handler is not None
            if handler is not None:
                handler()
        if not handled:
            self._logger.debug("pipeline_action_ignored", action=str(action), state=kind.value)
        return handled

    async def dispatch(self, action: Action) -> bool:
        handled = self.apply(action)
        if handled:
            await self._notify()
        return handled

    def select_clarify_option(self, option_id: str) -> bool:
        payload = self.model.clarify
        if self.model.state.kind is not StateKind.CLARIFYING or payload is None:
            return False
        for index, option in enumerate(payload.options):
            if option.id == option_id:
                return self._select_clarify(index)
        return False

    # ------------------------------------------------------------------
    # Resets
    # ------------------------------------------------------------------

    def _drop_receivers(self) -> None:
        for receiver in (self._routing_rx, self._generation_rx, self._dry_run_rx, self._execution_rx):
            if receiver is not None:
                receiver.close()
        if self._progress is not None:
            self._progress.close()
        self._routing_rx = None
        self._generation_rx = None
        self._dry_run_rx = None
        self._execution_rx = None
        self._progress = None

    def reset_for_new_request(self) -> None:
        self._drop_receivers()
        self.model.clear_request_data()
        self._set_state(PipelineState.input())

    def reset_to_input_preserve_text(self) -> None:
        self.reset_for_new_request()

    # ------------------------------------------------------------------
    # Action handlers
    # ------------------------------------------------------------------

    def _begin_request(self) -> None:
        self.reset_for_new_request()
        self._request_id = uuid.uuid4().hex[:12]
        self._set_state(PipelineState.of(StateKind.PENDING_ROUTING))

    def _submit(self) -> None:
        text = self.model.input_text.strip()
        if not text:
            return
        self.model.push_log(f"Input submitted ({len(self.model.input_text)} chars)")
        self._begin_request()

    def _clear_input(self) -> None:
        self.model.input_text = ""
        self.model.notice = None
        self.model.clarify = None

    def _select_clarify(self, index: int) -> bool:
        payload = self.model.clarify
        if payload is None or not 0 <= index < len(payload.options):
            return False
        option = payload.options[index]
        self.model.input_text = option.resolved_intent
        self.model.push_log(f"Clarify selected: {option.label}")
        self._begin_request()
        return True

    def _execute(self) -> None:
        plugin = self._selected_plugin()
        command = self.model.generated_command
        if plugin is None or command is None:
            self._set_state(PipelineState.error("Plugin not found"))
            return

        try:
            ensure_command_allowed(command, plugin, self._gate)
        except SafetyRejection as exc:
            self.model.push_log(f"Safety check failed before execution: {exc}")
            self._fail(
                "EXECUTE_BLOCKED",
                f"Safety check failed: {exc}",
                f"command={command}\nreason={exc}",
            )
            return
        except ValueError as exc:
            self.model.push_log("Plugin validation failed before execution.")
            self._fail("EXECUTE_BLOCKED", str(exc), f"command={command}\nreason=plugin_validation")
            return

        self._record_history(plugin.name, command)
        self._session_block("EXECUTE_COMMAND", f"plugin={plugin.name}\ncommand={command}")
        self.model.push_log(f"Executing [{plugin.name}]: {command}")

        progress = ProgressChannel()
        self._progress = progress
        self.model.current_progress = None
        with correlation_scope(request_id=self._request_id):
            self._execution_rx = self._spawner.spawn(
                plugin.execute_with_progress(command, progress), name="dexter-execute"
            )
        self._set_state(PipelineState.of(StateKind.EXECUTING))

    def _record_history(self, plugin_name: str, command: str) -> None:
        if self._history is None:
            return
        try:
            self._history.append(plugin_name, command)
        except OSError as exc:
            self.model.push_log(f"History log failed: {exc}")
            self._logger.warning("history_append_failed", error=str(exc))

    def _edit_command(self) -> None:
        self.model.draft = self.model.generated_command or self.model.draft
        self._set_state(PipelineState.editing(self.model.draft))

    def _regenerate(self) -> None:
        self._drop_receivers()
        self.model.generated_command = None
        self.model.draft = ""
        self.model.preview = None
        self.model.notice = None
        self.model.clarify = None
        self.model.pending_cache_policy = CachePolicy.BYPASS
        self._set_state(PipelineState.of(StateKind.PENDING_GENERATION))

    def _preview_edited(self) -> None:
        command = self.model.draft.strip()
        if not command:
            return
        self.model.generated_command = command
        self.model.preview = None
        self.model.push_log(f"Command edited: {command}")
        self._set_state(PipelineState.of(StateKind.PENDING_DRY_RUN))

    def _cancel_edit(self) -> None:
        if self.model.generated_command is not None:
            self.model.draft = self.model.generated_command
        self._set_state(PipelineState.of(StateKind.AWAITING_CONFIRMATION))

    def _retry(self) -> None:
        if not self.model.input_text.strip():
            self._set_state(PipelineState.input())
            return
        self._begin_request()

    # ------------------------------------------------------------------
    # Tick: auto transitions and result polling
    # ------------------------------------------------------------------

    def tick(self) -> bool:
        """Advance one step without blocking; returns ``True`` when anything changed."""

        before = self.model.state
        progress_before = self.model.current_progress
        kind = before.kind
        if kind is StateKind.PENDING_ROUTING:
            self._start_routing()
        elif kind is StateKind.ROUTING:
            self._poll_routing()
        elif kind is StateKind.PENDING_GENERATION:
            self._start_generation()
        elif kind is StateKind.GENERATING:
            self._poll_generation()
        elif kind is StateKind.PENDING_DRY_RUN:
            self._start_dry_run()
        elif kind is StateKind.DRY_RUNNING:
            self._poll_dry_run()
        elif kind is StateKind.EXECUTING:
            self._poll_execution()
        return self.model.state != before or self.model.current_progress != progress_before

    async def pump(self) -> bool:
        changed = self.tick()
        if changed:
            await self._notify()
        return changed

    async def run_until_idle(self, *, poll_interval: float = POLL_INTERVAL_BUSY) -> PipelineState:
        """Tick until the pipeline leaves every processing state."""

        while True:
            await self.pump()
            if not self.is_processing:
                return self.model.state
            await asyncio.sleep(poll_interval)

    async def aclose(self) -> None:
        """Abandon live receivers and wait for in-flight tasks to finish."""

        self._drop_receivers()
        await self._spawner.drain()

    def _selected_plugin(self) -> Plugin | None:
        name = self.model.selected_plugin
        return self._catalog.get(name) if name is not None else None

    def _refresh_context(self) -> None:
        self._context = self._context_provider()
        self._session_block("CONTEXT_SCAN", format_context_lines(self._context))
        self.model.push_log(f"Context scanned ({len(self._context.files)} files).")

    # Routing ----------------------------------------------------------

    def _start_routing(self) -> None:
        self._set_state(PipelineState.of(StateKind.ROUTING))
        try:
            self._refresh_context()
        except OSError as exc:
            self._fail("ROUTING_ERROR", f"Routing error: {exc}", str(exc))
            return
        with correlation_scope(request_id=self._request_id):
            self._routing_rx = self._spawner.spawn(
                self._router.route(self.model.input_text, self._context, self._catalog),
                name="dexter-route",
            )

    def _poll_routing(self) -> None:
        receiver = self._routing_rx
        if receiver is None or not receiver.ready:
            return
        self._routing_rx = None
        try:
            outcome = receiver.result()
        except Exception as exc:  # noqa: BLE001 - task errors become the Error state
            self._fail("ROUTING_ERROR", f"Routing error: {exc}", str(exc))
            return

        if isinstance(outcome, Selected):
            if outcome.plugin_name not in self._catalog:
                self._set_state(PipelineState.error("Plugin not found"))
                return
            self.model.selected_plugin = outcome.plugin_name
            self.model.pending_cache_policy = CachePolicy.NORMAL
            self.model.push_log(f"Routed to plugin: {outcome.plugin_name}")
            self._set_state(PipelineState.of(StateKind.PENDING_GENERATION))
        elif isinstance(outcome, Unsupported):
            self.model.notice = unsupported_notice(outcome.reason)
            self.model.push_log("Routing result: unsupported request")
            self._session_block("ROUTING_UNSUPPORTED", outcome.reason)
            self._set_state(PipelineState.input())
        elif isinstance(outcome, Clarify):
            self.model.clarify = outcome.payload
            self.model.notice = None
            self.model.push_log("Routing requires clarification")
            self._session_block(
                "ROUTING_CLARIFY", format_clarify_block(outcome.question, outcome.options)
            )
            self._set_state(PipelineState.clarifying(outcome.payload))

    # Generation -------------------------------------------------------

    def _start_generation(self) -> None:
        self._set_state(PipelineState.of(StateKind.GENERATING))
        plugin = self._selected_plugin()
        if plugin is None:
            self._set_state(PipelineState.error("Plugin not found"))
            return
        policy = self.model.pending_cache_policy
        self.model.pending_cache_policy = CachePolicy.NORMAL
        with correlation_scope(request_id=self._request_id):
            self._generation_rx = self._spawner.spawn(
                self._generator.generate(self.model.input_text, self._context, plugin, policy),
                name="dexter-generate",
            )

    def _poll_generation(self) -> None:
        receiver = self._generation_rx
        if receiver is None or not receiver.ready:
            return
        self._generation_rx = None
        try:
            command = receiver.result()
        except Exception as exc:  # noqa: BLE001 - task errors become the Error state
            self._fail("GENERATION_ERROR", f"Generation error: {exc}", str(exc))
            return
        self.model.generated_command = command
        self.model.draft = command
        self.model.preview = None
        self.model.push_log(f"Generated command: {command}")
        self._session_block("GENERATED_COMMAND", command)
        self._set_state(PipelineState.of(StateKind.PENDING_DRY_RUN))

    # Dry run ----------------------------------------------------------

    def _start_dry_run(self) -> None:
        self._set_state(PipelineState.of(StateKind.DRY_RUNNING))
        command = self.model.generated_command
        plugin = self._selected_plugin()
        if command is None:
            self._set_state(PipelineState.error("No command available for preview"))
            return
        if plugin is None:
            self._set_state(PipelineState.error("Plugin not found"))
            return
        with correlation_scope(request_id=self._request_id):
            self._dry_run_rx = self._spawner.spawn(
                self._gated_dry_run(plugin, command), name="dexter-dry-run"
            )

    async def _gated_dry_run(self, plugin: Plugin, command: str) -> Preview:
        try:
            self._gate.check(command)
        except SafetyRejection as exc:
            raise SafetyRejection(f"Safety check failed: {exc}", command=command) from exc
        if not plugin.validate_command(command):
            raise CommandValidationError(plugin.name, command)
        return await plugin.dry_run(command, self._llm)

    def _poll_dry_run(self) -> None:
        receiver = self._dry_run_rx
        if receiver is None or not receiver.ready:
            return
        self._dry_run_rx = None
        try:
            preview = receiver.result()
        except Exception as exc:  # noqa: BLE001 - task errors become the Error state
            self.model.push_log(f"Preview failed: {exc}")
            self._fail("DRY_RUN_ERROR", f"Dry run failed: {exc}", str(exc))
            return
        self.model.preview = preview
        self.model.push_log("Preview data captured successfully.")
        self._session_block("DRY_RUN_PREVIEW", preview_to_log(preview))
        self._set_state(PipelineState.of(StateKind.AWAITING_CONFIRMATION))

    # Execution --------------------------------------------------------

    def _poll_execution(self) -> None:
        if self._progress is not None:
            for report in self._progress.drain():
                self._session_block("PROGRESS", progress_line(report))
                self.model.current_progress = report

        receiver = self._execution_rx
        if receiver is None or not receiver.ready:
            return
        self._execution_rx = None
        try:
            output = receiver.result()
        except Exception as exc:  # noqa: BLE001 - task errors become the Error state
            self._fail("EXECUTION_ERROR", f"Execution failed: {exc}", str(exc))
        else:
            self._session_block("EXECUTION_OUTPUT", output)
            self.model.push_log("Execution completed successfully.")
            self._set_state(PipelineState.finished(output))
            self._refresh_context_quietly()

        if self._progress is not None:
            self._progress.close()
        self._progress = None
        self.model.current_progress = None

    def _refresh_context_quietly(self) -> None:
        try:
            self._refresh_context()
        except OSError as exc:
            self._logger.warning("context_refresh_failed", error=str(exc))


__all__ = ["ContextProvider", "PipelineController", "StateCallback", "unsupported_notice"]
