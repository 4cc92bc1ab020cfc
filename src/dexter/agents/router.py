"""
dexter — LLM router agent

File: src/dexter/agents/router.py
Last updated: 2026-10-19

Purpose
- Map a natural-language request to one plugin from the catalog, or explain
  why none fits, or ask the user a clarifying question.

Functional requirements
- The model is asked for a single JSON object; Markdown fences are tolerated.
- Outcome policy, in order: clarify options present, explicit unsupported,
  unknown plugin, low confidence, selected.
- Malformed JSON raises ``RouterResponseError``; it is never guessed around.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, TypeAlias

import structlog

from dexter.agents.context import FileContext
from dexter.constants import ROUTER_CONFIDENCE_THRESHOLD
from dexter.llm.cache import CachePolicy
from dexter.plugins import PluginCatalog

ROUTER_USER_MESSAGE = "Which plugin should be used for this intent?"

logger = structlog.get_logger(__name__)


# ----------------------------------------------------------------------
# Outcomes
# ----------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ClarifyOption:
    id: str
    label: str
    detail: str
    resolved_intent: str


@dataclass(frozen=True, slots=True)
class ClarifyPayload:
    question: str
    options: tuple[ClarifyOption, ...]

    def option_by_id(self, option_id: str) -> ClarifyOption | None:
        for option in self.options:
            if option.id == option_id:
                return option
        return None


@dataclass(frozen=True, slots=True)
class Selected:
    plugin_name: str


@dataclass(frozen=True, slots=True)
class Unsupported:
    reason: str


@dataclass(frozen=True, slots=True)
class Clarify:
    payload: ClarifyPayload

    @property
    def question(self) -> str:
        return self.payload.question

    @property
    def options(self) -> tuple[ClarifyOption, ...]:
        return self.payload.options


RouteOutcome: TypeAlias = Selected | Unsupported | Clarify


class RouterResponseError(ValueError):
    """Raised when the router model's reply is not the expected JSON object."""

    def __init__(self, detail: str, *, response: str = "") -> None:
        self.detail = detail
        self.response = response
        super().__init__(f"Failed to parse Router JSON: {detail}. Response: {response}")


# ----------------------------------------------------------------------
# Collaborator contracts
# ----------------------------------------------------------------------


class CompletionSource(Protocol):
    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        cache_policy: CachePolicy = CachePolicy.NORMAL,
    ) -> str: ...


class Router(Protocol):
    async def route(
        self, user_input: str, context: FileContext, catalog: PluginCatalog
    ) -> RouteOutcome: ...


# ----------------------------------------------------------------------
# Parsing
# ----------------------------------------------------------------------


def strip_code_fences(text: str) -> str:
    cleaned = text.strip()
    cleaned = cleaned.removeprefix("```json").removeprefix("```")
    cleaned = cleaned.removesuffix("```")
    return cleaned.strip()


def _text(value: object) -> str:
    return value.strip() if isinstance(value, str) else ""


def _parse_clarify(raw: object) -> ClarifyPayload | None:
    if not isinstance(raw, Mapping):
        return None
    options: list[ClarifyOption] = []
    raw_options = raw.get("options")
    if isinstance(raw_options, list):
        for index, item in enumerate(raw_options):
            if not isinstance(item, Mapping):
                continue
            label = _text(item.get("label"))
            resolved = _text(item.get("resolved_intent")) or label
            if not resolved:
                continue
            options.append(
                ClarifyOption(
                    id=_text(item.get("id")) or chr(ord("a") + index),
                    label=label or resolved,
                    detail=_text(item.get("detail")),
                    resolved_intent=resolved,
                )
            )
    if not options:
        return None
    return ClarifyPayload(question=_text(raw.get("question")), options=tuple(options))


def parse_router_response(
    response: str,
    catalog: PluginCatalog,
    *,
    threshold: float = ROUTER_CONFIDENCE_THRESHOLD,
) -> RouteOutcome:
    """Decode the router model's JSON reply into a ``RouteOutcome``."""

    cleaned = strip_code_fences(response)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise RouterResponseError(str(exc), response=response) from exc
    if not isinstance(payload, Mapping):
        raise RouterResponseError("expected a JSON object", response=response)

    clarify = _parse_clarify(payload.get("clarify"))
    if clarify is not None:
        return Clarify(clarify)

    plugin_name = _text(payload.get("plugin_name"))
    unsupported_reason = _text(payload.get("unsupported_reason"))
    reasoning = _text(payload.get("reasoning"))
    if unsupported_reason:
        return Unsupported(unsupported_reason)
    if not plugin_name or plugin_name.lower() == "none":
        return Unsupported(reasoning or "No suitable plugin was identified.")
    if plugin_name not in catalog:
        return Unsupported(f"No plugin named '{plugin_name}' is available.")

    raw_confidence = payload.get("confidence", 0.0)
    if isinstance(raw_confidence, bool) or not isinstance(raw_confidence, int | float):
        raise RouterResponseError("confidence must be a number", response=response)
    confidence = float(raw_confidence)
    if confidence < threshold:
        return Unsupported(f"Low confidence ({confidence:.2f}): {reasoning}")
    return Selected(plugin_name)


# ----------------------------------------------------------------------
# Router
# ----------------------------------------------------------------------


def build_router_prompt(user_input: str, context: FileContext, catalog: PluginCatalog) -> str:
    plugin_list = "\n".join(f"- {plugin.name}: {plugin.doc_for_router}" for plugin in catalog)
    return f"""You are the Router Agent for Dexter.
Your job is to map User Intent to the best available Plugin.

### USER INTENT:
{user_input}

### Available Plugins:
{plugin_list}

### Context:
{context.for_router()}

Output Format: JSON
{{
  "plugin_name": "exact_name_from_list or none",
  "confidence": 0.0_to_1.0,
  "reasoning": "why this plugin",
  "unsupported_reason": null,
  "clarify": null
}}

If no plugin can satisfy the request, set "plugin_name" to "none" and explain in
"unsupported_reason". If the request is ambiguous between plugins, set "clarify" to
{{"question": "...", "options": [{{"id": "a", "label": "...", "detail": "...",
"resolved_intent": "the full, unambiguous request"}}]}}.
"""


class LlmRouter:
    """Router backed by a completion source configured for the router role."""

    def __init__(
        self,
        llm: CompletionSource,
        *,
        threshold: float = ROUTER_CONFIDENCE_THRESHOLD,
    ) -> None:
        self._llm = llm
        self._threshold = threshold

    async def route(
        self, user_input: str, context: FileContext, catalog: PluginCatalog
    ) -> RouteOutcome:
        system_prompt = build_router_prompt(user_input, context, catalog)
        response = await self._llm.complete(system_prompt, ROUTER_USER_MESSAGE)
        outcome = parse_router_response(response, catalog, threshold=self._threshold)
        logger.info("router_outcome", outcome=type(outcome).__name__.lower())
        return outcome


__all__ = [
    "Clarify",
    "ClarifyOption",
    "ClarifyPayload",
    "CompletionSource",
    "LlmRouter",
    "ROUTER_USER_MESSAGE",
    "RouteOutcome",
    "Router",
    "RouterResponseError",
    "Selected",
    "Unsupported",
    "build_router_prompt",
    "parse_router_response",
    "strip_code_fences",
]
