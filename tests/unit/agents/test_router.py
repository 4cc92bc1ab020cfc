"""
dexter — unit tests for the LLM router agent

File: tests/unit/agents/test_router.py
Last updated: 2026-10-19

Purpose
- Validate router reply parsing and the outcome policy.

What this test file should cover
- Selected, unsupported, unknown plugin and low-confidence outcomes.
- Clarify payloads with default ids and resolved intents.
- Markdown fences and malformed replies.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

import pytest

from dexter.agents.context import FileContext
from dexter.agents.router import (
    ROUTER_USER_MESSAGE,
    Clarify,
    LlmRouter,
    RouterResponseError,
    Selected,
    Unsupported,
    build_router_prompt,
    parse_router_response,
    strip_code_fences,
)
from dexter.llm.cache import CachePolicy
from dexter.plugins import default_catalog

CATALOG = default_catalog()


@dataclass(slots=True)
class _ScriptedCompletion:
    reply: str
    calls: list[tuple[str, str, CachePolicy]] = field(default_factory=list)

    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        cache_policy: CachePolicy = CachePolicy.NORMAL,
    ) -> str:
        self.calls.append((system_prompt, user_input, cache_policy))
        return self.reply


def _reply(**fields: object) -> str:
    return json.dumps(fields)


@pytest.mark.unit
class TestParseRouterResponse:
    def test_confident_known_plugin_is_selected(self) -> None:
        outcome = parse_router_response(_reply(plugin_name="ffmpeg", confidence=0.9), CATALOG)
        assert outcome == Selected("ffmpeg")

    def test_threshold_is_inclusive(self) -> None:
        outcome = parse_router_response(_reply(plugin_name="f2", confidence=0.7), CATALOG)
        assert outcome == Selected("f2")

    def test_low_confidence_is_unsupported_with_reasoning(self) -> None:
        outcome = parse_router_response(
            _reply(plugin_name="ffmpeg", confidence=0.4, reasoning="maybe audio"), CATALOG
        )
        assert outcome == Unsupported("Low confidence (0.40): maybe audio")

    def test_explicit_unsupported_reason_wins(self) -> None:
        outcome = parse_router_response(
            _reply(plugin_name="none", confidence=1.0, unsupported_reason="Needs a PDF tool"),
            CATALOG,
        )
        assert outcome == Unsupported("Needs a PDF tool")

    def test_none_plugin_falls_back_to_reasoning(self) -> None:
        outcome = parse_router_response(_reply(plugin_name="none", reasoning="nothing fits"), CATALOG)
        assert outcome == Unsupported("nothing fits")

    def test_unknown_plugin_is_unsupported(self) -> None:
        outcome = parse_router_response(_reply(plugin_name="imagemagick", confidence=1.0), CATALOG)
        assert outcome == Unsupported("No plugin named 'imagemagick' is available.")

    def test_clarify_takes_priority_and_fills_defaults(self) -> None:
        outcome = parse_router_response(
            _reply(
                plugin_name="ffmpeg",
                confidence=0.95,
                clarify={
                    "question": "Resize or convert?",
                    "options": [
                        {"label": "Resize", "resolved_intent": "resize a.jpg to 50%"},
                        {"id": "z", "label": "Convert", "detail": "to png"},
                        {"detail": "no label or intent"},
                    ],
                },
            ),
            CATALOG,
        )
        assert isinstance(outcome, Clarify)
        assert outcome.question == "Resize or convert?"
        assert [option.id for option in outcome.options] == ["a", "z"]
        assert outcome.options[1].resolved_intent == "Convert"
        assert outcome.payload.option_by_id("a") is not None
        assert outcome.payload.option_by_id("a").resolved_intent == "resize a.jpg to 50%"
        assert outcome.payload.option_by_id("q") is None

    def test_clarify_without_usable_options_is_ignored(self) -> None:
        outcome = parse_router_response(
            _reply(plugin_name="f2", confidence=0.8, clarify={"question": "?", "options": []}),
            CATALOG,
        )
        assert outcome == Selected("f2")

    @pytest.mark.parametrize(
        "wrapped",
        [
            '```json\n{"plugin_name": "yt-dlp", "confidence": 0.8}\n```',
            '```\n{"plugin_name": "yt-dlp", "confidence": 0.8}\n```',
            '  {"plugin_name": "yt-dlp", "confidence": 0.8}  ',
        ],
    )
    def test_markdown_fences_are_tolerated(self, wrapped: str) -> None:
        assert parse_router_response(wrapped, CATALOG) == Selected("yt-dlp")

    @pytest.mark.parametrize("reply", ["not json", "[1, 2]", '{"plugin_name": "f2", "confidence": "high"}'])
    def test_malformed_replies_raise(self, reply: str) -> None:
        with pytest.raises(RouterResponseError, match="Failed to parse Router JSON"):
            parse_router_response(reply, CATALOG)

    def test_strip_code_fences(self) -> None:
        assert strip_code_fences("```json\n{}\n```") == "{}"


@pytest.mark.unit
class TestLlmRouter:
    def test_prompt_lists_plugins_and_context(self) -> None:
        prompt = build_router_prompt("shrink photos", FileContext(files=("a.jpg", "b.jpg")), CATALOG)
        assert "### USER INTENT:\nshrink photos" in prompt
        assert "- libvips: " in prompt
        assert "a.jpg, b.jpg" in prompt
        assert '"plugin_name": "exact_name_from_list or none"' in prompt

    @pytest.mark.asyncio
    async def test_route_asks_completion_source_and_parses(self) -> None:
        source = _ScriptedCompletion(_reply(plugin_name="libvips", confidence=0.8))
        router = LlmRouter(source)
        outcome = await router.route("resize a.jpg", FileContext(files=("a.jpg",)), CATALOG)
        assert outcome == Selected("libvips")
        system_prompt, user_input, policy = source.calls[0]
        assert "resize a.jpg" in system_prompt
        assert user_input == ROUTER_USER_MESSAGE
        assert policy is CachePolicy.NORMAL

    @pytest.mark.asyncio
    async def test_custom_threshold(self) -> None:
        source = _ScriptedCompletion(_reply(plugin_name="f2", confidence=0.5))
        outcome = await LlmRouter(source, threshold=0.3).route("rename", FileContext(), CATALOG)
        assert outcome == Selected("f2")
