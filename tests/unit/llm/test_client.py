"""
dexter — unit tests for the completion client

File: tests/unit/llm/test_client.py
Last updated: 2026-10-19

Purpose
- Exercise fallback, caching, the max_tokens retry and model discovery
  against an in-process ``httpx.MockTransport``.

Functional requirements
- No network access.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field

import httpx
import pytest

from dexter.config.providers import AuthScheme, ProviderKind
from dexter.llm.cache import CachePolicy, ResponseCache
from dexter.llm.client import MODEL_DISCOVERY_HEADER, CompletionClient
from dexter.llm.errors import AllTargetsExhaustedError
from dexter.llm.targets import Target
from dexter.llm.wire import CompletionParams

PRIMARY = Target("PRIMARY", ProviderKind.CUSTOM, "k1", "https://primary.example/v1", AuthScheme.BEARER, "m1")
SECONDARY = Target("SECONDARY", ProviderKind.CUSTOM, "k2", "https://secondary.example/v1", AuthScheme.BEARER, "m2")
OLLAMA = Target("OLLAMA", ProviderKind.OLLAMA, None, "http://localhost:11434/v1", AuthScheme.NONE, "llama3.2")


def _completion(text: str) -> dict[str, object]:
    return {"choices": [{"message": {"content": text}, "finish_reason": "stop"}]}


@dataclass(slots=True)
class _Recorder:
    """Route requests by host and remember what was sent."""

    routes: dict[str, Callable[[httpx.Request], httpx.Response]]
    calls: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        handler = self.routes.get(request.url.host)
        if handler is None:
            return httpx.Response(404, text="no route")
        return handler(request)

    def hosts(self) -> list[str]:
        return [call.url.host for call in self.calls]


def _client(recorder: _Recorder, *targets: Target, capacity: int = 8) -> CompletionClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
    return CompletionClient(targets, cache=ResponseCache(capacity), http_client=http)


@pytest.mark.unit
def test_client_requires_targets() -> None:
    with pytest.raises(ValueError, match="at least one target"):
        CompletionClient(())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_success_wins_without_touching_later_targets() -> None:
    recorder = _Recorder(
        {
            "primary.example": lambda _: httpx.Response(200, json=_completion("from primary")),
            "secondary.example": lambda _: httpx.Response(200, json=_completion("from secondary")),
        }
    )
    client = _client(recorder, PRIMARY, SECONDARY)
    assert await client.complete("sys", "hi") == "from primary"
    assert recorder.hosts() == ["primary.example"]
    sent = recorder.calls[0]
    assert sent.headers["Authorization"] == "Bearer k1"
    assert str(sent.url) == "https://primary.example/v1/chat/completions"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_falls_back_to_next_target_when_first_fails() -> None:
    recorder = _Recorder(
        {
            "primary.example": lambda _: httpx.Response(500, text="boom"),
            "secondary.example": lambda _: httpx.Response(200, json=_completion("ok")),
        }
    )
    client = _client(recorder, PRIMARY, SECONDARY)
    assert await client.complete("sys", "hi") == "ok"
    assert recorder.hosts() == ["primary.example", "secondary.example"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_transport_errors_fall_back_too() -> None:
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    recorder = _Recorder(
        {
            "primary.example": _refuse,
            "secondary.example": lambda _: httpx.Response(200, json=_completion("ok")),
        }
    )
    assert await _client(recorder, PRIMARY, SECONDARY).complete("s", "u") == "ok"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_all_failures_aggregate_one_line_per_target() -> None:
    recorder = _Recorder(
        {
            "primary.example": lambda _: httpx.Response(429, text="slow down"),
            "secondary.example": lambda _: httpx.Response(200, text="not json"),
        }
    )
    client = _client(recorder, PRIMARY, SECONDARY)
    with pytest.raises(AllTargetsExhaustedError) as excinfo:
        await client.complete("sys", "hi")

    error = excinfo.value
    assert len(error.failures) == 2
    assert error.failures[0].startswith("- [PRIMARY | m1] rate limited")
    assert error.failures[1].startswith("- [SECONDARY | m2] response is not valid JSON")
    assert str(error).splitlines()[0] == "All LLM targets failed:"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_missing_key_fails_target_without_network_call() -> None:
    keyless = Target("KEYLESS", ProviderKind.CUSTOM, None, "https://keyless.example/v1", AuthScheme.BEARER, "m")
    recorder = _Recorder({"secondary.example": lambda _: httpx.Response(200, json=_completion("ok"))})
    assert await _client(recorder, keyless, SECONDARY).complete("s", "u") == "ok"
    assert recorder.hosts() == ["secondary.example"]


@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.parametrize(
    "broken",
    [
        Target("BADURL", ProviderKind.CUSTOM, "k", "http://[::1", AuthScheme.BEARER, "m"),
        Target("BADKEY", ProviderKind.CUSTOM, "k\u00e9y-\u043a\u043b\u044e\u0447", "https://badkey.example/v1", AuthScheme.BEARER, "m"),
    ],
    ids=["malformed-url", "non-ascii-key"],
)
async def test_unusable_target_is_skipped_in_favor_of_the_next(broken: Target) -> None:
    recorder = _Recorder({"secondary.example": lambda _: httpx.Response(200, json=_completion("from-t2"))})
    assert await _client(recorder, broken, SECONDARY).complete("s", "u") == "from-t2"
    assert recorder.hosts() == ["secondary.example"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_unusable_target_failure_is_reported_as_config_problem() -> None:
    broken = Target("BADURL", ProviderKind.CUSTOM, "k", "http://[::1", AuthScheme.BEARER, "m")
    with pytest.raises(AllTargetsExhaustedError) as excinfo:
        await _client(_Recorder({}), broken).complete("s", "u")
    assert excinfo.value.failures[0].startswith("- [BADURL | m] invalid endpoint URL")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_normal_policy_serves_repeat_from_cache() -> None:
    answers = iter(["first", "second"])
    recorder = _Recorder(
        {"primary.example": lambda _: httpx.Response(200, json=_completion(next(answers)))}
    )
    client = _client(recorder, PRIMARY)
    assert await client.complete("s", "u") == "first"
    assert await client.complete("s", "u") == "first"
    assert len(recorder.calls) == 1
    assert client.cache.snapshot()["hits"] == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_bypass_policy_always_reaches_transport_and_skips_cache_write() -> None:
    answers = iter(["first", "second"])
    recorder = _Recorder(
        {"primary.example": lambda _: httpx.Response(200, json=_completion(next(answers)))}
    )
    client = _client(recorder, PRIMARY)
    assert await client.complete("s", "u", CachePolicy.BYPASS) == "first"
    assert await client.complete("s", "u", CachePolicy.BYPASS) == "second"
    assert len(recorder.calls) == 2
    assert len(client.cache) == 0


@pytest.mark.unit
@pytest.mark.asyncio
async def test_max_tokens_rejection_is_retried_exactly_once_without_it() -> None:
    bodies: list[dict[str, object]] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        if "max_tokens" in body:
            return httpx.Response(400, text="Unsupported parameter: 'max_tokens'")
        return httpx.Response(200, json=_completion("retried"))

    recorder = _Recorder({"primary.example": _handler})
    client = _client(recorder, PRIMARY)
    text = await client.complete("s", "u", params=CompletionParams(max_tokens=32))
    assert text == "retried"
    assert len(bodies) == 2
    assert bodies[0]["max_tokens"] == 32
    assert "max_tokens" not in bodies[1]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_max_tokens_retry_does_not_loop() -> None:
    recorder = _Recorder(
        {"primary.example": lambda _: httpx.Response(400, text="max_tokens unsupported")}
    )
    client = _client(recorder, PRIMARY)
    with pytest.raises(AllTargetsExhaustedError):
        await client.complete("s", "u", params=CompletionParams(max_tokens=32))
    assert len(recorder.calls) == 2


@pytest.mark.unit
@pytest.mark.asyncio
async def test_chat_bridge_reads_through_cache() -> None:
    recorder = _Recorder({"primary.example": lambda _: httpx.Response(200, json=_completion("x"))})
    client = _client(recorder, PRIMARY)
    assert await client.chat("s", "u") == "x"
    assert await client.chat("s", "u") == "x"
    assert len(recorder.calls) == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_models_merges_dedupes_and_sorts() -> None:
    recorder = _Recorder(
        {
            "primary.example": lambda _: httpx.Response(200, json={"data": [{"id": "zeta"}, {"id": "alpha"}]}),
            "secondary.example": lambda _: httpx.Response(
                200, json={"models": [{"name": "models/alpha"}, {"name": "beta"}]}
            ),
        }
    )
    same_endpoint = Target("PRIMARY", ProviderKind.CUSTOM, "k1", "https://primary.example/v1", AuthScheme.BEARER, "other")
    client = _client(recorder, PRIMARY, same_endpoint, SECONDARY)
    assert await client.list_models() == ["alpha", "beta", "zeta"]
    assert recorder.hosts() == ["primary.example", "secondary.example"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_models_skips_endpoint_with_malformed_url() -> None:
    broken = Target("BADURL", ProviderKind.CUSTOM, "k", "http://[::1", AuthScheme.BEARER, "m")
    recorder = _Recorder({"secondary.example": lambda _: httpx.Response(200, json={"data": [{"id": "beta"}]})})
    assert await _client(recorder, broken, SECONDARY).list_models() == ["beta"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_models_uses_ollama_native_endpoint_only_on_primary_failure() -> None:
    def _ollama(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/v1/models":
            return httpx.Response(404, text="not found")
        return httpx.Response(200, json={"models": [{"name": "qwen2.5"}]})

    recorder = _Recorder({"localhost": _ollama})
    client = _client(recorder, OLLAMA)
    assert await client.list_models() == ["qwen2.5"]
    assert [call.url.path for call in recorder.calls] == ["/v1/models", "/api/tags"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_models_raises_when_nothing_found() -> None:
    recorder = _Recorder({})
    client = _client(recorder, PRIMARY)
    with pytest.raises(AllTargetsExhaustedError) as excinfo:
        await client.list_models()
    assert str(excinfo.value).startswith(MODEL_DISCOVERY_HEADER)
    assert excinfo.value.failures[0].startswith("- [PRIMARY]")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_injected_http_client_is_not_closed() -> None:
    http = httpx.AsyncClient(transport=httpx.MockTransport(_Recorder({})))
    async with CompletionClient((PRIMARY,), http_client=http):
        pass
    assert not http.is_closed
    await http.aclose()
