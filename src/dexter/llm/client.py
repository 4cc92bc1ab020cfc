"""
dexter — completion client with provider fallback

File: src/dexter/llm/client.py
Last updated: 2026-10-19

Purpose
- Dispatch one chat completion against an ordered list of targets, falling
  back target by target until one produces text.
- Serve repeated identical requests from the response cache.
- Discover available models across the configured endpoints.

Functional requirements
- Targets are tried strictly sequentially in resolver order.
- Per-target failures are logged and flattened into one
  ``AllTargetsExhaustedError`` line each; they never escape individually.
- A 400 that rejects ``max_tokens`` is retried once without it.
- The cache is written only under ``CachePolicy.NORMAL``.

Non-functional requirements
- Timeouts are httpx's; the client adds no retries beyond the one above.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from dexter.config.providers import DexterSettings, PipelineRole
from dexter.constants import DEFAULT_HTTP_TIMEOUT_SECONDS
from dexter.llm.cache import CachePolicy, ResponseCache
from dexter.llm.errors import (
    AllTargetsExhaustedError,
    CompletionError,
    ParseError,
    TargetConfigError,
    TransportError,
)
from dexter.llm.targets import Target, resolve_targets
from dexter.llm.wire import (
    CompletionParams,
    CompletionRequest,
    WireRequest,
    allows_max_tokens_retry,
    build_request,
    cache_key,
    classify_failure,
    is_max_tokens_unsupported,
    model_list_headers,
    model_list_urls,
    parse_completion,
    parse_model_list,
)

MODEL_DISCOVERY_HEADER = "Model discovery failed:"


class CompletionClient:
    """LLM client bound to one immutable tuple of fallback targets.

    Configuration changes are handled by building a new client
    (``CompletionClient.for_role``); targets are never mutated in place.
    """

    def __init__(
        self,
        targets: Sequence[Target],
        *,
        cache: ResponseCache | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        logger: Any | None = None,
    ) -> None:
        if not targets:
            raise ValueError("CompletionClient requires at least one target")
        self._targets = tuple(targets)
        self._cache = cache if cache is not None else ResponseCache()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout_seconds)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @classmethod
    def for_role(
        cls,
        settings: DexterSettings,
        role: PipelineRole,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> CompletionClient:
        """Resolve targets for ``role`` from ``settings`` and build a fresh client."""

        targets = resolve_targets(settings.effective_providers(), settings.models, role)
        return cls(
            targets,
            cache=ResponseCache(settings.cache_capacity),
            http_client=http_client,
            timeout_seconds=settings.http_timeout_seconds,
        )

    @property
    def targets(self) -> tuple[Target, ...]:
        return self._targets

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> CompletionClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_input: str,
        cache_policy: CachePolicy = CachePolicy.NORMAL,
        params: CompletionParams | None = None,
    ) -> str:
        """Return the first successful completion across targets."""

        request = CompletionRequest.build(system_prompt, user_input, params or CompletionParams())
        failures: list[str] = []
        for index, target in enumerate(self._targets):
            try:
                text = await self._attempt(target, request, cache_policy)
            except CompletionError as exc:
                failures.append(f"- [{target.label}] {exc.detail}")
                self._logger.warning(
                    "completion_target_failed",
                    provider=target.display_name,
                    model=target.model,
                    code=exc.code,
                    position=index,
                    remaining=len(self._targets) - index - 1,
                )
                continue
            if index > 0:
                self._logger.info(
                    "completion_fallback_succeeded",
                    provider=target.display_name,
                    model=target.model,
                    position=index,
                )
            return text

        self._logger.error("completion_all_targets_failed", attempts=len(failures))
        raise AllTargetsExhaustedError(failures)

    async def chat(self, system: str, user: str) -> str:
        """LLM bridge used by plugins; always reads through the cache."""

        return await self.complete(system, user, CachePolicy.NORMAL)

    async def _attempt(
        self, target: Target, request: CompletionRequest, policy: CachePolicy
    ) -> str:
        key = cache_key(target, request)
        if policy.uses_cache:
            cached = self._cache.get(key)
            if cached is not None:
                self._logger.debug(
                    "completion_cache_hit", provider=target.display_name, model=target.model
                )
                return cached

        wire = build_request(target, request)
        response = await self._send(target, wire)

        if (
            response.status_code == 400
            and allows_max_tokens_retry(target, request)
            and is_max_tokens_unsupported(response.status_code, response.text)
        ):
            self._logger.info(
                "completion_retry_without_max_tokens",
                provider=target.display_name,
                model=target.model,
            )
            wire = build_request(target, request, include_max_tokens=False)
            response = await self._send(target, wire)

        if not response.is_success:
            raise classify_failure(target, response.status_code, response.text)

        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(
                f"response is not valid JSON: {exc}",
                provider=target.display_name,
                model=target.model,
            ) from exc

        text = parse_completion(target, payload)
        if policy.uses_cache:
            self._cache.put(key, text)
        return text

    async def _send(self, target: Target, wire: WireRequest) -> httpx.Response:
        try:
            return await self._http.post(wire.url, headers=dict(wire.headers), json=dict(wire.body))
        except httpx.InvalidURL as exc:
            raise TargetConfigError(
                f"invalid endpoint URL {wire.url!r}: {exc}",
                provider=target.display_name,
                model=target.model,
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"request timed out: {exc}", provider=target.display_name, model=target.model
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"{type(exc).__name__}: {exc}", provider=target.display_name, model=target.model
            ) from exc

    # ------------------------------------------------------------------
    # Model discovery
    # ------------------------------------------------------------------

    async def list_models(self) -> list[str]:
        """Merge, de-duplicate and sort model names from every distinct endpoint."""

        names: set[str] = set()
        failures: list[str] = []
        seen: set[tuple[str, str, str | None]] = set()

        for target in self._targets:
            endpoint = (target.base_url, target.auth_scheme.value, target.api_key)
            if endpoint in seen:
                continue
            seen.add(endpoint)

            primary, secondary = model_list_urls(target)
            try:
                headers = model_list_headers(target)
            except TargetConfigError as exc:
                failures.append(f"- [{target.display_name}] {exc.detail}")
                continue

            try:
                names.update(await self._fetch_models(target, primary, headers))
                continue
            except CompletionError as exc:
                if secondary is None:
                    failures.append(f"- [{target.display_name}] {exc.detail}")
                    continue
                self._logger.info(
                    "model_listing_secondary_endpoint",
                    provider=target.display_name,
                    reason=exc.code,
                )

            try:
                names.update(await self._fetch_models(target, secondary, headers))
            except CompletionError as exc:
                failures.append(f"- [{target.display_name}] {exc.detail}")

        if not names:
            raise AllTargetsExhaustedError(failures, header=MODEL_DISCOVERY_HEADER)
        return sorted(names)

    async def _fetch_models(
        self, target: Target, url: str, headers: dict[str, str]
    ) -> list[str]:
        try:
            response = await self._http.get(url, headers=headers)
        except httpx.InvalidURL as exc:
            raise TargetConfigError(
                f"invalid endpoint URL {url!r}: {exc}", provider=target.display_name
            ) from exc
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"request timed out: {exc}", provider=target.display_name
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"{type(exc).__name__}: {exc}", provider=target.display_name
            ) from exc

        if not response.is_success:
            raise classify_failure(target, response.status_code, response.text)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ParseError(
                f"model list is not valid JSON: {exc}", provider=target.display_name
            ) from exc
        return parse_model_list(payload)


__all__ = ["CompletionClient", "MODEL_DISCOVERY_HEADER"]
