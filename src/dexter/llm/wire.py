"""
dexter — provider wire formats

File: src/dexter/llm/wire.py
Last updated: 2026-10-19

Purpose
- Pure functions from (target, request) to an HTTP request description and
  from a response body back to completion text, per ``WireFamily``.
- Failure classification for non-2xx responses.
- Model-listing endpoints and response parsing.

Functional requirements
- No I/O here; ``dexter.llm.client`` owns the transport.
- Anthropic bodies always carry ``max_tokens``; the other families only
  when the caller set one.
- A missing credential raises ``TargetConfigError`` before any request.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final

from dexter.config.providers import AuthScheme, ProviderKind
from dexter.constants import (
    ANTHROPIC_API_VERSION,
    DEFAULT_ANTHROPIC_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ERROR_BODY_LIMIT,
)
from dexter.llm.errors import (
    EmptyCandidateError,
    FailureKind,
    ParseError,
    ProviderError,
    TargetConfigError,
)
from dexter.llm.targets import Target, WireFamily
from dexter.utils.hashing import canonical_json, sha256_text

_RATE_LIMIT_MARKERS: Final[tuple[str, ...]] = (
    "quota",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "resource_exhausted",
    "too many requests",
)
_CONTENT_POLICY_MARKERS: Final[tuple[str, ...]] = (
    "content filter",
    "content_filter",
    "content policy",
    "content_policy",
    "safety",
    "blocked",
)
_UNSUPPORTED_PARAM_MARKERS: Final[tuple[str, ...]] = (
    "unsupported",
    "not supported",
    "unrecognized",
    "unknown",
    "extra",
)
_MAX_TOKENS_FIELDS: Final[tuple[str, ...]] = ("max_tokens", "max_completion_tokens")


@dataclass(frozen=True, slots=True)
class CompletionParams:
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    """Chat-style completion request; a plain value, never shared."""

    system_prompt: str
    user_input: str
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int | None = None

    @classmethod
    def build(
        cls, system_prompt: str, user_input: str, params: CompletionParams
    ) -> CompletionRequest:
        return cls(
            system_prompt=system_prompt,
            user_input=user_input,
            temperature=params.temperature,
            max_tokens=params.max_tokens,
        )


@dataclass(frozen=True, slots=True)
class WireRequest:
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Mapping[str, object] = field(default_factory=dict)


def endpoint_url(target: Target) -> str:
    base = target.base_url.rstrip("/")
    if target.wire_family is WireFamily.ANTHROPIC:
        return f"{base}/messages"
    return f"{base}/chat/completions"


def build_headers(target: Target) -> dict[str, str]:
    """Return auth headers for ``target`` or raise ``TargetConfigError``."""

    scheme = target.auth_scheme
    if scheme is AuthScheme.NONE:
        return {}

    key = (target.api_key or "").strip()
    if not key:
        raise TargetConfigError(
            f"missing API key for {scheme.value} auth",
            provider=target.display_name,
            model=target.model,
        )
    _require_ascii_key(target, key)
    if scheme is AuthScheme.BEARER:
        return {"Authorization": f"Bearer {key}"}
    if scheme is AuthScheme.API_KEY:
        return {"Authorization": f"Api-Key {key}"}
    return {"x-api-key": key, "anthropic-version": ANTHROPIC_API_VERSION}


def _require_ascii_key(target: Target, key: str) -> None:
    # HTTP header values are encoded as ASCII.
    if not key.isascii():
        raise TargetConfigError(
            "API key contains non-ASCII characters",
            provider=target.display_name,
            model=target.model,
        )


def build_body(
    target: Target,
    request: CompletionRequest,
    *,
    include_max_tokens: bool = True,
) -> dict[str, object]:
    family = target.wire_family
    body: dict[str, object] = {"model": target.model, "temperature": request.temperature}

    if family is WireFamily.ANTHROPIC:
        body["system"] = request.system_prompt
        body["messages"] = [{"role": "user", "content": request.user_input}]
        body["max_tokens"] = request.max_tokens or DEFAULT_ANTHROPIC_MAX_TOKENS
        return body

    if family is WireFamily.GEMINI:
        merged = f"{request.system_prompt}\n\n{request.user_input}"
        body["messages"] = [{"role": "user", "content": merged}]
    else:
        body["messages"] = [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_input},
        ]
    if include_max_tokens and request.max_tokens is not None:
        body["max_tokens"] = request.max_tokens
    return body


def build_request(
    target: Target,
    request: CompletionRequest,
    *,
    include_max_tokens: bool = True,
) -> WireRequest:
    headers = build_headers(target)
    return WireRequest(
        url=endpoint_url(target),
        headers=headers,
        body=build_body(target, request, include_max_tokens=include_max_tokens),
    )


def cache_key(target: Target, request: CompletionRequest) -> str:
    """Stable key derived from the target identity and serialized request."""

    identity = [str(part) if part is not None else None for part in target.identity]
    payload = {
        "target": identity,
        "family": target.wire_family.value,
        "request": build_body(target, request),
    }
    return sha256_text(canonical_json(payload))


def allows_max_tokens_retry(target: Target, request: CompletionRequest) -> bool:
    return target.wire_family is not WireFamily.ANTHROPIC and request.max_tokens is not None


def is_max_tokens_unsupported(status_code: int, body: str) -> bool:
    if status_code != 400:
        return False
    lowered = body.lower()
    if not any(name in lowered for name in _MAX_TOKENS_FIELDS):
        return False
    return any(marker in lowered for marker in _UNSUPPORTED_PARAM_MARKERS)


def classify_failure(target: Target, status_code: int, body: str) -> ProviderError:
    """Map a non-2xx response onto a ``ProviderError`` with its ``FailureKind``."""

    lowered = body.lower()
    if status_code == 429 or any(marker in lowered for marker in _RATE_LIMIT_MARKERS):
        kind = FailureKind.RATE_LIMIT
        detail = f"rate limited or out of quota (HTTP {status_code}); try fallback"
    elif any(marker in lowered for marker in _CONTENT_POLICY_MARKERS):
        kind = FailureKind.CONTENT_POLICY
        detail = f"blocked by provider content policy (HTTP {status_code}); try fallback"
    else:
        kind = FailureKind.GENERIC
        detail = f"HTTP {status_code}: {truncate_body(body)}"
    return ProviderError(
        detail,
        kind=kind,
        provider=target.display_name,
        model=target.model,
        http_status=status_code,
    )


def truncate_body(body: str, limit: int = ERROR_BODY_LIMIT) -> str:
    text = body.strip()
    if len(text) <= limit:
        return text or "<empty body>"
    return text[:limit] + "..."


def parse_completion(target: Target, payload: object) -> str:
    """Extract the first candidate's text or raise a typed error."""

    if not isinstance(payload, Mapping):
        raise ParseError(
            f"expected JSON object, got {type(payload).__name__}",
            provider=target.display_name,
            model=target.model,
        )
    if target.wire_family is WireFamily.ANTHROPIC:
        text, reason = _anthropic_candidate(target, payload)
    else:
        text, reason = _openai_candidate(target, payload)

    if text.strip():
        return text
    if reason:
        if _is_content_filter_reason(reason):
            raise ProviderError(
                f"response blocked by content filter (finish_reason={reason})",
                kind=FailureKind.CONTENT_POLICY,
                provider=target.display_name,
                model=target.model,
            )
        raise EmptyCandidateError(
            f"model stopped without output: {reason}",
            provider=target.display_name,
            model=target.model,
        )
    raise EmptyCandidateError(
        "empty completion text", provider=target.display_name, model=target.model
    )


def _openai_candidate(target: Target, payload: Mapping[str, object]) -> tuple[str, str | None]:
    choices = payload.get("choices")
    if choices is None or choices == []:
        raise EmptyCandidateError(
            "no candidates in response", provider=target.display_name, model=target.model
        )
    if not isinstance(choices, list) or not isinstance(choices[0], Mapping):
        raise ParseError(
            "'choices' must be a list of objects",
            provider=target.display_name,
            model=target.model,
        )
    first = choices[0]
    message = first.get("message")
    content: object = message.get("content") if isinstance(message, Mapping) else None
    reason = first.get("finish_reason")
    return _content_text(content), reason if isinstance(reason, str) and reason else None


def _anthropic_candidate(
    target: Target, payload: Mapping[str, object]
) -> tuple[str, str | None]:
    blocks = payload.get("content")
    if blocks is None:
        raise EmptyCandidateError(
            "no content blocks in response", provider=target.display_name, model=target.model
        )
    if not isinstance(blocks, list):
        raise ParseError(
            "'content' must be a list of blocks",
            provider=target.display_name,
            model=target.model,
        )
    reason = payload.get("stop_reason")
    normalized_reason = reason if isinstance(reason, str) and reason else None
    if not blocks and normalized_reason is None:
        raise EmptyCandidateError(
            "no candidates in response", provider=target.display_name, model=target.model
        )
    text = "".join(
        str(block.get("text", ""))
        for block in blocks
        if isinstance(block, Mapping) and block.get("type") == "text"
    )
    return text, normalized_reason


def _content_text(content: object) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, Mapping) and isinstance(part.get("text"), str):
                parts.append(str(part["text"]))
        return "".join(parts)
    return ""


def _is_content_filter_reason(reason: str) -> bool:
    lowered = reason.lower()
    return "content_filter" in lowered or "content filter" in lowered or "safety" in lowered


def model_list_urls(target: Target) -> tuple[str, str | None]:
    """Return ``(primary, secondary)`` listing URLs for ``target``.

    The secondary URL (Ollama's native ``/api/tags``) is only consulted
    when the primary listing fails.
    """

    base = target.base_url.rstrip("/")
    if target.wire_family is WireFamily.GEMINI and base.endswith("/openai"):
        primary = f"{base.removesuffix('/openai')}/models"
    else:
        primary = f"{base}/models"

    secondary: str | None = None
    if target.provider_kind is ProviderKind.OLLAMA or ":11434" in base:
        root = base.removesuffix("/v1")
        secondary = f"{root}/api/tags"
    return primary, secondary


def model_list_headers(target: Target) -> dict[str, str]:
    if target.wire_family is WireFamily.GEMINI and target.api_key:
        # The native Gemini listing authenticates with an API-key header.
        _require_ascii_key(target, target.api_key)
        return {"x-goog-api-key": target.api_key}
    return build_headers(target)


def parse_model_list(payload: object) -> list[str]:
    """Accept ``{"data": [{"id"}]}`` or ``{"models": [{"name"}]}`` shapes."""

    if not isinstance(payload, Mapping):
        raise ParseError(f"expected JSON object, got {type(payload).__name__}")

    names: list[str] = []
    data = payload.get("data")
    if isinstance(data, list):
        for item in data:
            if isinstance(item, Mapping) and isinstance(item.get("id"), str):
                names.append(str(item["id"]))
    models = payload.get("models")
    if isinstance(models, list):
        for item in models:
            if not isinstance(item, Mapping):
                continue
            raw = item.get("name", item.get("id"))
            if isinstance(raw, str):
                names.append(raw.removeprefix("models/"))
    if data is None and models is None:
        raise ParseError("model list response has neither 'data' nor 'models'")
    return [name.strip() for name in names if name.strip()]


__all__ = [
    "CompletionParams",
    "CompletionRequest",
    "WireRequest",
    "allows_max_tokens_retry",
    "build_body",
    "build_headers",
    "build_request",
    "cache_key",
    "classify_failure",
    "endpoint_url",
    "is_max_tokens_unsupported",
    "model_list_headers",
    "model_list_urls",
    "parse_completion",
    "parse_model_list",
    "truncate_body",
]
