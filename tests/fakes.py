"""Test doubles shared by the provider and launcher tests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from google.genai import errors, types

from adapters.llm.providers.base import LLMProvider, LLMResponse


VALID_DOCUMENT = {"code": "x", "explanation": "y", "keyFeatures": ["a", "b"]}


@dataclass
class FakeGenaiClient:
    """Stands in for `google.genai.Client`.

    Pass the instance itself as `GeminiClient.client_factory`; it records the
    key each client is built with and every `generate_content` call.
    """

    response: Any = None
    api_keys: list[str] = field(default_factory=list)
    calls: list[dict[str, Any]] = field(default_factory=list)

    def __call__(self, api_key: str) -> "FakeGenaiClient":
        self.api_keys.append(api_key)
        return self

    @property
    def models(self) -> "FakeGenaiClient":
        return self

    def generate_content(self, *, model: str, contents: Any, config: Any = None) -> Any:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if isinstance(self.response, BaseException):
            raise self.response
        return self.response


def gemini_response(text: str | None, *, candidates: bool = True) -> types.GenerateContentResponse:
    parts = [] if text is None else [types.Part(text=text)]
    return types.GenerateContentResponse(
        candidates=[types.Candidate(content=types.Content(role="model", parts=parts))] if candidates else [],
        usage_metadata=types.GenerateContentResponseUsageMetadata(
            prompt_token_count=120, candidates_token_count=80, total_token_count=200
        ),
        response_id="resp-1",
    )


def gemini_document(document: dict[str, Any] = VALID_DOCUMENT) -> types.GenerateContentResponse:
    return gemini_response(json.dumps(document))


def gemini_error(code: int, message: str, status: str = "", reason: str = "") -> Exception:
    err: dict[str, Any] = {"code": code, "message": message}
    if status:
        err["status"] = status
    if reason:
        err["details"] = [{"@type": "type.googleapis.com/google.rpc.ErrorInfo", "reason": reason}]
    cls = errors.ServerError if code >= 500 else errors.ClientError
    return cls(code, {"error": err})


@dataclass
class FakeProvider(LLMProvider):
    name: str = "fake"
    content: str = json.dumps(VALID_DOCUMENT)
    error: BaseException | None = None
    calls: list[dict[str, Any]] = field(default_factory=list)

    def chat(
        self,
        *,
        model: str,
        messages: list[dict[str, str]],
        temperature: float = 0.0,
        response_format: str | None = None,
        response_schema: dict[str, Any] | None = None,
        timeout_s: float = 120.0,
    ) -> LLMResponse:
        self.calls.append(
            {"model": model, "messages": messages, "response_format": response_format, "response_schema": response_schema}
        )
        if self.error is not None:
            raise self.error
        return LLMResponse(provider=self.name, model=model, content=self.content, raw={"messages": messages})
