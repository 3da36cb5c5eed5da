from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from google import genai
from google.genai import errors, types

from adapters.llm.credentials import CredentialProvider, EnvCredentialProvider
from adapters.llm.providers.base import (
    CredentialInvalidError,
    CredentialMissingError,
    EmptyResponseError,
    LLMProvider,
    LLMProviderError,
    LLMResponse,
)


MIN_API_KEY_LENGTH = 10

# Substrings Gemini uses when the key is unknown, malformed or revoked.
# Matching is case-insensitive against the whole error text.
CREDENTIAL_ERROR_PATTERNS: dict[str, type[LLMProviderError]] = {
    "requested entity was not found": CredentialInvalidError,
    "api key not valid": CredentialInvalidError,
    "api_key_invalid": CredentialInvalidError,
    "api key expired": CredentialInvalidError,
    "permission_denied": CredentialInvalidError,
}


def classify_error_message(message: str) -> type[LLMProviderError]:
    text = (message or "").lower()
    for needle, err_cls in CREDENTIAL_ERROR_PATTERNS.items():
        if needle in text:
            return err_cls
    return LLMProviderError


def _default_client(api_key: str) -> Any:
    return genai.Client(api_key=api_key)


def _token_count(usage: Any, attr: str) -> int | None:
    value = getattr(usage, attr, None)
    return value if isinstance(value, int) else None


@dataclass
class GeminiClient(LLMProvider):
    """Google Gemini client built on the `google-genai` SDK.

    The API key is pulled from `credentials` on every call and a fresh SDK
    client is built from it, so a key entered mid-session is used at once.
    A key that is missing or shorter than `min_key_length` fails before any
    request is sent.
    """

    credentials: CredentialProvider = field(default_factory=EnvCredentialProvider)
    min_key_length: int = MIN_API_KEY_LENGTH
    client_factory: Callable[[str], Any] = field(default=_default_client, repr=False)

    @property
    def name(self) -> str:  # type: ignore[override]
        return "gemini"

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
        api_key = (self.credentials.get_api_key() or "").strip()
        if len(api_key) < self.min_key_length:
            raise CredentialMissingError("Gemini API key is not configured")

        system_text = "\n\n".join(m["content"] for m in messages if m.get("role") == "system")
        contents = [
            types.Content(
                role="model" if m.get("role") == "assistant" else "user",
                parts=[types.Part(text=m["content"])],
            )
            for m in messages
            if m.get("role") != "system"
        ]

        config = types.GenerateContentConfig(
            temperature=temperature,
            system_instruction=system_text or None,
            response_mime_type="application/json" if (response_schema is not None or response_format == "json") else None,
            response_schema=response_schema,
            http_options=types.HttpOptions(timeout=int(timeout_s * 1000)),
        )

        t0 = time.perf_counter()
        try:
            client = self.client_factory(api_key)
            response = client.models.generate_content(model=model, contents=contents, config=config)
        except errors.APIError as e:
            message = f"Gemini error {e.code}: {e.message or e}"
            if e.status:
                message += f" [{e.status}]"
            raise classify_error_message(f"{message} {e}")(message) from e
        except Exception as e:
            raise LLMProviderError(f"Gemini request failed ({type(e).__name__}: {e})") from e
        latency_s = time.perf_counter() - t0

        try:
            text = response.text
        except Exception as e:
            raise LLMProviderError(f"Could not read Gemini response text ({type(e).__name__}: {e})") from e
        if text is not None and not isinstance(text, str):
            raise LLMProviderError(f"Unexpected Gemini response text of type {type(text).__name__}")
        if not (text or "").strip():
            raise EmptyResponseError("Gemini returned no response text")

        usage = getattr(response, "usage_metadata", None)
        response_id = getattr(response, "response_id", None)
        raw = response.model_dump(mode="json", exclude_none=True) if hasattr(response, "model_dump") else {}

        return LLMResponse(
            provider=self.name,
            model=model,
            content=text.strip(),
            raw=raw,
            request_id=str(response_id) if response_id is not None else None,
            prompt_tokens=_token_count(usage, "prompt_token_count"),
            completion_tokens=_token_count(usage, "candidates_token_count"),
            total_tokens=_token_count(usage, "total_token_count"),
            latency_s=latency_s,
        )
