"""LLM provider adapters.

These adapters are intentionally thin wrappers around external model providers.
They turn vendor errors into the small error taxonomy in `providers.base` and
leave parsing of the model output to the caller.
"""

from __future__ import annotations

from adapters.llm.credentials import CredentialProvider
from adapters.llm.providers.base import LLMProvider
from adapters.llm.providers.gemini import GeminiClient


def make_provider(name: str, *, credentials: CredentialProvider, min_key_length: int = 10) -> LLMProvider:
    if name == "gemini":
        return GeminiClient(credentials=credentials, min_key_length=min_key_length)
    raise ValueError(f"Unsupported provider: {name}")
