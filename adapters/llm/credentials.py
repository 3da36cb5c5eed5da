"""API key sources for the completion providers.

Keys are resolved on every call so a key entered mid-session is picked up by
the next generation without restarting anything.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from typing import Protocol


class CredentialProvider(Protocol):
    def get_api_key(self) -> str | None:
        raise NotImplementedError


class KeySelector(Protocol):
    """Hosting-environment hook for choosing an API key interactively."""

    def has_credential(self) -> bool:
        raise NotImplementedError

    def open_selector(self) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class EnvCredentialProvider:
    var_name: str = "GEMINI_API_KEY"

    def get_api_key(self) -> str | None:
        return os.environ.get(self.var_name)


@dataclass(frozen=True)
class StaticCredentialProvider:
    value: str | None = None

    def get_api_key(self) -> str | None:
        return self.value


class ChainedCredentialProvider:
    """First provider returning a non-empty key wins."""

    def __init__(self, *providers: CredentialProvider) -> None:
        self._providers = providers

    def get_api_key(self) -> str | None:
        for p in self._providers:
            key = p.get_api_key()
            if key:
                return key
        return None


class NullKeySelector:
    def has_credential(self) -> bool:
        return False

    def open_selector(self) -> None:
        return None


class SessionKeyStore:
    """In-memory API key set through the launcher's key form.

    Acts as a credential provider for the clients and as the key selector for
    the UI: `open_selector` only raises a flag the page uses to show the form.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._key: str | None = None
        self._selector_requested = False

    def get_api_key(self) -> str | None:
        with self._lock:
            return self._key

    def set_api_key(self, key: str | None) -> None:
        with self._lock:
            self._key = (key or "").strip() or None
            self._selector_requested = False

    def clear(self) -> None:
        self.set_api_key(None)

    def has_credential(self) -> bool:
        with self._lock:
            return self._key is not None

    def open_selector(self) -> None:
        with self._lock:
            self._selector_requested = True

    @property
    def selector_requested(self) -> bool:
        with self._lock:
            return self._selector_requested
