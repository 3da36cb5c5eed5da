from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Optional

from ai_assist.indicator import GeneratedOutput
from config.schema import StrategyConfig


class GenerationInProgress(RuntimeError):
    code = "GENERATION_IN_PROGRESS"


@dataclass
class GeneratorSession:
    """Launcher page state: idle -> loading -> success | error.

    Only one generation may be in flight; `begin` rejects a second one.
    """

    config: StrategyConfig = field(default_factory=StrategyConfig)
    output: Optional[GeneratedOutput] = None
    loading: bool = False
    error: Optional[str] = None
    error_code: Optional[str] = None
    credential_configured: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def status(self) -> str:
        with self._lock:
            if self.loading:
                return "loading"
            if self.error is not None:
                return "error"
            if self.output is not None:
                return "success"
            return "idle"

    def _merged(self, changes: dict[str, Any]) -> StrategyConfig:
        data = self.config.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        return StrategyConfig.model_validate(data)

    def update_config(self, **changes: Any) -> StrategyConfig:
        with self._lock:
            self.config = self._merged(changes)
            return self.config

    def begin(self, **changes: Any) -> StrategyConfig:
        """Start a generation, applying ``changes`` to the config first.

        A rejected call (already loading, or invalid changes) leaves the
        session untouched.
        """
        with self._lock:
            if self.loading:
                raise GenerationInProgress("A generation is already running")
            if changes:
                self.config = self._merged(changes)
            self.loading = True
            self.error = None
            self.error_code = None
            return self.config

    def succeed(self, output: GeneratedOutput) -> None:
        with self._lock:
            self.output = output
            self.credential_configured = True

    def fail(self, message: str, code: Optional[str] = None) -> None:
        with self._lock:
            self.error = message
            self.error_code = code

    def finish(self) -> None:
        with self._lock:
            self.loading = False

    def mark_credential(self, configured: bool) -> None:
        with self._lock:
            self.credential_configured = configured

    def snapshot(self) -> dict[str, Any]:
        status = self.status
        with self._lock:
            return {
                "status": status,
                "config": self.config.to_wire(),
                "output": self.output.to_wire() if self.output is not None else None,
                "loading": self.loading,
                "error": self.error,
                "error_code": self.error_code,
                "credential_configured": self.credential_configured,
            }
