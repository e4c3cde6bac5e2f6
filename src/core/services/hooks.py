"""Callbacks opcionales para la capa de UI.

Los servicios del Core no imprimen nada: informan a través de `EngineHooks`
y la CLI decide cómo mostrarlo (stderr, una línea por evento).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass
class EngineHooks:
    """Optional callbacks for UI layers (diagnostics, retries)."""

    diagnostic: Callable[[str, str, str], None] | None = None
    retry: Callable[[str, int, float, BaseException], None] | None = None

    def report(self, key: str, phase: str, text: str) -> None:
        if self.diagnostic:
            self.diagnostic(key, phase, text)

    def report_retry(self, key: str, attempt: int, delay: float, exc: BaseException) -> None:
        if self.retry:
            self.retry(key, attempt, delay, exc)
        else:
            self.report(key, f"retrying in {delay:.2f}s (attempt {attempt})", str(exc))
