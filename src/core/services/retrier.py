"""Reintentos con backoff exponencial y jitter.

Por qué una función de orden superior:
- El retrier no conoce ningún tipo de error remoto: recibe un clasificador
  (`Disposition`) y una política (`RetryPolicy`).
- Así el mismo retrier envuelve llamadas httpx reales o fakes en tests.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable

from core.domain.errors import WsadminError
from core.domain.models import FailureKind, Outcome, RetryPolicy
from core.services.channel import pause
from core.services.classifier import Disposition
from core.services.hooks import EngineHooks

Classifier = Callable[[BaseException], Disposition]


class Retrier:
    def __init__(
        self,
        policy: RetryPolicy,
        classifier: Classifier,
        *,
        cancel: asyncio.Event | None = None,
        hooks: EngineHooks | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.policy = policy
        self.classifier = classifier
        self.cancel = cancel
        self.hooks = hooks or EngineHooks()
        self._rng = rng or random.Random()

    def delay_for(self, attempt: int, exc: BaseException | None = None) -> float:
        """Espera tras el fallo número `attempt` (1-based), con jitter aplicado."""

        base = self.policy.base_delay(attempt)
        retry_after = getattr(exc, "retry_after", None)
        if self.policy.honor_retry_after and isinstance(retry_after, (int, float)) and retry_after > 0:
            base = max(base, min(self.policy.max_delay, float(retry_after)))
        jitter = self.policy.jitter
        if jitter:
            base *= self._rng.uniform(1.0 - jitter, 1.0 + jitter)
        return base

    async def run(self, call: Callable[[], Awaitable[Any]], *, key: str = "") -> Outcome:
        """Ejecuta `call` hasta éxito, error fatal/skip o agotar intentos."""

        attempt = 0
        while True:
            if self.cancel is not None and self.cancel.is_set():
                return Outcome.failure(
                    FailureKind.CANCELLED,
                    "cancelled before attempt",
                    key=key,
                    attempts=attempt,
                )
            attempt += 1
            try:
                value = await call()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                disposition = self.classifier(exc)
                if disposition is Disposition.SKIP:
                    return Outcome.failure(FailureKind.SKIPPED, str(exc), key=key, attempts=attempt)
                if disposition is Disposition.FATAL:
                    if isinstance(exc, WsadminError):
                        return Outcome.failure(FailureKind.FATAL, str(exc), key=key, attempts=attempt)
                    # Excepción ajena a la API: fallo de la propia operación.
                    return Outcome.failure(
                        FailureKind.CRASHED,
                        f"{type(exc).__name__}: {exc}",
                        key=key,
                        attempts=attempt,
                    )
                if attempt >= self.policy.max_attempts:
                    return Outcome.failure(
                        FailureKind.EXHAUSTED,
                        f"max retries reached: {exc}",
                        key=key,
                        retryable=True,
                        attempts=attempt,
                    )
                delay = self.delay_for(attempt, exc)
                self.hooks.report_retry(key, attempt, delay, exc)
                if not await pause(delay, self.cancel):
                    return Outcome.failure(
                        FailureKind.CANCELLED,
                        f"cancelled while backing off: {exc}",
                        key=key,
                        retryable=True,
                        attempts=attempt,
                    )
                continue
            return Outcome.success(value, key=key, attempts=attempt)
