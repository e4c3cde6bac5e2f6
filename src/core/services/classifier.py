"""Clasificación de errores remotos: reintentar, abandonar o saltar.

Único punto de verdad sobre códigos de estado: ningún otro componente
ramifica sobre el status HTTP.
"""

from __future__ import annotations

import asyncio
import re
from enum import Enum
from typing import Iterable

from core.domain.errors import RemoteError, RemoteTransportError

# Motivos con los que la API señala limitación temporal por usuario/cuota.
_THROTTLE_REASONS = frozenset(
    {
        "ratelimitexceeded",
        "userratelimitexceeded",
        "quotaexceeded",
        "backenderror",
    }
)
_THROTTLE_WORDS = re.compile(r"quota|limit|rate")

_ALREADY_REASONS = frozenset({"duplicate", "alreadyexists", "conflict"})
_ALREADY_WORDS = ("already exists", "already a member", "duplicate")


class Disposition(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"
    SKIP = "skip"


class ErrorClassifier:
    """Mapea una excepción a `Disposition`.

    `retry_on` añade códigos HTTP que también se reintentan (configurable,
    p.ej. para propagación eventual tras crear un recurso).
    """

    def __init__(self, retry_on: Iterable[int] = ()) -> None:
        self.retry_on = frozenset(retry_on)

    def __call__(self, exc: BaseException) -> Disposition:
        return self.classify(exc)

    def classify(self, exc: BaseException) -> Disposition:
        if isinstance(exc, RemoteTransportError):
            return Disposition.RETRYABLE
        if isinstance(exc, (ConnectionError, asyncio.TimeoutError)):
            return Disposition.RETRYABLE
        if not isinstance(exc, RemoteError):
            return Disposition.FATAL

        status = exc.status
        reason = (exc.reason or "").lower()
        message = (exc.message or "").lower()

        if status is None:
            return Disposition.FATAL
        if status in self.retry_on:
            return Disposition.RETRYABLE
        if status == 429 or 500 <= status <= 599:
            return Disposition.RETRYABLE
        if status == 403 and (reason in _THROTTLE_REASONS or _THROTTLE_WORDS.search(message)):
            return Disposition.RETRYABLE
        if status == 409 or reason in _ALREADY_REASONS or any(w in message for w in _ALREADY_WORDS):
            return Disposition.SKIP
        return Disposition.FATAL
