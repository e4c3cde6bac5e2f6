"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Validación estricta de políticas y configuraciones en el borde (p.ej. un
  `RetryPolicy` con multiplicador < 1 es un error de configuración, no un
  bug en tiempo de ejecución).
- Los resultados (`Outcome`) viajan por canales entre tareas; un modelo
  inmutable evita compartir estado mutable entre workers.

Nota:
- Estos modelos describen *qué* fluye por el motor, no *cómo* se obtiene.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


class OutputMode(str, Enum):
    """Disciplina de salida elegida al invocar."""

    STREAM = "stream"
    BUFFER = "buffer"


class FailureKind(str, Enum):
    FATAL = "fatal"
    EXHAUSTED = "exhausted"
    SKIPPED = "skipped"
    CRASHED = "crashed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class RetryPolicy(BaseModel):
    """Backoff exponencial con jitter para una llamada remota."""

    model_config = ConfigDict(frozen=True)

    initial_delay: float = Field(
        default=1.0,
        ge=0,
        description="Espera (segundos) tras el primer fallo reintentable.",
    )
    max_delay: float = Field(
        default=32.0,
        ge=0,
        description="Tope de la espera entre intentos (segundos).",
    )
    multiplier: float = Field(
        default=2.0,
        ge=1.0,
        description="Factor de crecimiento entre intentos.",
    )
    max_attempts: int = Field(
        default=5,
        ge=1,
        description="Número máximo de intentos (incluye el primero).",
    )
    jitter: float = Field(
        default=0.1,
        ge=0.0,
        lt=1.0,
        description="Perturbación relativa (+/-) aplicada a cada espera.",
    )
    honor_retry_after: bool = Field(
        default=False,
        description="Usar Retry-After del servidor como espera mínima (tope max_delay).",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetryPolicy":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self

    def base_delay(self, attempt: int) -> float:
        """Espera sin jitter tras el fallo número `attempt` (1-based)."""

        return min(self.max_delay, self.initial_delay * self.multiplier ** (attempt - 1))


class PoolConfig(BaseModel):
    """Configuración del pool de workers de una invocación."""

    model_config = ConfigDict(frozen=True)

    workers: int = Field(..., ge=1, description="Número exacto de workers.")
    gap_seconds: float = Field(
        default=0.2,
        ge=0.0,
        description="Separación mínima entre operaciones consecutivas de un worker.",
    )

    @property
    def capacity(self) -> int:
        return self.workers


class MembershipSources(BaseModel):
    """Unidades organizativas y grupos a expandir en modo recursivo."""

    model_config = ConfigDict(frozen=True)

    org_units: tuple[str, ...] = Field(default=())
    group_emails: tuple[str, ...] = Field(default=())

    @model_validator(mode="after")
    def _at_least_one(self) -> "MembershipSources":
        if not self.org_units and not self.group_emails:
            raise ValueError("at least one orgUnit or groupEmail is required")
        return self


class Outcome(BaseModel):
    """Resultado de ejecutar una operación sobre un mapa de argumentos."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(default="", description="Clave de correlación (diagnóstico).")
    ok: bool
    value: Any = None
    kind: FailureKind | None = None
    message: str = ""
    retryable: bool = False
    attempts: int = Field(default=0, ge=0)

    @classmethod
    def success(cls, value: Any, *, key: str = "", attempts: int = 1) -> "Outcome":
        return cls(key=key, ok=True, value=value, attempts=attempts)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        message: str,
        *,
        key: str = "",
        retryable: bool = False,
        attempts: int = 0,
    ) -> "Outcome":
        return cls(key=key, ok=False, kind=kind, message=message, retryable=retryable, attempts=attempts)

    @property
    def caller_visible_failure(self) -> bool:
        """Un `skipped` no es un error: el recurso ya estaba en el estado pedido."""

        return not self.ok and self.kind is not FailureKind.SKIPPED
