"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP) y servicios (pool, retrier) lean config de
  forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core.domain.models import RetryPolicy

DEFAULT_WORKERS = 4


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "wsadmin"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "wsadmin"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "wsadmin"
    return Path.home() / ".config" / "wsadmin"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], *, env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# wsadmin user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters/servicios.
    """

    model_config = SettingsConfigDict(
        env_prefix="WSADMIN_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request (segundos).",
    )
    user_agent: str = Field(
        default="wsadmin/0.1",
        min_length=1,
        description="User-Agent para las peticiones a la API.",
    )
    api_base_url: str = Field(
        default="https://admin.googleapis.com/admin/directory/v1",
        min_length=8,
        description="Base URL de la API de directorio.",
    )
    access_token: str | None = Field(
        default=None,
        description="Bearer token OAuth2 (la obtención/refresco queda fuera de la herramienta).",
    )
    customer: str = Field(
        default="my_customer",
        min_length=1,
        description="Cliente usado al listar usuarios de una unidad organizativa.",
    )

    threads: int | None = Field(
        default=None,
        ge=1,
        description="Workers por defecto para batch/recursive (si no se pasa --batchThreads).",
    )
    max_threads: int = Field(
        default=16,
        ge=1,
        le=256,
        description="Tope de workers por invocación.",
    )
    request_gap_ms: int = Field(
        default=200,
        ge=0,
        description="Separación mínima (ms) entre operaciones consecutivas de un worker.",
    )

    retry_initial_delay: float = Field(default=1.0, ge=0, description="Primera espera del backoff (s).")
    retry_max_delay: float = Field(default=32.0, ge=0, description="Espera máxima del backoff (s).")
    retry_multiplier: float = Field(default=2.0, ge=1.0)
    retry_max_attempts: int = Field(default=5, ge=1, le=20)
    retry_jitter: float = Field(default=0.1, ge=0.0, lt=1.0)
    retry_honor_retry_after: bool = Field(
        default=False,
        description="Respetar Retry-After como espera mínima (rompe la cota del backoff).",
    )
    retry_on: list[int] = Field(
        default_factory=list,
        description="Códigos HTTP adicionales que se reintentan (JSON, p.ej. [404]).",
    )

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            initial_delay=self.retry_initial_delay,
            max_delay=max(self.retry_max_delay, self.retry_initial_delay),
            multiplier=self.retry_multiplier,
            max_attempts=self.retry_max_attempts,
            jitter=self.retry_jitter,
            honor_retry_after=self.retry_honor_retry_after,
        )

    def worker_count(self, override: int | None = None) -> int:
        """Workers efectivos: --batchThreads, luego config, luego min(4, CPUs); siempre con tope."""

        if override:
            threads = override
        elif self.threads:
            threads = self.threads
        else:
            threads = min(DEFAULT_WORKERS, os.cpu_count() or 1)
        return max(1, min(threads, self.max_threads))

    @property
    def request_gap_seconds(self) -> float:
        return self.request_gap_ms / 1000.0
