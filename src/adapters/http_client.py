"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts, headers y autenticación para todas las llamadas a la
  API de directorio.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from core.config import AppSettings


def build_async_client(
    settings: AppSettings | None = None,
    *,
    extra_headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` con defaults seguros.

    Por qué un builder:
    - Centraliza base_url/timeouts/headers para que todos los verbos se
      comporten igual.
    - El token (si hay) viaja como `Authorization: Bearer`; obtenerlo o
      refrescarlo queda fuera de la herramienta.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    if settings.access_token:
        headers["Authorization"] = f"Bearer {settings.access_token}"
    if extra_headers:
        headers.update(extra_headers)
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=True,
        headers=headers,
        transport=transport,
    )
