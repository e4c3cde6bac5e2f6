"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- stdout queda reservado para el JSON de resultados: todo lo demás
  (diagnósticos, tablas de `doctor`) sale por aquí.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from core.services.hooks import EngineHooks

err_console = Console(stderr=True, highlight=False, soft_wrap=True)


def diagnostic_line(key: str, phase: str, text: str) -> str:
    """Formato de una línea de diagnóstico: `<clave>: <fase>, <texto>`."""

    return f"{key}: {phase}, {text}"


def build_engine_hooks(console: Console | None = None) -> EngineHooks:
    """Hooks del motor que escriben una línea por evento en stderr.

    Por qué `Text` y no un string:
    - Los mensajes de la API pueden traer corchetes; como `Text` no se
      interpretan como markup de Rich.
    """

    console = console or err_console

    def _diagnostic(key: str, phase: str, text: str) -> None:
        console.print(Text(diagnostic_line(key, phase, text)))

    return EngineHooks(diagnostic=_diagnostic)


def build_checks_table(title: str) -> Table:
    table = Table(title=title)
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")
    return table
