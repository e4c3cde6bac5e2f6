"""Contrato de los sumideros de salida.

Una sola interfaz con dos implementaciones (buffer, stream) mantiene el pool
agnóstico del formato: el pool produce `Outcome`s, el sumidero decide cómo
se serializan.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class OutputSink(Protocol):
    def write(self, record: Any) -> None:
        """Recibe el valor de un `Outcome` exitoso."""

        ...

    def close(self, *, cancelled: bool = False) -> None:
        """Fin del canal de resultados."""

        ...
