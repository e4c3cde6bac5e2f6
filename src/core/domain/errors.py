"""Excepciones del dominio.

Por qué una jerarquía propia:
- El motor distingue errores por *alcance*: los de fila (`RowError`) se
  registran y se saltan; los de invocación abortan con código distinto de 0.
- Los adaptadores traducen errores de librerías (httpx) a `RemoteError`, así
  el clasificador no depende de ningún SDK concreto.
"""

from __future__ import annotations


class WsadminError(Exception):
    """Base de todos los errores propios."""


class RowError(WsadminError):
    """Una fila (o invocación simple) no produce un mapa de argumentos válido."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        super().__init__(message)
        self.line = line


class MalformedRowError(RowError):
    pass


class RequiredOptionMissingError(RowError):
    def __init__(self, option: str, verb: str, *, line: int | None = None) -> None:
        super().__init__(f"required option '{option}' is missing or empty for '{verb}'", line=line)
        self.option = option
        self.verb = verb


class InputSourceError(WsadminError):
    """El fichero de entrada no se puede usar (no existe, cabecera inválida...)."""


class MembershipResolutionError(WsadminError):
    """Todas las fuentes de membresía fallaron."""


class OutputSinkError(WsadminError):
    """No se pudo escribir la salida."""


class UnknownVerbError(WsadminError):
    pass


class RemoteError(WsadminError):
    """Error devuelto por la API remota.

    `status` es el código HTTP (None si la petición no llegó a tener respuesta),
    `reason` el primer `errors[].reason` del cuerpo de error, si lo hay.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        reason: str | None = None,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.reason = reason
        self.retry_after = retry_after

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        if self.reason:
            return f"HTTP {self.status} ({self.reason}): {self.message}"
        return f"HTTP {self.status}: {self.message}"


class RemoteTransportError(RemoteError):
    """Fallo de red/transporte (reset, timeout) antes de obtener respuesta."""
