"""Valores resueltos de una invocación.

`Value` guarda el valor y si el llamante lo fijó explícitamente. Ese bit es
el que permite a los constructores de peticiones distinguir "omitir el campo"
de "enviar el campo con su valor cero" (force-send).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from core.domain.flags import FlagKind


@dataclass(frozen=True)
class Value:
    """Valor de una opción dentro de un `ArgumentMap`."""

    kind: FlagKind
    raw: Any = None
    is_set: bool = False

    def _typed(self, kind: FlagKind) -> Any:
        if self.raw is None:
            return kind.zero()
        if not kind.accepts(self.raw):
            raise TypeError(f"value {self.raw!r} is not a {kind.value}")
        return self.raw

    def string(self) -> str:
        return self._typed(FlagKind.STRING)

    def integer(self) -> int:
        return self._typed(FlagKind.INTEGER)

    def boolean(self) -> bool:
        return self._typed(FlagKind.BOOLEAN)

    def floating(self) -> float:
        return float(self._typed(FlagKind.FLOATING))

    def sequence(self) -> list[str]:
        return list(self._typed(FlagKind.SEQUENCE))

    def is_empty(self) -> bool:
        """Vacío a efectos de "required": None, cadena vacía o secuencia vacía."""

        if self.raw is None:
            return True
        if isinstance(self.raw, str):
            return self.raw == ""
        if isinstance(self.raw, (list, tuple)):
            return len(self.raw) == 0
        return False


@dataclass
class RequestBody:
    """Cuerpo de una petición de escritura (insert/patch).

    Solo contiene los campos cuyo Value está fijado, incluidos los fijados a
    su valor cero (cadena vacía, lista vacía): el propio JSON los transmite,
    así que no hace falta una lista aparte de campos forzados.
    """

    fields: dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> dict[str, Any]:
        return dict(self.fields)


class ArgumentMap(Mapping[str, Value]):
    """Entrada completa de una llamada remota: nombre de opción -> Value."""

    def __init__(self, verb: str, values: Mapping[str, Value], *, correlation_key: str = "") -> None:
        self.verb = verb
        self._values = dict(values)
        self.correlation_key = correlation_key or verb

    def __getitem__(self, name: str) -> Value:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"ArgumentMap({self.verb!r}, {self.to_dict()!r})"

    def is_set(self, name: str) -> bool:
        value = self._values.get(name)
        return value is not None and value.is_set

    def string(self, name: str) -> str:
        return self[name].string()

    def integer(self, name: str) -> int:
        return self[name].integer()

    def boolean(self, name: str) -> bool:
        return self[name].boolean()

    def floating(self, name: str) -> float:
        return self[name].floating()

    def sequence(self, name: str) -> list[str]:
        return self[name].sequence()

    def to_dict(self) -> dict[str, Any]:
        return {name: value.raw for name, value in self._values.items()}

    def with_value(self, name: str, raw: Any, *, correlation_key: str | None = None) -> "ArgumentMap":
        """Copia con `name` fijado explícitamente (usado por el modo recursivo)."""

        if name not in self._values:
            raise KeyError(name)
        values = dict(self._values)
        values[name] = Value(kind=values[name].kind, raw=raw, is_set=True)
        return ArgumentMap(self.verb, values, correlation_key=correlation_key or self.correlation_key)

    def request_body(self, fields: Mapping[str, str]) -> RequestBody:
        """Construye el cuerpo a partir de un mapeo opción -> campo remoto."""

        body = RequestBody()
        for option, remote_field in fields.items():
            value = self._values.get(option)
            if value is None or not value.is_set:
                continue
            body.fields[remote_field] = value.raw if not isinstance(value.raw, tuple) else list(value.raw)
        return body
