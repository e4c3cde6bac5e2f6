"""Construcción de mapas de argumentos (ArgumentMap).

Dos entradas:
- `from_options`: opciones ya parseadas por la CLI + qué opciones fijó el
  usuario explícitamente.
- `from_row`: una fila del CSV, con las claves de la cabecera.

Garantías: el mapa contiene exactamente las opciones disponibles para el
verbo; lo que falta hereda el default del verbo (marcado como no fijado); las
opciones obligatorias vacías rechazan la fila antes de despachar nada.
"""

from __future__ import annotations

import math
import re
from typing import Any, Collection, Mapping, Sequence

from core.domain.errors import MalformedRowError, RequiredOptionMissingError
from core.domain.flags import FlagKind, FlagSpec, FlagTable
from core.domain.values import ArgumentMap, Value

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")

_BOOLEANS = {"true": True, "false": False}


def split_sequence(text: str, separator: str = ",") -> list[str]:
    """Divide `text` por `separator`.

    Los elementos vacíos solo se conservan si venían entre comillas
    (`a,"",b` -> ["a", "", "b"]; `a,,b` -> ["a", "b"]). Comillas dobles
    duplicadas dentro de un elemento entrecomillado escapan una comilla.
    """

    items: list[str] = []
    buf: list[str] = []
    quoted = False
    in_quotes = False
    i = 0
    while i < len(text):
        ch = text[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < len(text) and text[i + 1] == '"':
                    buf.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                buf.append(ch)
        elif ch == '"' and not "".join(buf).strip():
            buf = []
            in_quotes = True
            quoted = True
        elif ch == separator:
            _flush(items, buf, quoted)
            buf = []
            quoted = False
        else:
            buf.append(ch)
        i += 1
    if in_quotes:
        raise MalformedRowError(f"unterminated quote in {text!r}")
    _flush(items, buf, quoted)
    return items


def _flush(items: list[str], buf: list[str], quoted: bool) -> None:
    value = "".join(buf)
    if quoted:
        items.append(value)
        return
    value = value.strip()
    if value:
        items.append(value)


def coerce(spec: FlagSpec, raw: Any) -> Any:
    """Convierte `raw` al tipo declarado por la FlagSpec.

    Acepta texto (celda CSV / opción CLI) o un valor ya tipado.
    """

    if raw is None:
        return None
    kind = spec.kind

    if kind is FlagKind.SEQUENCE:
        if isinstance(raw, str):
            return split_sequence(raw, spec.separator)
        if isinstance(raw, (list, tuple)):
            out: list[str] = []
            for item in raw:
                if not isinstance(item, str):
                    raise MalformedRowError(f"{spec.name}: {item!r} is not a string")
                out.extend(split_sequence(item, spec.separator))
            return out
        raise MalformedRowError(f"{spec.name}: expected a sequence, got {raw!r}")

    if not isinstance(raw, str):
        if not kind.accepts(raw):
            raise MalformedRowError(f"{spec.name}: {raw!r} is not a {kind.value}")
        if kind is FlagKind.FLOATING:
            raw = float(raw)
            if not math.isfinite(raw):
                raise MalformedRowError(f"{spec.name}: {raw!r} is not a finite number")
        return raw

    if kind is FlagKind.INTEGER:
        if not _INTEGER_RE.fullmatch(raw):
            raise MalformedRowError(f"{spec.name}: {raw!r} is not a base-10 integer")
        return int(raw, 10)
    if kind is FlagKind.BOOLEAN:
        if raw not in _BOOLEANS:
            raise MalformedRowError(f"{spec.name}: {raw!r} is not 'true' or 'false'")
        return _BOOLEANS[raw]
    if kind is FlagKind.FLOATING:
        try:
            value = float(raw)
        except ValueError:
            raise MalformedRowError(f"{spec.name}: {raw!r} is not a number") from None
        if not math.isfinite(value):
            raise MalformedRowError(f"{spec.name}: {raw!r} is not a finite number")
        return value
    return raw


class ArgumentMapBuilder:
    """Produce el `ArgumentMap` de una invocación según una FlagTable."""

    def __init__(self, table: FlagTable, verb: str, *, key_options: Sequence[str] = ()) -> None:
        self.table = table
        self.verb = verb
        self.key_options = tuple(key_options)
        self._specs = table.available(verb)

    @property
    def specs(self) -> list[FlagSpec]:
        return list(self._specs)

    def correlation_key(self, values: Mapping[str, Value], *, line: int | None = None) -> str:
        parts = [str(values[name].raw) for name in self.key_options if name in values and not values[name].is_empty()]
        if parts:
            return " - ".join(parts)
        if line is not None:
            return f"line {line}"
        return self.verb

    def from_options(
        self,
        options: Mapping[str, Any],
        explicit: Collection[str],
        *,
        exempt: Collection[str] = (),
    ) -> ArgumentMap:
        """Mapa a partir de opciones CLI.

        `exempt` lista opciones obligatorias que se rellenan después (la clave
        de usuario del modo recursivo).
        """

        values: dict[str, Value] = {}
        for spec in self._specs:
            raw = options.get(spec.name)
            if spec.name in explicit and raw is not None:
                values[spec.name] = Value(kind=spec.kind, raw=coerce(spec, raw), is_set=True)
            else:
                values[spec.name] = Value(kind=spec.kind, raw=spec.default_for(self.verb), is_set=False)
        return self._finish(values, exempt=exempt)

    def from_row(
        self,
        header: Sequence[str],
        row: Sequence[str],
        *,
        overrides: Mapping[str, Any] | None = None,
        line: int | None = None,
    ) -> ArgumentMap:
        if len(row) != len(header):
            raise MalformedRowError(
                f"expected {len(header)} cells, got {len(row)}",
                line=line,
            )
        cells = dict(zip(header, row))
        overrides = overrides or {}
        values: dict[str, Value] = {}
        for spec in self._specs:
            try:
                values[spec.name] = self._row_value(spec, cells, overrides)
            except MalformedRowError as exc:
                raise MalformedRowError(str(exc), line=line) from None
        return self._finish(values, line=line)

    def _row_value(self, spec: FlagSpec, cells: Mapping[str, str], overrides: Mapping[str, Any]) -> Value:
        if spec.name in overrides:
            return Value(kind=spec.kind, raw=coerce(spec, overrides[spec.name]), is_set=True)
        if spec.name in cells:
            cell = cells[spec.name]
            # Celda vacía: para texto/secuencias es "fijar a vacío" (force-send);
            # para números y booleanos equivale a no fijar.
            if cell == "" and spec.kind not in (FlagKind.STRING, FlagKind.SEQUENCE):
                return Value(kind=spec.kind, raw=spec.default_for(self.verb), is_set=False)
            return Value(kind=spec.kind, raw=coerce(spec, cell), is_set=True)
        return Value(kind=spec.kind, raw=spec.default_for(self.verb), is_set=False)

    def _finish(
        self,
        values: dict[str, Value],
        *,
        line: int | None = None,
        exempt: Collection[str] = (),
    ) -> ArgumentMap:
        for spec in self._specs:
            if spec.name in exempt:
                continue
            if spec.is_required(self.verb) and values[spec.name].is_empty():
                raise RequiredOptionMissingError(spec.name, self.verb, line=line)
        return ArgumentMap(self.verb, values, correlation_key=self.correlation_key(values, line=line))
