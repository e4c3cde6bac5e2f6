"""Sumideros de salida JSON (stdout).

Por qué aquí (adapters):
- El Core solo conoce el contrato `OutputSink`; el formato concreto (NDJSON
  o documento único) y el fichero destino son detalles de presentación.
- Los modelos Pydantic se vuelcan con `model_dump(mode="json")`, igual que
  cualquier otro export JSON del proyecto.
"""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

from pydantic import BaseModel

from core.domain.errors import OutputSinkError
from core.domain.models import OutputMode


def _jsonable(record: Any) -> Any:
    if isinstance(record, BaseModel):
        return record.model_dump(mode="json")
    return record


def _dumps(payload: Any, *, compress: bool) -> str:
    if compress:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(payload, ensure_ascii=False, indent=2)


class StreamSink:
    """Un objeto JSON por línea, en orden de llegada, con flush por línea."""

    def __init__(self, out: TextIO | None = None) -> None:
        self.out = out or sys.stdout
        self.written = 0

    def write(self, record: Any) -> None:
        line = json.dumps(_jsonable(record), ensure_ascii=False, separators=(",", ":"))
        try:
            self.out.write(line + "\n")
            self.out.flush()
        except (OSError, ValueError) as exc:
            raise OutputSinkError(f"cannot write to output: {exc}") from exc
        self.written += 1

    def close(self, *, cancelled: bool = False) -> None:
        return None


class BufferSink:
    """Acumula los resultados y los emite como un único documento JSON al cerrar.

    `single=True` es el comportamiento heredado de "un solo elemento": se emite
    el elemento sin envolver en array.
    """

    def __init__(self, out: TextIO | None = None, *, compress: bool = False, single: bool = False) -> None:
        self.out = out or sys.stdout
        self.compress = compress
        self.single = single
        self.records: list[Any] = []
        self.written = 0

    def write(self, record: Any) -> None:
        self.records.append(_jsonable(record))

    def close(self, *, cancelled: bool = False) -> None:
        if cancelled:
            return
        if self.single:
            if not self.records:
                return
            payload: Any = self.records[0] if len(self.records) == 1 else self.records
        else:
            payload = self.records
        try:
            self.out.write(_dumps(payload, compress=self.compress) + "\n")
            self.out.flush()
        except (OSError, ValueError) as exc:
            raise OutputSinkError(f"cannot write to output: {exc}") from exc
        self.written = len(self.records)


def build_sink(mode: OutputMode, *, compress: bool = False, single: bool = False, out: TextIO | None = None):
    if mode is OutputMode.STREAM:
        return StreamSink(out)
    return BufferSink(out, compress=compress, single=single)
