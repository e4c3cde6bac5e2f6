"""Lectura perezosa del CSV de entrada para el modo batch.

Reglas:
- La cabecera se valida en la primera llamada: columnas desconocidas o
  duplicadas, o una opción obligatoria ausente (y sin override `_ALL`),
  rechazan el fichero entero (`InputSourceError`).
- Las líneas en blanco (o solo con espacios) se ignoran sin avisar.
- Una fila mal formada (celdas != cabecera, valor no convertible, obligatoria
  vacía) se notifica y se salta; el flujo continúa.
- El flujo es finito y no reiniciable.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, AsyncIterator, Iterator, Mapping, TextIO

from core.domain.errors import InputSourceError, RowError
from core.domain.values import ArgumentMap
from core.services.arguments import ArgumentMapBuilder
from core.services.hooks import EngineHooks


class RowSource:
    def __init__(
        self,
        path: Path,
        builder: ArgumentMapBuilder,
        *,
        delimiter: str = ",",
        overrides: Mapping[str, Any] | None = None,
        hooks: EngineHooks | None = None,
    ) -> None:
        if len(delimiter) != 1:
            raise InputSourceError("delimiter must be exactly one character")
        self.path = Path(path)
        self.builder = builder
        self.delimiter = delimiter
        self.overrides = dict(overrides or {})
        self.hooks = hooks or EngineHooks()
        self.header: list[str] | None = None
        self.rejected = 0
        self._consumed = False
        self._handle: TextIO | None = None
        self._reader: Any = None

    def _validate_header(self, header: list[str]) -> list[str]:
        names = [h.strip() for h in header]
        eligible = {spec.name for spec in self.builder.table.batch_eligible(self.builder.verb)}

        seen: set[str] = set()
        for name in names:
            if name in seen:
                raise InputSourceError(f"{self.path}: duplicated column '{name}'")
            seen.add(name)
        unknown = [n for n in names if n not in eligible]
        if unknown:
            raise InputSourceError(f"{self.path}: unknown column(s) for '{self.builder.verb}': {', '.join(unknown)}")
        if len(names) > len(eligible):
            raise InputSourceError(f"{self.path}: header has {len(names)} columns, at most {len(eligible)} allowed")
        for spec in self.builder.table.required(self.builder.verb):
            if spec.name not in seen and spec.name not in self.overrides:
                raise InputSourceError(f"{self.path}: required column '{spec.name}' is missing")
        return names

    def open(self) -> list[str]:
        """Abre el fichero y valida la cabecera. Idempotente."""

        if self._consumed:
            raise InputSourceError("row source is not restartable")
        if self.header is not None:
            return self.header
        try:
            self._handle = self.path.open("r", encoding="utf-8-sig", newline="")
        except OSError as exc:
            raise InputSourceError(f"{self.path}: {exc.strerror or exc}") from exc

        self._reader = csv.reader(self._handle, delimiter=self.delimiter)
        try:
            first = next(self._reader, None)
            while first is not None and not any(cell.strip() for cell in first):
                first = next(self._reader, None)
            if first is None:
                raise InputSourceError(f"{self.path}: input is empty (no header row)")
            self.header = self._validate_header(first)
        except (csv.Error, UnicodeDecodeError) as exc:
            self.close()
            raise InputSourceError(f"{self.path}: unreadable header: {exc}") from exc
        except InputSourceError:
            self.close()
            raise
        return self.header

    def close(self) -> None:
        self._consumed = True
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def rows(self) -> Iterator[ArgumentMap]:
        """Genera un `ArgumentMap` por fila válida."""

        header = self.open()
        reader = self._reader
        try:
            while True:
                try:
                    row = next(reader)
                except StopIteration:
                    return
                except csv.Error as exc:
                    self._reject(f"line {reader.line_num}", str(exc))
                    continue
                except UnicodeDecodeError as exc:
                    raise InputSourceError(f"{self.path}: line {reader.line_num + 1} is not valid UTF-8") from exc
                if not any(cell.strip() for cell in row):
                    continue
                try:
                    args = self.builder.from_row(header, row, overrides=self.overrides, line=reader.line_num)
                except RowError as exc:
                    self._reject(f"line {reader.line_num}", str(exc))
                    continue
                yield args
        finally:
            self.close()

    async def stream(self) -> AsyncIterator[ArgumentMap]:
        rows = self.rows()
        try:
            for args in rows:
                yield args
        finally:
            rows.close()

    def _reject(self, key: str, text: str) -> None:
        self.rejected += 1
        self.hooks.report(key, "rejected", text)
