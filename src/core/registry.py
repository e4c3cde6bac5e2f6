"""Registro de verbos: (comando padre, verbo) -> (FlagTable, operación).

Por qué un registro en memoria:
- Los módulos de verbos se registran al importarse (decorador `verb`), sin
  que la CLI conozca cada comando a mano.
- El motor solo consulta el registro para localizar la operación; la CLI lo
  recorre para sintetizar los sub-verbos `batch` y `recursive`.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator, Sequence

from core.domain.errors import UnknownVerbError
from core.domain.flags import FlagKind, FlagTable
from core.domain.values import ArgumentMap
from core.services.arguments import ArgumentMapBuilder

# La operación recibe el cliente de directorio y el mapa de argumentos.
DirectoryOperation = Callable[[Any, ArgumentMap], Awaitable[Any]]


@dataclass(frozen=True)
class Verb:
    parent: str
    name: str
    flags: FlagTable
    operation: DirectoryOperation
    help: str = ""
    batch: bool = True
    recursive_key: str | None = None
    key_options: tuple[str, ...] = ()

    @property
    def path(self) -> str:
        return f"{self.parent} {self.name}"

    @property
    def recursive(self) -> bool:
        return self.recursive_key is not None

    def builder(self) -> ArgumentMapBuilder:
        return ArgumentMapBuilder(self.flags, self.name, key_options=self.key_options)

    def bind(self, directory: Any) -> Callable[[ArgumentMap], Awaitable[Any]]:
        """Operación lista para el pool: solo le falta el mapa de argumentos."""

        return functools.partial(self.operation, directory)


def _first_line(doc: str | None) -> str:
    lines = (doc or "").strip().splitlines()
    return lines[0] if lines else ""


class VerbRegistry:
    def __init__(self) -> None:
        self._verbs: dict[tuple[str, str], Verb] = {}

    def register(self, verb: Verb) -> Verb:
        key = (verb.parent, verb.name)
        if key in self._verbs:
            raise ValueError(f"verb '{verb.path}' is already registered")
        if verb.recursive_key is not None:
            spec = verb.flags.get(verb.recursive_key)
            if spec is None or not spec.is_available(verb.name):
                raise ValueError(f"{verb.path}: recursive key '{verb.recursive_key}' is not an option of the verb")
            if spec.kind is not FlagKind.STRING:
                raise ValueError(f"{verb.path}: recursive key '{verb.recursive_key}' must be a string option")
        for name in verb.key_options:
            if name not in verb.flags:
                raise ValueError(f"{verb.path}: unknown key option '{name}'")
        self._verbs[key] = verb
        return verb

    def verb(
        self,
        parent: str,
        name: str,
        *,
        flags: FlagTable,
        help: str = "",
        batch: bool = True,
        recursive_key: str | None = None,
        key_options: Sequence[str] = (),
    ) -> Callable[[DirectoryOperation], DirectoryOperation]:
        """Decorador que registra una operación."""

        def decorator(operation: DirectoryOperation) -> DirectoryOperation:
            self.register(
                Verb(
                    parent=parent,
                    name=name,
                    flags=flags,
                    operation=operation,
                    help=help or _first_line(operation.__doc__),
                    batch=batch,
                    recursive_key=recursive_key,
                    key_options=tuple(key_options),
                )
            )
            return operation

        return decorator

    def get(self, parent: str, name: str) -> Verb:
        try:
            return self._verbs[(parent, name)]
        except KeyError:
            raise UnknownVerbError(f"unknown verb '{parent} {name}'") from None

    def parents(self) -> list[str]:
        return sorted({parent for parent, _ in self._verbs})

    def verbs(self, parent: str) -> list[Verb]:
        return [v for (p, _), v in sorted(self._verbs.items()) if p == parent]

    def __iter__(self) -> Iterator[Verb]:
        return iter(self._verbs.values())

    def __len__(self) -> int:
        return len(self._verbs)


REGISTRY = VerbRegistry()
