"""Metadatos declarativos de opciones (FlagSpec).

Por qué datos y no cableado imperativo:
- Cada comando padre (`members`, `users`...) declara una tabla de FlagSpecs.
  A partir de ella se sintetizan el verbo simple, su sub-verbo `batch` y su
  sub-verbo `recursive` de forma uniforme.
- Las FlagSpecs se crean al importar el módulo del verbo y nunca se mutan.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Iterator

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FlagKind(str, Enum):
    """Tipo de elemento de una opción."""

    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    FLOATING = "floating"
    SEQUENCE = "sequence"

    def zero(self) -> Any:
        """Valor cero del tipo (lo que devuelve un getter sobre un Value vacío)."""

        if self is FlagKind.INTEGER:
            return 0
        if self is FlagKind.BOOLEAN:
            return False
        if self is FlagKind.FLOATING:
            return 0.0
        if self is FlagKind.SEQUENCE:
            return []
        return ""

    def accepts(self, value: Any) -> bool:
        if self is FlagKind.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FlagKind.BOOLEAN:
            return isinstance(value, bool)
        if self is FlagKind.FLOATING:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is FlagKind.SEQUENCE:
            return isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
        return isinstance(value, str)


class FlagSpec(BaseModel):
    """Una opción de línea de comandos y en qué verbos aplica."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        ...,
        pattern=r"^[A-Za-z][A-Za-z0-9_]*$",
        description="Nombre de la opción (también nombre de columna CSV).",
    )
    kind: FlagKind = Field(default=FlagKind.STRING)
    description: str = Field(default="")
    available_for: frozenset[str] = Field(
        default_factory=frozenset,
        description="Verbos que aceptan la opción.",
    )
    required_for: frozenset[str] = Field(
        default_factory=frozenset,
        description="Verbos que la exigen no vacía.",
    )
    defaults: dict[str, Any] = Field(
        default_factory=dict,
        description="Valor por defecto por verbo.",
    )
    recursive_for: frozenset[str] = Field(
        default_factory=frozenset,
        description="Verbos cuyo sub-verbo `recursive` acepta la opción.",
    )
    exclude_from_all: bool = Field(
        default=False,
        description="No puede usarse como override `--<name>_ALL` en batch.",
    )
    separator: str = Field(default=",", min_length=1, max_length=1)

    @model_validator(mode="after")
    def _check_verb_sets(self) -> "FlagSpec":
        for label, verbs in (("required_for", self.required_for), ("recursive_for", self.recursive_for)):
            unknown = verbs - self.available_for
            if unknown:
                raise ValueError(f"{self.name}: {label} lists verbs it is not available for: {sorted(unknown)}")
        for verb, value in self.defaults.items():
            if verb not in self.available_for:
                raise ValueError(f"{self.name}: default for unavailable verb '{verb}'")
            if not self.kind.accepts(value):
                raise ValueError(f"{self.name}: default {value!r} is not a {self.kind.value}")
        return self

    def is_available(self, verb: str) -> bool:
        return verb in self.available_for

    def is_required(self, verb: str) -> bool:
        return verb in self.required_for

    def default_for(self, verb: str) -> Any | None:
        value = self.defaults.get(verb)
        if isinstance(value, tuple):
            return list(value)
        if isinstance(value, list):
            return list(value)
        return value


class FlagTable:
    """Tabla inmutable de FlagSpecs de un comando padre."""

    def __init__(self, specs: Iterable[FlagSpec]) -> None:
        table: dict[str, FlagSpec] = {}
        for spec in specs:
            if spec.name in table:
                raise ValueError(f"duplicated flag '{spec.name}'")
            table[spec.name] = spec
        self._specs = table

    def __iter__(self) -> Iterator[FlagSpec]:
        return iter(self._specs.values())

    def __len__(self) -> int:
        return len(self._specs)

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __getitem__(self, name: str) -> FlagSpec:
        return self._specs[name]

    def get(self, name: str) -> FlagSpec | None:
        return self._specs.get(name)

    def available(self, verb: str) -> list[FlagSpec]:
        return [s for s in self._specs.values() if s.is_available(verb)]

    def required(self, verb: str) -> list[FlagSpec]:
        return [s for s in self._specs.values() if s.is_required(verb)]

    def batch_eligible(self, verb: str) -> list[FlagSpec]:
        """Opciones que pueden venir como columna del CSV."""

        return self.available(verb)

    def overridable(self, verb: str) -> list[FlagSpec]:
        """Opciones que admiten el override `--<name>_ALL` en batch."""

        return [s for s in self.available(verb) if not s.exclude_from_all]

    def recursive(self, verb: str) -> list[FlagSpec]:
        return [s for s in self._specs.values() if verb in s.recursive_for]
