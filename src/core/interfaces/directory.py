"""Contrato mínimo del directorio remoto que necesita el resolvedor de membresías.

Por qué Protocol:
- El resolvedor solo necesita paginar usuarios de una unidad organizativa y
  miembros de un grupo; cualquier objeto con esos métodos sirve (cliente
  httpx real, fake en memoria para tests).
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class MembershipDirectory(Protocol):
    """Fuentes de identificadores de usuario, página a página."""

    def org_unit_user_pages(self, org_unit_path: str) -> AsyncIterator[list[str]]:
        """Emails primarios de los usuarios de la unidad (incluye sub-unidades)."""

        ...

    def group_user_pages(self, group_email: str) -> AsyncIterator[list[str]]:
        """Emails de los miembros de tipo USER (incluye membresías indirectas)."""

        ...
