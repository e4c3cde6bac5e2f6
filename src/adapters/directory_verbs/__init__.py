"""Verbos de la API de directorio.

Importar el paquete registra todos los verbos en `core.registry.REGISTRY`.
"""

from __future__ import annotations

from adapters.directory_verbs import members, userphotos, users
from core.registry import REGISTRY

__all__ = ["REGISTRY", "members", "userphotos", "users"]
