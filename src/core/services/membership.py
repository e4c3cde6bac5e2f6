"""Resolución de membresía para el modo recursivo.

Por qué productores + un único consumidor:
- Cada unidad organizativa y cada grupo se expande en su propia tarea (como
  mucho `workers` a la vez), todas volcando en un canal común.
- Solo el consumidor toca el conjunto de vistos: no hace falta lock y cada
  identificador se emite una única vez aunque aparezca en varias fuentes.

Un productor que falla se notifica y se ignora; si fallan todos, la
resolución entera falla (`MembershipResolutionError`).
"""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from typing import AsyncIterator, Callable

from core.domain.errors import MembershipResolutionError
from core.domain.models import MembershipSources
from core.interfaces.directory import MembershipDirectory
from core.services.channel import Channel
from core.services.hooks import EngineHooks

PageFactory = Callable[[], AsyncIterator[list[str]]]


class MembershipResolver:
    def __init__(
        self,
        directory: MembershipDirectory,
        *,
        workers: int,
        cancel: asyncio.Event | None = None,
        hooks: EngineHooks | None = None,
    ) -> None:
        self.directory = directory
        self.workers = max(1, workers)
        self.cancel = cancel
        self.hooks = hooks or EngineHooks()
        self.failed_sources: list[str] = []

    def _producers(self, sources: MembershipSources) -> list[tuple[str, PageFactory]]:
        out: list[tuple[str, PageFactory]] = []
        for path in sources.org_units:
            out.append((f"orgUnit {path}", lambda p=path: self.directory.org_unit_user_pages(p)))
        for email in sources.group_emails:
            out.append((f"group {email}", lambda e=email: self.directory.group_user_pages(e)))
        return out

    def _cancelled(self) -> bool:
        return self.cancel is not None and self.cancel.is_set()

    async def resolve(self, sources: MembershipSources) -> AsyncIterator[str]:
        """Genera identificadores de usuario únicos (en minúsculas)."""

        merged: Channel[str] = Channel(self.workers)
        gate = asyncio.Semaphore(self.workers)
        tasks = [
            asyncio.ensure_future(self._produce(label, pages, merged, gate))
            for label, pages in self._producers(sources)
        ]
        closer = asyncio.ensure_future(self._close_after(tasks, merged))

        seen: set[str] = set()
        try:
            async for identifier in merged:
                key = identifier.strip().lower()
                if not key or key in seen:
                    continue
                seen.add(key)
                yield key
        finally:
            pending = [t for t in (*tasks, closer) if not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        if tasks and len(self.failed_sources) == len(tasks):
            raise MembershipResolutionError(
                f"every membership source failed: {', '.join(self.failed_sources)}"
            )

    async def _close_after(self, tasks: list[asyncio.Future], merged: Channel[str]) -> None:
        try:
            await asyncio.gather(*tasks, return_exceptions=True)
        finally:
            merged.close()

    async def _produce(self, label: str, pages: PageFactory, merged: Channel[str], gate: asyncio.Semaphore) -> None:
        async with gate:
            if self._cancelled():
                return
            try:
                async with aclosing(pages()) as stream:
                    async for page in stream:
                        for identifier in page:
                            await merged.send(identifier)
                        if self._cancelled():
                            return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.failed_sources.append(label)
                self.hooks.report(label, "membership", str(exc))
