"""Pool de workers acotado.

Forma:
- Una tarea `feeder` vuelca la fuente (filas CSV o usuarios resueltos) en un
  canal de entrada de capacidad N.
- Exactamente N workers: sacar mapa -> Retrier(operación) -> publicar
  `Outcome` -> esperar el gap.
- El canal de resultados (capacidad N) se cierra cuando salen todos los
  workers; quien consume `run()` ve el final del flujo.

Cancelación: los workers dejan de sacar mapas; las llamadas en vuelo terminan
(el retrier no empieza intentos nuevos) y las esperas se interrumpen.
"""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, Callable

from core.domain.models import FailureKind, Outcome, PoolConfig
from core.domain.values import ArgumentMap
from core.services.channel import Cancelled, Channel, ChannelClosed, pause
from core.services.hooks import EngineHooks
from core.services.retrier import Retrier

Operation = Callable[[ArgumentMap], Awaitable[Any]]


class WorkerPool:
    def __init__(
        self,
        operation: Operation,
        *,
        config: PoolConfig,
        retrier: Retrier,
        cancel: asyncio.Event | None = None,
        hooks: EngineHooks | None = None,
    ) -> None:
        self.operation = operation
        self.config = config
        self.retrier = retrier
        self.cancel = cancel
        self.hooks = hooks or EngineHooks()
        self.workers_started = 0
        self._active = 0
        self.peak_active = 0

    async def run(self, source: AsyncIterable[ArgumentMap]) -> AsyncIterator[Outcome]:
        """Despacha cada mapa de `source` y genera un `Outcome` por mapa.

        Los errores de la propia fuente (p.ej. fichero ilegible a mitad) se
        relanzan cuando el flujo de resultados se ha agotado.
        """

        inbox: Channel[ArgumentMap] = Channel(self.config.capacity)
        results: Channel[Outcome] = Channel(self.config.capacity)

        feeder = asyncio.ensure_future(self._feed(source, inbox))
        workers = [asyncio.ensure_future(self._work(inbox, results)) for _ in range(self.config.workers)]
        self.workers_started = len(workers)
        closer = asyncio.ensure_future(self._close_after(workers, results))

        try:
            async for outcome in results:
                yield outcome
        finally:
            pending = [t for t in (feeder, *workers, closer) if not t.done()]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        if not feeder.cancelled() and feeder.exception() is not None:
            raise feeder.exception()  # type: ignore[misc]

    async def _feed(self, source: AsyncIterable[ArgumentMap], inbox: Channel[ArgumentMap]) -> None:
        iterator = source.__aiter__()
        try:
            async for args in iterator:
                if self.cancel is not None and self.cancel.is_set():
                    break
                try:
                    await inbox.send(args)
                except ChannelClosed:
                    break
        finally:
            inbox.close()
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _close_after(self, workers: list[asyncio.Future], results: Channel[Outcome]) -> None:
        try:
            await asyncio.gather(*workers, return_exceptions=True)
        finally:
            results.close()

    async def _work(self, inbox: Channel[ArgumentMap], results: Channel[Outcome]) -> None:
        while True:
            try:
                args = await inbox.receive_or_cancel(self.cancel)
            except (ChannelClosed, Cancelled):
                return
            outcome = await self._execute(args)
            await results.send(outcome)
            if not await pause(self.config.gap_seconds, self.cancel):
                return

    async def _execute(self, args: ArgumentMap) -> Outcome:
        key = args.correlation_key
        self._active += 1
        self.peak_active = max(self.peak_active, self._active)
        try:
            return await self.retrier.run(lambda: self.operation(args), key=key)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            return Outcome.failure(FailureKind.CRASHED, f"{type(exc).__name__}: {exc}", key=key)
        finally:
            self._active -= 1
