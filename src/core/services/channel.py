"""Canal acotado con cierre explícito sobre `asyncio.Queue`.

Semántica:
- `send` bloquea cuando hay `capacity` elementos pendientes (backpressure).
- `close` no bloquea nunca; lo llama el productor cuando termina. Los
  consumidores agotan lo pendiente y luego reciben `ChannelClosed`.
- Varios consumidores pueden leer del mismo canal: la marca de cierre se
  reinyecta para que todos la vean.
"""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Generic, TypeVar

T = TypeVar("T")

_CLOSED = object()


class ChannelClosed(Exception):
    pass


class Cancelled(Exception):
    """La señal de cancelación se disparó mientras se esperaba."""


class Channel(Generic[T]):
    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("channel capacity must be >= 1")
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._slots = asyncio.Semaphore(capacity)
        self._closed = False

    async def send(self, item: T) -> None:
        if self._closed:
            raise ChannelClosed("send on closed channel")
        await self._slots.acquire()
        if self._closed:
            self._slots.release()
            raise ChannelClosed("send on closed channel")
        self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)

    async def receive(self) -> T:
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosed()
        self._slots.release()
        return item  # type: ignore[return-value]

    async def receive_or_cancel(self, cancel: asyncio.Event | None) -> T:
        """Como `receive`, pero levanta `Cancelled` si `cancel` se activa antes."""

        if cancel is None:
            return await self.receive()
        if cancel.is_set():
            raise Cancelled()
        getter = asyncio.ensure_future(self.receive())
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({getter, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            getter.cancel()
            raise
        finally:
            waiter.cancel()
        if not cancel.is_set():
            return getter.result()
        # Tras la cancelación no se entrega nada más, aunque haya llegado.
        if not getter.done():
            getter.cancel()
        elif not getter.cancelled():
            getter.exception()
        raise Cancelled()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            try:
                yield await self.receive()
            except ChannelClosed:
                return


async def pause(seconds: float, cancel: asyncio.Event | None) -> bool:
    """Duerme `seconds`; devuelve False si la cancelación interrumpió la espera."""

    if cancel is not None and cancel.is_set():
        return False
    if seconds <= 0:
        return True
    if cancel is None:
        await asyncio.sleep(seconds)
        return True
    try:
        await asyncio.wait_for(cancel.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return True
    return False
