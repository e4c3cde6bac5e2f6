"""Ejecución async desde la CLI con cancelación por señal.

SIGINT/SIGTERM no matan el proceso: activan el `asyncio.Event` de
cancelación que respetan todas las esperas del motor, y la invocación se
drena en orden (entrada -> pool -> resultados -> salida).
"""

from __future__ import annotations

import asyncio
import signal
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def run_with_cancellation(main: Callable[[asyncio.Event], Awaitable[T]]) -> T:
    async def _runner() -> T:
        cancel = asyncio.Event()
        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        for sig in _SIGNALS:
            try:
                loop.add_signal_handler(sig, cancel.set)
            except (NotImplementedError, RuntimeError, ValueError):
                # Windows o hilo no principal: sin handler, Ctrl+C aborta como siempre.
                continue
            installed.append(sig)
        try:
            return await main(cancel)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)

    return asyncio.run(_runner())
