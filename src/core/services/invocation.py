"""Orquestación de una invocación (simple, batch o recursiva).

Este módulo une las piezas del motor: fuente (filas CSV o usuarios
resueltos) -> pool de workers -> sumidero de salida. La CLI solo construye
las piezas y traduce el `InvocationReport` a un código de salida; toda la
lógica de estados vive aquí para poder ejercitarla en tests sin terminal.
"""

from __future__ import annotations

import asyncio
import random
from contextlib import aclosing
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, AsyncIterator

from core.domain.errors import InputSourceError, MembershipResolutionError, OutputSinkError, WsadminError
from core.domain.models import FailureKind, MembershipSources, Outcome, PoolConfig, RetryPolicy
from core.domain.values import ArgumentMap
from core.interfaces.output import OutputSink
from core.registry import Verb
from core.services.classifier import ErrorClassifier
from core.services.hooks import EngineHooks
from core.services.membership import MembershipResolver
from core.services.retrier import Retrier
from core.services.row_source import RowSource
from core.services.worker_pool import WorkerPool

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


class InvocationState(str, Enum):
    INITIALIZED = "initialized"
    ROWS_STREAMING = "rows-streaming"
    MEMBERS_RESOLVING = "members-resolving"
    DISPATCHING = "dispatching"
    DRAINING = "draining"
    EMITTED = "emitted"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class InvocationReport:
    """Resumen de una invocación."""

    verb: str
    state: InvocationState = InvocationState.INITIALIZED
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    rejected: int = 0
    error: str | None = None
    error_exit: int = EXIT_FAILURE

    @property
    def exit_code(self) -> int:
        if self.state is InvocationState.FAILED:
            return self.error_exit
        if self.failed or self.rejected:
            return EXIT_FAILURE
        return EXIT_OK


class Invocation:
    """Ejecuta un verbo contra un cliente de directorio y un sumidero."""

    def __init__(
        self,
        verb: Verb,
        directory: Any,
        sink: OutputSink,
        *,
        pool: PoolConfig,
        policy: RetryPolicy | None = None,
        classifier: ErrorClassifier | None = None,
        cancel: asyncio.Event | None = None,
        hooks: EngineHooks | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.verb = verb
        self.directory = directory
        self.sink = sink
        self.pool_config = pool
        self.cancel = cancel or asyncio.Event()
        self.hooks = hooks or EngineHooks()
        self.retrier = Retrier(
            policy or RetryPolicy(),
            classifier or ErrorClassifier(),
            cancel=self.cancel,
            hooks=self.hooks,
            rng=rng,
        )
        self.report = InvocationReport(verb=verb.path)
        self.pool: WorkerPool | None = None
        self.resolver: MembershipResolver | None = None
        self._dispatched = False

    # ------------------------------------------------------------------
    # Modos
    # ------------------------------------------------------------------

    async def run_single(self, args: ArgumentMap) -> InvocationReport:
        """Una sola llamada (sin pool); salida con la semántica de buffer."""

        if self._cancelled_early():
            return self.report
        self.report.state = InvocationState.DISPATCHING
        self._dispatched = True
        try:
            outcome = await self.retrier.run(lambda: self.verb.bind(self.directory)(args), key=args.correlation_key)
            self._record(outcome)
            self.report.state = InvocationState.DRAINING
        except OutputSinkError as exc:
            return self._fail(exc, EXIT_FAILURE)
        return self._finish()

    async def run_batch(self, rows: RowSource) -> InvocationReport:
        if self._cancelled_early():
            return self.report
        try:
            rows.open()
        except InputSourceError as exc:
            return self._fail(exc, EXIT_USAGE)
        self.report.state = InvocationState.ROWS_STREAMING
        try:
            await self._dispatch(rows.stream())
        except InputSourceError as exc:
            return self._fail(exc, EXIT_USAGE)
        except OutputSinkError as exc:
            return self._fail(exc, EXIT_FAILURE)
        finally:
            rows.close()
            self.report.rejected += rows.rejected
        return self._finish()

    async def run_recursive(self, template: ArgumentMap, sources: MembershipSources) -> InvocationReport:
        """Aplica el verbo a cada usuario alcanzable desde `sources`.

        `template` es el mapa construido con las opciones comunes; la clave
        recursiva del verbo se fija con cada identificador resuelto.
        """

        if self.verb.recursive_key is None:
            raise WsadminError(f"'{self.verb.path}' has no recursive form")
        if self._cancelled_early():
            return self.report
        self.resolver = MembershipResolver(
            self.directory,
            workers=self.pool_config.workers,
            cancel=self.cancel,
            hooks=self.hooks,
        )
        self.report.state = InvocationState.MEMBERS_RESOLVING
        try:
            await self._dispatch(self._members(self.resolver, template, sources))
        except MembershipResolutionError as exc:
            return self._fail(exc, EXIT_FAILURE)
        except OutputSinkError as exc:
            return self._fail(exc, EXIT_FAILURE)
        return self._finish()

    # ------------------------------------------------------------------
    # Internos
    # ------------------------------------------------------------------

    async def _members(
        self,
        resolver: MembershipResolver,
        template: ArgumentMap,
        sources: MembershipSources,
    ) -> AsyncIterator[ArgumentMap]:
        key = self.verb.recursive_key
        async with aclosing(resolver.resolve(sources)) as identifiers:
            async for identifier in identifiers:
                yield template.with_value(key, identifier, correlation_key=identifier)

    async def _dispatch(self, source: AsyncIterable[ArgumentMap]) -> None:
        self.pool = WorkerPool(
            self.verb.bind(self.directory),
            config=self.pool_config,
            retrier=self.retrier,
            cancel=self.cancel,
            hooks=self.hooks,
        )
        self._dispatched = True
        async with aclosing(self.pool.run(source)) as outcomes:
            self.report.state = InvocationState.DISPATCHING
            async for outcome in outcomes:
                self._record(outcome)
        self.report.state = InvocationState.DRAINING

    def _record(self, outcome: Outcome) -> None:
        if outcome.ok:
            self.sink.write(outcome.value)
            self.report.succeeded += 1
            return
        if outcome.kind is FailureKind.SKIPPED:
            self.report.skipped += 1
            self.hooks.report(outcome.key, "skipped", outcome.message)
            return
        self.report.failed += 1
        self.hooks.report(outcome.key, outcome.kind.value if outcome.kind else "failed", outcome.message)

    def _cancelled_early(self) -> bool:
        if not self.cancel.is_set():
            return False
        self.report.state = InvocationState.CANCELLED
        self.sink.close(cancelled=True)
        return True

    def _finish(self) -> InvocationReport:
        cancelled = self.cancel.is_set()
        try:
            self.sink.close(cancelled=cancelled)
        except OutputSinkError as exc:
            return self._fail(exc, EXIT_FAILURE, close_sink=False)
        self.report.state = InvocationState.CANCELLED if cancelled else InvocationState.EMITTED
        return self.report

    def _fail(self, exc: WsadminError, exit_code: int, *, close_sink: bool = True) -> InvocationReport:
        self.report.state = InvocationState.FAILED
        self.report.error = str(exc)
        self.report.error_exit = exit_code
        self.hooks.report(self.verb.path, "failed", str(exc))
        if close_sink and not isinstance(exc, OutputSinkError):
            # Lo ya ejecutado se emite; si no llegó a despacharse nada, no hay salida.
            try:
                self.sink.close(cancelled=not self._dispatched)
            except OutputSinkError as sink_exc:
                self.hooks.report(self.verb.path, "failed", str(sink_exc))
        return self.report
