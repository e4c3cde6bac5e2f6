"""Síntesis de comandos CLI a partir del registro de verbos.

Por qué click directo (y no decoradores de Typer):
- Las opciones salen de las FlagTables en tiempo de ejecución, no de firmas
  de funciones.
- Necesitamos `ctx.get_parameter_source` para saber qué opciones fijó el
  usuario (el bit "explícito" que decide force-send y defaults).

Cada verbo produce:
- `<padre> <verbo> [opciones]`            -> invocación simple
- `<padre> <verbo> batch --input CSV`     -> una invocación por fila
- `<padre> <verbo> recursive --orgUnit/--groupEmail` (si el verbo tiene clave recursiva)
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterable

import click
from click.core import ParameterSource
from pydantic import ValidationError

from adapters.directory_client import DirectoryClient
from adapters.output_sinks import build_sink
from core.config import AppSettings
from core.domain.errors import InputSourceError, MalformedRowError, RowError
from core.domain.flags import FlagKind, FlagSpec
from core.domain.models import MembershipSources, OutputMode, PoolConfig
from core.registry import Verb, VerbRegistry
from core.services.arguments import coerce
from core.services.classifier import ErrorClassifier
from core.services.hooks import EngineHooks
from core.services.invocation import Invocation, InvocationReport
from core.services.row_source import RowSource
from cli.runtime import run_with_cancellation
from cli.ui_components import build_engine_hooks

_EXPLICIT_SOURCES = (ParameterSource.COMMANDLINE, ParameterSource.ENVIRONMENT)


@dataclass
class CliState:
    """Dependencias de la CLI (sustituibles en tests vía `obj=`)."""

    settings: AppSettings | None = None
    directory_factory: Callable[[AppSettings], Any] | None = None
    hooks: EngineHooks | None = None
    rng: random.Random | None = None

    def get_settings(self) -> AppSettings:
        if self.settings is None:
            try:
                self.settings = AppSettings()
            except ValidationError as exc:
                raise click.UsageError(f"invalid configuration: {exc}") from exc
        return self.settings

    def get_hooks(self) -> EngineHooks:
        if self.hooks is None:
            self.hooks = build_engine_hooks()
        return self.hooks

    def open_directory(self, settings: AppSettings) -> Any:
        if self.directory_factory is not None:
            return self.directory_factory(settings)
        return DirectoryClient.from_settings(settings)


# ----------------------------------------------------------------------
# Opciones
# ----------------------------------------------------------------------


def _option(spec: FlagSpec, verb: str, *, name: str | None = None) -> click.Option:
    name = name or spec.name
    help_text = spec.description
    if spec.is_required(verb) and name == spec.name:
        help_text = f"{help_text} [required]".strip()
    if spec.kind is FlagKind.BOOLEAN:
        return click.Option([f"--{name}/--no-{name}", name], default=None, help=help_text)
    if spec.kind is FlagKind.SEQUENCE:
        return click.Option(
            [f"--{name}", name],
            multiple=True,
            help=f"{help_text} Can be used multiple times.".strip(),
        )
    # Números como texto: la conversión estricta la hace el builder.
    return click.Option([f"--{name}", name], type=str, default=None, help=help_text)


def _output_options() -> list[click.Option]:
    return [
        click.Option(["--stream", "stream"], is_flag=True, default=False, help="Emit one JSON object per line as results arrive."),
        click.Option(["--compress", "compress"], is_flag=True, default=False, help="Dense JSON instead of pretty-printed."),
    ]


def _threads_option() -> click.Option:
    return click.Option(
        ["--batchThreads", "batchThreads"],
        type=click.IntRange(min=1),
        default=None,
        help="Number of concurrent workers (capped by the configured maximum).",
    )


def _explicit(ctx: click.Context, names: Iterable[str]) -> set[str]:
    return {name for name in names if ctx.get_parameter_source(name) in _EXPLICIT_SOURCES}


def _output_mode(stream: bool) -> OutputMode:
    return OutputMode.STREAM if stream else OutputMode.BUFFER


# ----------------------------------------------------------------------
# Ejecución
# ----------------------------------------------------------------------


def _execute(
    ctx: click.Context,
    verb: Verb,
    sink: Any,
    runner: Callable[[Invocation], Awaitable[InvocationReport]],
    *,
    workers: int | None = None,
) -> None:
    state = ctx.ensure_object(CliState)
    settings = state.get_settings()
    hooks = state.get_hooks()
    pool = PoolConfig(workers=settings.worker_count(workers), gap_seconds=settings.request_gap_seconds)

    async def main(cancel) -> InvocationReport:
        async with state.open_directory(settings) as directory:
            invocation = Invocation(
                verb,
                directory,
                sink,
                pool=pool,
                policy=settings.retry_policy(),
                classifier=ErrorClassifier(settings.retry_on),
                cancel=cancel,
                hooks=hooks,
                rng=state.rng,
            )
            return await runner(invocation)

    report = run_with_cancellation(main)
    ctx.exit(report.exit_code)


# ----------------------------------------------------------------------
# Comandos
# ----------------------------------------------------------------------


def build_single_command(verb: Verb) -> click.Command:
    specs = verb.flags.available(verb.name)

    def callback(stream: bool, compress: bool, **params: Any) -> None:
        ctx = click.get_current_context()
        if isinstance(ctx.command, click.Group) and ctx.invoked_subcommand is not None:
            return
        explicit = _explicit(ctx, [s.name for s in specs])
        try:
            args = verb.builder().from_options({s.name: params.get(s.name) for s in specs}, explicit)
        except RowError as exc:
            raise click.UsageError(str(exc), ctx=ctx) from exc
        sink = build_sink(_output_mode(stream), compress=compress, single=True)
        _execute(ctx, verb, sink, lambda invocation: invocation.run_single(args))

    params = [_option(s, verb.name) for s in specs] + _output_options()
    if not (verb.batch or verb.recursive):
        return click.Command(name=verb.name, params=params, callback=callback, help=verb.help)

    group = click.Group(
        name=verb.name,
        params=params,
        callback=callback,
        help=verb.help,
        invoke_without_command=True,
        no_args_is_help=False,
    )
    if verb.batch:
        group.add_command(build_batch_command(verb))
    if verb.recursive:
        group.add_command(build_recursive_command(verb))
    return group


def build_batch_command(verb: Verb) -> click.Command:
    overridable = verb.flags.overridable(verb.name)

    def callback(input: str, delimiter: str, batchThreads: int | None, stream: bool, compress: bool, **params: Any) -> None:  # noqa: A002, N803
        ctx = click.get_current_context()
        state = ctx.ensure_object(CliState)
        overrides: dict[str, Any] = {}
        for spec in overridable:
            name = f"{spec.name}_ALL"
            if name not in _explicit(ctx, [name]):
                continue
            try:
                overrides[spec.name] = coerce(spec, params[name])
            except MalformedRowError as exc:
                raise click.BadParameter(str(exc), ctx=ctx, param_hint=f"--{name}") from exc
        try:
            rows = RowSource(
                Path(input),
                verb.builder(),
                delimiter=delimiter,
                overrides=overrides,
                hooks=state.get_hooks(),
            )
        except InputSourceError as exc:
            raise click.BadParameter(str(exc), ctx=ctx, param_hint="--delimiter") from exc
        sink = build_sink(_output_mode(stream), compress=compress)
        _execute(ctx, verb, sink, lambda invocation: invocation.run_batch(rows), workers=batchThreads)

    params: list[click.Parameter] = [
        click.Option(["--input", "input"], required=True, help="Path to the CSV input file."),
        click.Option(["--delimiter", "delimiter"], default=",", show_default=True, help="Field delimiter of the CSV file."),
        _threads_option(),
    ]
    params += [_option(s, verb.name, name=f"{s.name}_ALL") for s in overridable]
    params += _output_options()
    return click.Command(
        name="batch",
        params=params,
        callback=callback,
        help=f"{verb.help} Runs once per row of a CSV file. Use --<option>_ALL to apply a value to every row.",
    )


def build_recursive_command(verb: Verb) -> click.Command:
    key = verb.recursive_key
    specs = [s for s in verb.flags.recursive(verb.name) if s.name != key]

    def callback(orgUnit: tuple[str, ...], groupEmail: tuple[str, ...], batchThreads: int | None, stream: bool, compress: bool, **params: Any) -> None:  # noqa: N803
        ctx = click.get_current_context()
        try:
            sources = MembershipSources(org_units=tuple(orgUnit), group_emails=tuple(groupEmail))
        except ValidationError as exc:
            raise click.UsageError("at least one --orgUnit or --groupEmail is required", ctx=ctx) from exc
        explicit = _explicit(ctx, [s.name for s in specs])
        try:
            template = verb.builder().from_options(
                {s.name: params.get(s.name) for s in specs},
                explicit,
                exempt=(key,),
            )
        except RowError as exc:
            raise click.UsageError(str(exc), ctx=ctx) from exc
        sink = build_sink(_output_mode(stream), compress=compress)
        _execute(ctx, verb, sink, lambda invocation: invocation.run_recursive(template, sources), workers=batchThreads)

    params: list[click.Parameter] = [
        click.Option(["--orgUnit", "orgUnit"], multiple=True, help="Organizational unit path (includes sub-units). Repeatable."),
        click.Option(["--groupEmail", "groupEmail"], multiple=True, help="Group email (includes nested members). Repeatable."),
        _threads_option(),
    ]
    params += [_option(s, verb.name) for s in specs]
    params += _output_options()
    return click.Command(
        name="recursive",
        params=params,
        callback=callback,
        help=f"{verb.help} Runs once per user of the given organizational units and groups ({key}).",
    )


def attach_verbs(group: click.Group, registry: VerbRegistry) -> None:
    """Añade `<padre> <verbo> [batch|recursive]` al grupo raíz."""

    for parent in registry.parents():
        parent_group = click.Group(name=parent, help=f"Manage {parent}.", no_args_is_help=True)
        for verb in registry.verbs(parent):
            parent_group.add_command(build_single_command(verb))
        group.add_command(parent_group)
