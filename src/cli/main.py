"""Punto de entrada de la CLI (`wsadmin`).

Por qué Typer + click:
- Typer para los comandos escritos a mano (`doctor`).
- El árbol de verbos de la API se sintetiza desde el registro y se cuelga
  del grupo click que genera Typer.
"""

from __future__ import annotations

import click
import typer

from cli.commands import attach_verbs
from cli.doctor import app as doctor_app
from core.registry import REGISTRY, VerbRegistry

app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help="Admin CLI for the directory API with batch (CSV) and recursive (org units / groups) execution.",
)
app.add_typer(doctor_app, name="doctor")


@app.callback()
def main_callback() -> None:
    """wsadmin: directory administration from the command line."""


def build_cli(registry: VerbRegistry | None = None) -> click.Group:
    """Grupo click completo: comandos Typer + verbos registrados."""

    if registry is None:
        import adapters.directory_verbs  # noqa: F401, PLC0415

        registry = REGISTRY
    group = typer.main.get_command(app)
    attach_verbs(group, registry)
    return group


def run() -> None:
    build_cli()(prog_name="wsadmin")
