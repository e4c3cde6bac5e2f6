"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from pydantic import ValidationError

from adapters.directory_client import DirectoryClient
from cli.ui_components import build_checks_table, err_console
from core.config import AppSettings, get_user_env_file, write_user_env_vars
from core.domain.errors import RemoteError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")


async def _check_api(settings: AppSettings) -> tuple[bool, str]:
    async with DirectoryClient.from_settings(settings) as directory:
        try:
            await directory.request(
                "GET",
                "/users",
                params={"customer": settings.customer, "maxResults": 1, "fields": "users(primaryEmail)"},
            )
        except RemoteError as exc:
            return False, str(exc)
    return True, "OK"


@app.command()
def run() -> None:
    """Show the effective configuration and check that the API answers."""

    try:
        settings = AppSettings()
    except ValidationError as exc:
        err_console.print(f"[red]Invalid configuration:[/red] {exc}")
        raise typer.Exit(code=2) from exc

    table = build_checks_table("wsadmin doctor")

    table.add_row("Config file", "OK" if get_user_env_file().exists() else "OPTIONAL", str(get_user_env_file()))
    if settings.access_token:
        table.add_row("Access token", "OK", "Bearer token configured")
    else:
        table.add_row("Access token", "MISSING", "Set WSADMIN_ACCESS_TOKEN or run `wsadmin doctor setup`")
    table.add_row("API base_url", "OK", settings.api_base_url)
    table.add_row("Workers", "OK", f"{settings.worker_count()} (max {settings.max_threads})")
    table.add_row("Request gap", "OK", f"{settings.request_gap_ms} ms per worker")
    policy = settings.retry_policy()
    table.add_row(
        "Retry policy",
        "OK",
        f"{policy.max_attempts} attempts, {policy.initial_delay:g}s -> {policy.max_delay:g}s x{policy.multiplier:g}",
    )

    ok_api, detail_api = asyncio.run(_check_api(settings))
    table.add_row("Directory API", "OK" if ok_api else "FAIL", detail_api)

    err_console.print(table)
    if not ok_api:
        raise typer.Exit(code=1)


@app.command(name="setup")
def setup() -> None:
    """Interactive setup (stores config in the user config .env)."""

    current = AppSettings.model_construct()
    base_url = typer.prompt("API base URL", default=current.api_base_url, show_default=True).strip()
    customer = typer.prompt("Customer", default=current.customer, show_default=True).strip()
    threads = typer.prompt("Default workers", default=4, type=int, show_default=True)
    token = typer.prompt("Access token", hide_input=True, default="", show_default=False).strip()

    if not base_url or not customer:
        raise typer.BadParameter("base URL and customer are required")
    if threads < 1:
        raise typer.BadParameter("workers must be >= 1")

    values = {
        "WSADMIN_API_BASE_URL": base_url,
        "WSADMIN_CUSTOMER": customer,
        "WSADMIN_THREADS": str(threads),
    }
    if token:
        values["WSADMIN_ACCESS_TOKEN"] = token
    env_path = write_user_env_vars(values)

    err_console.print(f"[green]Saved config to:[/green] {env_path}")
