"""authsession CLI - Main entry point."""

import asyncio
import json
import logging
from datetime import datetime

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api import ApiClient
from .config import settings
from .errors import AuthSessionError
from .masking import mask_token
from .tokens.storage import FileTokenStore

app = typer.Typer(
    name="authsession",
    help="Bearer-token session manager - login, renewal, and authenticated requests",
    no_args_is_help=True,
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _client() -> ApiClient:
    return ApiClient(store=FileTokenStore(settings.token_path))


def _fail(error: Exception) -> None:
    console.print(Panel(f"[red]{error}[/red]", title="Error"))
    raise typer.Exit(1)


# ============================================================================
# Session Commands
# ============================================================================


@app.command("login")
def login(
    email: str = typer.Option(..., "--email", "-e", prompt=True, help="Account email"),
    password: str = typer.Option(..., "--password", "-p", prompt=True, hide_input=True, help="Account password"),
):
    """Log in and store the session."""

    async def _login():
        async with _client() as client:
            return await client.login(email, password)

    try:
        pair = asyncio.run(_login())
    except AuthSessionError as e:
        _fail(e)

    console.print(
        Panel(
            f"[green]Logged in as {email}[/green]\n\n"
            f"Access token expires: {datetime.fromtimestamp(pair.expires_at).isoformat(timespec='seconds')}\n"
            f"Session stored in: {settings.token_path}",
            title="Authentication",
        )
    )


@app.command("status")
def status():
    """Show the stored session."""
    record = FileTokenStore(settings.token_path).get()

    table = Table(title="Session Status")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("API", settings.api_base_url)
    table.add_row("Store", str(settings.token_path))

    if record is None:
        table.add_row("Session", "[red]Not logged in[/red]")
    else:
        expired = record.is_expired()
        table.add_row("Access token", mask_token(record.access_token))
        table.add_row("Refresh token", mask_token(record.refresh_token))
        table.add_row("Expires", datetime.fromtimestamp(record.expires_at).isoformat(timespec="seconds"))
        table.add_row(
            "Status",
            "[yellow]Expired[/yellow]" if expired else f"Valid ({int(record.seconds_remaining())}s left)",
        )

    console.print(table)


@app.command("refresh")
def refresh():
    """Renew the access token now."""

    async def _refresh():
        async with _client() as client:
            return await client.session.ensure_fresh_token()

    try:
        token = asyncio.run(_refresh())
    except AuthSessionError as e:
        _fail(e)

    console.print(f"[green]Session renewed[/green] ({mask_token(token)})")


@app.command("logout")
def logout():
    """Log out and remove the stored session."""

    async def _logout():
        async with _client() as client:
            await client.logout()

    asyncio.run(_logout())
    console.print("[green]Logged out.[/green]")


@app.command("get")
def get(path: str = typer.Argument(..., help="API path, e.g. /auth/profile")):
    """Make an authenticated GET request and print the result."""

    async def _get():
        async with _client() as client:
            return await client.get(path)

    try:
        data = asyncio.run(_get())
    except AuthSessionError as e:
        _fail(e)

    console.print_json(json.dumps(data, default=str))


if __name__ == "__main__":
    app()
