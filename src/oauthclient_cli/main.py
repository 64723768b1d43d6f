"""CLI entry point for the oauthclient tool.

This module is the composition root of the application.  It is the only
place that wires the concrete client, the cookie store and the
session-expired listener together.  All other layers depend solely on what
they are given.
"""

import json
import logging
import sys
from dataclasses import asdict
from datetime import datetime
from enum import Enum

# Ensure UTF-8 output on Windows where stdout may default to cp1252.
# reconfigure() is a no-op when encoding is already utf-8.
if hasattr(sys.stdout, "reconfigure"):
    sys.stdout.reconfigure(encoding="utf-8", errors="replace")
if hasattr(sys.stderr, "reconfigure"):
    sys.stderr.reconfigure(encoding="utf-8", errors="replace")

import requests
import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from oauthclient.auth import credentials as cookie_store
from oauthclient.auth.announcer import SessionAnnouncer
from oauthclient.core.exceptions import OAuthClientError
from oauthclient.core.navigation import (
    DEFAULT_LOGIN_REDIRECT,
    PUBLIC_ROOT,
    Navigator,
)
from oauthclient.http.client import ApiClient
from oauthclient.services.auth_service import AuthService

app = typer.Typer()
auth_app = typer.Typer(help="Log in, log out and inspect the session.")
data_app = typer.Typer(help="Call protected and public backend endpoints.")

app.add_typer(auth_app, name="auth")
app.add_typer(data_app, name="data")

console = Console(legacy_windows=False)

_SESSION_EXPIRED_MSG = "Session expired. Please log in again."


# ---------------------------------------------------------------------------
# Output format
# ---------------------------------------------------------------------------


class OutputFormat(str, Enum):
    """Supported output formats for data commands."""

    table = "table"
    json = "json"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@app.callback()
def main(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log HTTP and refresh activity."
    ),
):
    """Terminal client for a cookie-session backend."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _on_session_expired(navigator: Navigator) -> None:
    """Reset local state after an irrecoverable session loss.

    Drops the stored cookies, tells the user, and returns to the landing
    page.
    """
    cookie_store.clear()
    console.print(f"[yellow]{_SESSION_EXPIRED_MSG}[/yellow]")
    navigator.go(PUBLIC_ROOT)


def _get_service(location: str = PUBLIC_ROOT) -> AuthService:
    """Build an AuthService with the stored session restored.

    Args:
        location: Where the command is conceptually running.  Data commands
            run on the dashboard so that a failed refresh announces the
            session loss; auth commands run on the public root.

    Returns:
        A :class:`~oauthclient.services.auth_service.AuthService` instance.
    """
    navigator = Navigator(location)
    announcer = SessionAnnouncer()
    announcer.subscribe(lambda: _on_session_expired(navigator))
    client = ApiClient(announcer=announcer, navigator=navigator)
    cookie_store.restore(client.cookies)
    return AuthService(client)


def _save_session(service: AuthService) -> None:
    """Persist the client's cookies, which a refresh may have replaced."""
    jar = service.client.cookies
    if len(jar):
        cookie_store.save(jar)


def _describe_error(e: Exception) -> str:
    """Return a one-line description of a failed call.

    Args:
        e: The exception raised by the client or service.

    Returns:
        The backend's error message when the response carries one, else
        the exception text.
    """
    response = getattr(e, "response", None)
    if response is None:
        return str(e)
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"{response.status_code}: {body['message']}"
    return f"HTTP {response.status_code}"


def _fail(prefix: str, e: Exception) -> None:
    console.print(f"[red]{prefix}:[/red] {_describe_error(e)}", highlight=False)
    raise typer.Exit(1)


def _fmt_time(millis: int | None) -> str:
    """Format an epoch-milliseconds timestamp, or ``"—"`` when absent."""
    if millis is None:
        return "—"
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# auth commands
# ---------------------------------------------------------------------------


@auth_app.command()
def login(
    email: str = typer.Option(..., prompt=True),
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Log in with a local email and password."""
    service = _get_service()
    try:
        service.login_with_email(email, password)
    except requests.RequestException as e:
        _fail("Login failed", e)
    _save_session(service)
    console.print(
        f"[green]✓ Logged in.[/green] Session saved to: "
        f"{cookie_store.cookies_path()}"
    )


@auth_app.command()
def signup(
    email: str = typer.Option(..., prompt=True),
    name: str = typer.Option(..., prompt=True),
    password: str = typer.Option(
        ..., prompt=True, hide_input=True, confirmation_prompt=True
    ),
):
    """Create a local account and log in."""
    if not email.strip() or not name.strip() or not password:
        console.print("[red]Email, name and password are required.[/red]")
        raise typer.Exit(1)
    service = _get_service()
    try:
        service.signup_with_email(email, password, name)
    except requests.RequestException as e:
        _fail("Signup failed", e)
    _save_session(service)
    console.print(f"[green]✓ Account created for {email}.[/green]")


@auth_app.command()
def oauth(provider: str):
    """Open the browser to log in with an OAuth provider (e.g. github)."""
    service = _get_service()
    url = service.login_with_provider(provider)
    console.print(f"\nOpening browser for {provider} login…\n{url}\n")
    console.print(
        "[dim]The session cookie is set in the browser; "
        "use [bold]oauthclient auth login[/bold] for a terminal session.[/dim]"
    )


@auth_app.command()
def providers():
    """List the OAuth providers enabled on the backend."""
    items = _get_service().fetch_providers()
    if not items:
        console.print("[yellow]No OAuth providers available.[/yellow]")
        return
    table = Table(title="OAuth providers", show_lines=False)
    table.add_column("Key", style="cyan")
    table.add_column("Name")
    for p in items:
        table.add_row(p.key, p.name)
    console.print(table)


@auth_app.command()
def status():
    """Show whether the stored session is authenticated."""
    service = _get_service()
    if not cookie_store.load():
        console.print("[yellow]No session stored.[/yellow]")
    result = service.check_status()
    if not result.authenticated:
        console.print("[red]✗ Not authenticated.[/red]")
        console.print("Run [bold]oauthclient auth login[/bold] to log in.")
        raise typer.Exit(1)
    user = result.user
    console.print("[green]✓ Authenticated[/green]")
    if user is not None:
        console.print(f"  User  : {user.name} ({user.login})")
        if user.email:
            console.print(f"  Email : {user.email}")


@auth_app.command()
def logout():
    """End the session on the backend and forget it locally."""
    acknowledged = _get_service().logout()
    cookie_store.clear()
    if acknowledged:
        console.print("[green]✓ Logged out.[/green]")
    else:
        console.print(
            "[yellow]Backend logout failed; local session removed.[/yellow]"
        )


# ---------------------------------------------------------------------------
# data commands
# ---------------------------------------------------------------------------


@data_app.command()
def protected(
    output: OutputFormat = typer.Option(
        OutputFormat.table, "--output", "-o", help="Output format."
    ),
):
    """Fetch protected data (refreshes an expired session automatically)."""
    service = _get_service(DEFAULT_LOGIN_REDIRECT)
    try:
        data = service.fetch_protected_data()
    except (requests.RequestException, OAuthClientError) as e:
        _fail("Error", e)
    _save_session(service)

    if output == OutputFormat.json:
        print(json.dumps(asdict(data), indent=2))
        return

    console.print(Panel(f"[bold]{data.message}[/bold]", padding=(0, 2)))
    console.print(f"  User         : {data.user}")
    console.print(f"  Count        : {data.count if data.count is not None else '—'}")
    console.print(f"  Last updated : {_fmt_time(data.last_updated)}")
    for item in data.items:
        console.print(f"  • {item}")


@data_app.command()
def action(
    name: str,
    output: OutputFormat = typer.Option(
        OutputFormat.table, "--output", "-o", help="Output format."
    ),
):
    """Run a protected action on the backend."""
    service = _get_service(DEFAULT_LOGIN_REDIRECT)
    try:
        result = service.perform_action(name)
    except ValueError as e:
        console.print(f"[red]Invalid action:[/red] {e}", highlight=False)
        raise typer.Exit(1)
    except (requests.RequestException, OAuthClientError) as e:
        _fail("Error", e)
    _save_session(service)

    if output == OutputFormat.json:
        print(json.dumps(asdict(result), indent=2))
    else:
        console.print(f"[green]✓ {result.message}[/green]")
        if result.result:
            console.print(f"  Result : {result.result}")


@data_app.command()
def health(
    output: OutputFormat = typer.Option(
        OutputFormat.table, "--output", "-o", help="Output format."
    ),
):
    """Check that the backend is reachable."""
    try:
        data = _get_service().fetch_public_data()
    except requests.RequestException as e:
        _fail("Backend unreachable", e)

    if output == OutputFormat.json:
        print(json.dumps(asdict(data), indent=2))
    else:
        console.print(f"[green]{data.status}[/green] — {data.message}")
