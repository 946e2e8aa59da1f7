"""luxe: personal details dashboard on the command line.

Commands
--------
  register  Create an account (password, or date of birth as DD-MM-YYYY)
  login     Start a session
  logout    End the session
  whoami    Greet the logged-in user
  passwd    Change the logged-in user's password
  remove    Permanently delete the logged-in account
  add       Record a credential entry
  list      Show recorded entries, newest first
  users     List registered usernames
  info      Show storage locations and counts
  cache     Offline application-shell cache
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, NoReturn, Optional

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from . import __version__, config
from .directory import DirectoryError, UserDirectory, password_from_dob
from .ledger import CredentialLedger
from .models import CredentialEntry
from .offline import cache_app
from .storage import FileStore

# ---------------------------------------------------------------------------
# App & consoles
# ---------------------------------------------------------------------------

_THEME = Theme(
    {
        "success": "bold green",
        "warning": "bold yellow",
        "danger": "bold red",
        "muted": "dim",
        "label": "cyan",
        "highlight": "bold white",
    }
)

console = Console(theme=_THEME)
err = Console(stderr=True, theme=_THEME)

app = typer.Typer(
    name="luxe",
    help="[bold cyan]luxe[/bold cyan]: your personal details dashboard.",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
)
app.add_typer(cache_app, name="cache")


@app.callback()
def _main(
    verbose: Annotated[bool, typer.Option("--verbose", "-V", help="Show debug logging.")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _directory() -> UserDirectory:
    return UserDirectory(FileStore(config.local_store_path()), FileStore(config.session_path()))


def _fail(exc: DirectoryError) -> NoReturn:
    err.print(f"[{exc.severity}]{escape(str(exc))}[/{exc.severity}]")
    raise typer.Exit(1) from exc


def _ask_password(prompt: str = "Password") -> str:
    return Prompt.ask(f"  {prompt}", password=True, console=console)


def _render_entries(entries: list[CredentialEntry], *, show_password: bool = False) -> None:
    table = Table(
        title=f"Details ({len(entries)} total)",
        box=box.ROUNDED,
        header_style="bold cyan",
        highlight=True,
        title_style="bold",
    )
    table.add_column("#", style="muted", justify="right", no_wrap=True)
    table.add_column("Purpose", style="bold magenta", min_width=16)
    table.add_column("Username", style="white", min_width=14)
    table.add_column("Password", style="bold green" if show_password else "muted", no_wrap=True)

    for i, entry in enumerate(entries, 1):
        table.add_row(
            str(i),
            Text(entry.purpose),
            Text(entry.username),
            Text(entry.secret) if show_password else "••••••••••••",
        )
    console.print(table)


# ---------------------------------------------------------------------------
# Account commands
# ---------------------------------------------------------------------------


@app.command()
def register(
    username: Annotated[str, typer.Argument(help="Unique username.")],
    dob: Annotated[
        Optional[datetime],
        typer.Option("--dob", formats=["%Y-%m-%d"], help="Date of birth; becomes the password as DD-MM-YYYY."),
    ] = None,
    password: Annotated[
        Optional[str], typer.Option("--password", "-p", help="Password (prompted if omitted).", show_default=False)
    ] = None,
) -> None:
    """Create a new account."""
    if dob is not None and password is not None:
        raise typer.BadParameter("Use either --dob or --password, not both.", param_hint="--dob")
    if dob is not None:
        password = password_from_dob(dob.date())
    elif password is None:
        password = _ask_password()

    try:
        _directory().register(username, password)
    except DirectoryError as exc:
        _fail(exc)
    console.print("[success]Registration successful! Please login.[/success]")


@app.command()
def login(
    username: Annotated[str, typer.Argument(help="Your username.")],
    password: Annotated[
        Optional[str], typer.Option("--password", "-p", help="Password (prompted if omitted).", show_default=False)
    ] = None,
) -> None:
    """Log in and start a session."""
    if password is None:
        password = _ask_password()
    try:
        user = _directory().login(username, password)
    except DirectoryError as exc:
        _fail(exc)
    console.print("[success]Login successful![/success]")
    console.print(f"Hello, [highlight]{escape(user.username)}[/highlight]")


@app.command()
def logout() -> None:
    """End the current session."""
    _directory().logout()
    console.print("[muted]Logged out.[/muted]")


@app.command()
def whoami() -> None:
    """Greet the logged-in user."""
    user = _directory().current_user()
    if user is None:
        err.print("[warning]Not logged in.[/warning] Run [bold]luxe login[/bold] first.")
        raise typer.Exit(1)
    console.print(f"Hello, [highlight]{escape(user.username)}[/highlight]")


@app.command()
def passwd(
    current: Annotated[Optional[str], typer.Option("--current", help="Current password.", show_default=False)] = None,
    new: Annotated[Optional[str], typer.Option("--new", help="New password.", show_default=False)] = None,
) -> None:
    """Change the logged-in user's password."""
    directory = _directory()
    try:
        directory.require_user()
        if current is None:
            current = _ask_password("Current password")
        if new is None:
            new = _ask_password("New password")
        directory.change_password(current, new)
    except DirectoryError as exc:
        _fail(exc)
    console.print("[success]Security updated![/success]")


@app.command()
def remove(
    username: Annotated[str, typer.Argument(help="Your username, to confirm.")],
    password: Annotated[
        Optional[str], typer.Option("--password", "-p", help="Password (prompted if omitted).", show_default=False)
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt.")] = False,
) -> None:
    """Permanently delete your account and everything recorded under it."""
    directory = _directory()

    def confirm() -> bool:
        if yes:
            return True
        return Confirm.ask(
            "[warning]WARNING:[/warning] Your account will be deleted permanently. "
            "This action cannot be undone. Are you sure?",
            default=False,
            console=console,
        )

    try:
        directory.require_user()
        if password is None:
            password = _ask_password()
        removed = directory.remove_account(username, password, confirm)
    except DirectoryError as exc:
        _fail(exc)

    if not removed:
        raise typer.Exit(0)
    console.print("[success]Account removed permanently.[/success]")


# ---------------------------------------------------------------------------
# Ledger commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    purpose: Annotated[str, typer.Argument(help="What this login is for.")],
    username: Annotated[Optional[str], typer.Option("--username", "-u", help="Login name.")] = None,
    password: Annotated[
        Optional[str], typer.Option("--password", "-p", help="Login password (prompted if omitted).", show_default=False)
    ] = None,
) -> None:
    """Record a credential entry."""
    ledger = CredentialLedger(_directory())
    try:
        ledger.directory.require_user()
        if username is None:
            username = Prompt.ask("  Username", default="", console=console)
        if password is None:
            password = Prompt.ask("  Password", password=True, default="", console=console)
        ledger.append_entry(username, password, purpose)
    except DirectoryError as exc:
        _fail(exc)
    console.print("[success]Saved successfully![/success]")


@app.command("list")
def list_entries(
    show: Annotated[bool, typer.Option("--show", "-s", help="Display passwords in plain text.")] = False,
) -> None:
    """Show recorded entries, newest first."""
    try:
        entries = CredentialLedger(_directory()).list_entries()
    except DirectoryError as exc:
        _fail(exc)

    if not entries:
        console.print('[muted]No entries yet. Run [bold]luxe add[/bold] to record one.[/muted]')
        return
    _render_entries(entries, show_password=show)


@app.command()
def users() -> None:
    """List registered usernames in registration order."""
    records = _directory().list_users()
    if not records:
        console.print("[muted]No registered users.[/muted]")
        return

    table = Table(box=box.ROUNDED, header_style="bold cyan")
    table.add_column("#", style="muted", justify="right")
    table.add_column("Username", style="bold white")
    table.add_column("Entries", justify="right")
    for i, record in enumerate(records, 1):
        table.add_row(str(i), Text(record.username), str(len(record.details)))
    console.print(table)


@app.command()
def info() -> None:
    """Show storage locations and counts."""
    directory = _directory()
    user = directory.current_user()

    table = Table(box=box.SIMPLE, show_header=False, padding=(0, 2))
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Version", __version__)
    table.add_row("Database", str(config.local_store_path()))
    table.add_row("Session", str(config.session_path()))
    table.add_row("Caches", str(config.cache_dir()))
    table.add_row("Users", str(len(directory.list_users())))
    table.add_row("Logged in", Text(user.username) if user else "[muted]nobody[/muted]")

    console.print(Panel(table, title="[bold cyan]luxe info[/bold cyan]", border_style="cyan", expand=False))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def main() -> None:
    app()


if __name__ == "__main__":
    main()
