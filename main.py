import logging
import os
import subprocess
import sys
import webbrowser
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from book import list_books
from config import settings
from context import AppContext, create_context
from exceptions import LibraryError, PersistenceDecodeError
from ui_helpers import print_books_result, print_records_result, print_stats_result, set_output_mode

APP_NAME = "Library Loans CLI"

console = Console()
logger = logging.getLogger(__name__)

app = typer.Typer(help=APP_NAME)


def _context(ctx: typer.Context) -> AppContext:
    return ctx.obj

def _login(context: AppContext, email: Optional[str], password: Optional[str]) -> None:
    """Log in for the duration of this command; exits on missing credentials."""
    try:
        context.session.login(email, password)
    except LibraryError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)


EmailOption = typer.Option(None, "--email", "-e", envvar="LIBRARY_EMAIL", help="Login email")
PasswordOption = typer.Option(None, "--password", "-p", envvar="LIBRARY_PASSWORD", help="Login password")


@app.callback()
def _global_options(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    ),
    db: Optional[str] = typer.Option(None, "--db", help="SQLite file holding the ledger"),
):
    """Global options for the CLI (output mode, storage file)."""
    logging.basicConfig(level=settings.log_level)
    if output:
        set_output_mode(output)
    ctx.obj = create_context(db_file=db)

@app.command("books")
def cli_books():
    """List the catalog."""
    print_books_result(list_books())

@app.command("list")
def cli_list(ctx: typer.Context, email: Optional[str] = EmailOption, password: Optional[str] = PasswordOption):
    """List loan records, newest first."""
    context = _context(ctx)
    _login(context, email, password)
    print_records_result(context.ledger.list_records())

@app.command("borrow")
def cli_borrow(
    ctx: typer.Context,
    title: str = typer.Argument("", help="Exact catalog title"),
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
):
    """Borrow a book by title."""
    context = _context(ctx)
    _login(context, email, password)
    try:
        record = context.ledger.borrow(title)
    except LibraryError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(record.confirmation())

@app.command("return")
def cli_return(
    ctx: typer.Context,
    record_id: int = typer.Argument(..., help="Loan record id"),
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
):
    """Return a borrowed book and show the penalty."""
    context = _context(ctx)
    _login(context, email, password)
    try:
        record = context.ledger.return_book(record_id)
    except LibraryError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(f'Returned "{record.title}" on {record.return_date.isoformat()}. '
          f"Penalty: {settings.currency_symbol}{record.penalty}")

@app.command("stats")
def cli_stats(ctx: typer.Context, email: Optional[str] = EmailOption, password: Optional[str] = PasswordOption):
    """Show loan statistics."""
    context = _context(ctx)
    _login(context, email, password)
    print_stats_result(context.ledger.get_statistics())

@app.command("export")
def cli_export(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(None, "--file", "-f", help="Write to this file"),
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
):
    """Dump the stored ledger as a JSON array."""
    context = _context(ctx)
    _login(context, email, password)
    payload = context.ledger.export_json()
    if output is None:
        print(payload)
        return
    output.write_text(payload, encoding="utf-8")
    print(f"Ledger exported to {output}")

@app.command("import-json")
def cli_import_json(
    ctx: typer.Context,
    file_path: Path = typer.Argument(..., help="JSON array of loan records"),
    email: Optional[str] = EmailOption,
    password: Optional[str] = PasswordOption,
):
    """Seed an empty ledger from a JSON export of browser storage."""
    context = _context(ctx)
    _login(context, email, password)
    if not file_path.exists():
        print(f"File not found: {file_path}")
        raise typer.Exit(code=1)
    try:
        count = context.ledger.import_json(file_path.read_text(encoding="utf-8"))
    except (PersistenceDecodeError, ValueError) as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(f"Imported {count} record(s)")

@app.command("serve")
def cli_serve(ctx: typer.Context):
    """Start the web UI with uvicorn, serving the ledger chosen with --db."""
    host = settings.api_host
    port = int(settings.api_port)
    url = f"http://{host}:{port}/"
    print(f"Starting web UI on {url}")
    try:
        webbrowser.open(url)
    except webbrowser.Error:
        logger.warning("Could not open a browser")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:create_app",
        "--factory",
        "--host", host,
        "--port", str(port),
    ]
    if settings.debug:
        args.append("--reload")
    # The server process reads its storage file from the environment
    env = dict(os.environ, LIBRARY_DATA_FILE=os.path.abspath(_context(ctx).ledger.store.db_file))
    try:
        subprocess.run(args, cwd=os.path.dirname(os.path.abspath(__file__)), env=env)
    except KeyboardInterrupt:
        console.print("[dim]Server stopped[/]")


if __name__ == "__main__":
    app()
