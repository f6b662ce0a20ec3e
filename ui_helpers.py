import json
import os
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import settings

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def print_books_result(books: List[Any]) -> None:
    """Print the catalog in the current output mode."""
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Catalog", header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        for b in books:
            table.add_row(str(b.id), b.title, b.author)
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} — {b.author}")

def print_records_result(records: List[Any]) -> None:
    """Print loan records in the current output mode.
    - plain: one line per record plus a return line for returned ones
    - json: the persisted JSON shape
    - rich: Rich table
    """
    mode = get_output_mode()

    if not records:
        print("No borrowed books yet.")
        return

    currency = settings.currency_symbol
    if mode == "json":
        print(json.dumps([r.to_dict() for r in records], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📖 Borrowed Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Borrowed")
        table.add_column("Due")
        table.add_column("Returned")
        table.add_column("Penalty", justify="right")
        for r in records:
            returned = r.return_date.isoformat() if r.return_date else "[yellow]on loan[/]"
            table.add_row(str(r.id), r.title, r.borrow_date.isoformat(), r.due_date.isoformat(),
                          returned, f"{currency}{r.penalty}")
        _console.print(table)
    else:
        for r in records:
            print(f"{r.id} - {r.title} | Borrowed: {r.borrow_date.isoformat()} | Due: {r.due_date.isoformat()}")
            if r.return_date:
                print(f"    Returned: {r.return_date.isoformat()} | Penalty: {currency}{r.penalty}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    mode = get_output_mode()
    currency = settings.currency_symbol

    if mode == "json":
        print(json.dumps(stats, ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]Total Records:[/] {stats['total_records']}\n"
            f"[bold]On Loan:[/] {stats['outstanding']} ([red]{stats['overdue']} overdue[/])\n"
            f"[bold]Returned:[/] {stats['returned']}\n"
            f"[bold]Total Penalty:[/] {currency}{stats['total_penalty']}"
        )
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total Records: {stats['total_records']}")
        print(f"On Loan: {stats['outstanding']}")
        print(f"Overdue: {stats['overdue']}")
        print(f"Returned: {stats['returned']}")
        print(f"Total Penalty: {currency}{stats['total_penalty']}")
