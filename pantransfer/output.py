"""Console output for the pantransfer CLI."""

import json
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Formats CLI output as rich text or as JSON.

    In JSON mode only ``output_json`` writes to stdout; informational
    messages are suppressed so the output stays machine readable. Errors and
    warnings always go to stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def print(self, message: str) -> None:
        if not self.json_output:
            self.console.print(message)

    def info(self, message: str) -> None:
        if not self._silent():
            self.console.print(message)

    def success(self, message: str) -> None:
        if not self._silent():
            self.console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self.err_console.print(f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[red]Error:[/red] {message}")

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)

    def output_json(self, data: Any) -> None:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a table (or as a JSON list in JSON mode).

        Args:
            rows: Row dictionaries
            columns: Keys to display, in order
            headers: Optional column key -> header text
            title: Optional table title
        """
        if self.json_output:
            self.output_json([{col: row.get(col) for col in columns} for row in rows])
            return
        headers = headers or {}
        table = Table(title=title, show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in rows:
            table.add_row(
                *("" if row.get(c) is None else str(row.get(c)) for c in columns)
            )
        self.console.print(table)

    def print_summary(self, title: str, items: list[tuple[str, Any]]) -> None:
        """Print a titled list of key/value lines."""
        if self.json_output:
            self.output_json({key: value for key, value in items})
            return
        if self.quiet:
            return
        self.console.print(f"\n[bold]{title}[/bold]")
        for key, value in items:
            self.console.print(f"  {key}: {value}")
