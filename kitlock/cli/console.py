"""Console output for the CLI.

Provides a Console class that wraps rich for status messages and tables.
Machine-readable output (YAML) is written to stdout unstyled.
"""

import sys
from typing import Any

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.table import Table


class Console:
    """CLI output manager wrapping rich.

    Status and error messages go to stderr so stdout stays parseable.
    """

    def __init__(self, *, force_terminal: bool | None = None, quiet: bool = False) -> None:
        self._console = RichConsole(force_terminal=force_terminal, stderr=False)
        self._err_console = RichConsole(force_terminal=force_terminal, stderr=True)
        self._quiet = quiet

    def success(self, message: str) -> None:
        """Print a success message."""
        self._err_console.print(f"[green]✓[/green] {escape(message)}", highlight=False)

    def error(self, message: str, *, hints: list[str] | None = None) -> None:
        """Print an error message, with optional context lines, to stderr."""
        self._err_console.print(f"[red]✗[/red] {escape(message)}", highlight=False)
        for hint in hints or []:
            self._err_console.print(f"  [dim]{escape(hint)}[/dim]", highlight=False)

    def info(self, message: str) -> None:
        """Print an info message (suppressed in quiet mode)."""
        if not self._quiet:
            self._err_console.print(f"[dim]{escape(message)}[/dim]", highlight=False)

    def raw(self, text: str) -> None:
        """Write text to stdout as is."""
        sys.stdout.write(text)

    def print(self, *args: Any, **kwargs: Any) -> None:
        """Print to console (pass-through to rich)."""
        self._console.print(*args, **kwargs)

    def table(
        self,
        rows: list[dict[str, Any]],
        columns: list[tuple[str, str]],  # (key, header)
        *,
        title: str | None = None,
    ) -> None:
        table = Table(title=title, show_header=True, header_style="bold")
        for _, header in columns:
            table.add_column(header)
        for row in rows:
            table.add_row(*[str(row.get(key, "")) for key, _ in columns])
        self._console.print(table)

    def status(self, message: str):
        """Return a status context manager for long operations."""
        return self._err_console.status(message)


_default: Console | None = None


def get_console() -> Console:
    """Get the default console instance."""
    global _default
    if _default is None:
        _default = Console()
    return _default
