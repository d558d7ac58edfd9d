"""
ui/plain/renderer.py - The View Layer

Responsible for all Rich console operations and formatting.
Never handles input - only rendering.
"""

from typing import Optional

from rich.console import Console
from rich.panel import Panel


class PlainRenderer:
    """
    Handles all visual output for the Plain UI.
    Streams raw text while a reply is in flight.
    """

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False)
        self._streaming = False

    def print_banner(self, model: str, provider: str, workspace: str):
        self.console.print(
            Panel.fit(
                f"[bold]Cadence[/bold]  {model} ({provider})\n[dim]{workspace}[/dim]",
                border_style="cyan",
            )
        )
        self.print_system("Type '/help' for commands, '/exit' to quit.")

    def print_system(self, message: str):
        """Print [SYS] tag in blue"""
        self.console.print(f"[bold blue][SYS][/bold blue] {message}")

    def print_block(self, message: str):
        self.console.print(message, markup=False)

    def print_error(self, message: str, hint: Optional[str] = None):
        self.end_stream()
        self.console.print(f"[bold red][ERR][/bold red] {message}")
        if hint:
            self.console.print(f"[dim italic]Hint: {hint}[/]")

    def print_warning(self, message: str):
        """Print [WARN] tag in yellow"""
        self.console.print(f"[bold yellow][WARN][/bold yellow] {message}")

    def start_stream(self, model: str):
        if not self._streaming:
            self.console.print(f"\n[bold green]{model} >[/bold green] ", end="")
            self._streaming = True

    def print_stream(self, text: str):
        """Append raw text to the current reply line."""
        if text:
            self.console.print(text, end="", markup=False, highlight=False)

    def end_stream(self):
        if self._streaming:
            self.console.print()
            self._streaming = False

    def print_footer(self, token_count: Optional[int], status: str):
        parts = []
        if token_count:
            parts.append(f"~{token_count:,} tokens")
        if status != "complete":
            parts.append(status)
        if parts:
            self.console.print(f"[dim]({', '.join(parts)})[/dim]")
