"""Plugin event and result renderer."""

from typing import List

from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from skillbox.plugins.detector import FunctionCall
from skillbox.plugins.events import PluginEvent
from skillbox.plugins.integration import PluginChatResponse

STATUS_ICONS = {
    "pending": "…",
    "in_progress": "▶",
    "completed": "✓",
    "error": "✗",
}


class StreamRenderer:
    """Prints lifecycle events as they arrive and the processed message at the end."""

    def __init__(self, console: Console):
        self.console = console

    def show_calls(self, calls: List[FunctionCall]):
        """Print detected calls as a table."""
        if not calls:
            self.console.print("[dim]No function calls detected[/dim]\n")
            return

        table = Table(title="Detected function calls")
        table.add_column("Plugin", style="cyan")
        table.add_column("Function")
        table.add_column("Span")
        table.add_column("Parameters")
        for call in calls:
            table.add_row(
                call.plugin_name,
                call.function_name,
                f"{call.start_index}-{call.end_index}",
                ", ".join(f"{k}={v!r}" for k, v in call.parameters.items()),
            )
        self.console.print(table)
        self.console.print()

    async def on_event(self, event: PluginEvent):
        """Event callback handed to the integration."""
        data = event.data
        if event.type == "message" and data.content:
            self.console.print(Markdown(data.content))
        elif event.type == "error":
            self.console.print(f"[red]✗ {data.description}[/red]")
        else:
            icon = STATUS_ICONS.get(data.status or "", "•")
            self.console.print(f"[dim]{icon} {data.description}[/dim]")

    def on_result(self, response: PluginChatResponse):
        """Print per-call summaries and the rewritten message."""
        for result in response.plugin_results:
            if result.success:
                self.console.print(
                    f"[green]✓ {result.plugin_name}.{result.function_name}[/green] "
                    f"({result.execution_time_ms}ms)"
                )
            else:
                self.console.print(
                    f"[red]✗ {result.plugin_name}.{result.function_name}: {result.error}[/red]"
                )

        if response.plugin_results:
            self.console.print()
            self.console.print(Markdown(response.processed_message.content))
        self.console.print()

    def show_error(self, message: str):
        self.console.print(f"[red]✗ Error: {message}[/red]\n")
