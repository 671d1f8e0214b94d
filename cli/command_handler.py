"""Command handler with command pattern."""

import json
from typing import Dict

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cli.state import REPLState
from skillbox.dependencies import ServiceContainer


class CommandHandler:
    """Dispatches slash commands.

    Uses a prefix-to-handler mapping instead of a long if-elif chain.
    """

    def __init__(self, state: REPLState, services: ServiceContainer, console: Console):
        """
        Args:
            state: REPL state
            services: Plugin services used by the playground
            console: Rich console for output
        """
        self.state = state
        self.services = services
        self.console = console
        self.commands = self._register_commands()

    def _register_commands(self) -> Dict[str, callable]:
        return {
            "/q": self._cmd_quit,
            "/quit": self._cmd_quit,
            "/exit": self._cmd_quit,
            "/user": self._cmd_set_user,
            "/assistant": self._cmd_set_assistant,
            "/preview": self._cmd_toggle_preview,
            "/plugins": self._cmd_list_plugins,
            "/config": self._cmd_show_config,
            "/help": self._cmd_help,
        }

    async def handle(self, cmd: str) -> bool:
        """Handle a command.

        Args:
            cmd: Raw command line

        Returns:
            Whether the REPL should keep running
        """
        name = cmd.split(maxsplit=1)[0]
        handler = self.commands.get(name)
        if handler:
            return await handler(cmd)

        self.console.print(f"[red]Unknown command: {cmd}[/red]")
        self.console.print("[dim]Type /help for help[/dim]\n")
        return True

    async def _cmd_quit(self, cmd: str) -> bool:
        self.console.print("[yellow]bye bye![/yellow]")
        return False

    async def _cmd_set_user(self, cmd: str) -> bool:
        parts = cmd.split(maxsplit=1)
        if len(parts) < 2:
            self.console.print("[red]Usage: /user <id>[/red]\n")
            return True

        self.state.user_id = parts[1].strip()
        self.console.print(f"[green]✓ User set to: {self.state.user_id}[/green]\n")
        return True

    async def _cmd_set_assistant(self, cmd: str) -> bool:
        """Set the assistant, or clear it with ``/assistant -``."""
        parts = cmd.split(maxsplit=1)
        if len(parts) < 2:
            self.console.print("[red]Usage: /assistant <id> (use '-' to clear)[/red]\n")
            return True

        value = parts[1].strip()
        self.state.assistant_id = None if value == "-" else value
        label = self.state.assistant_id or "(none, public plugins)"
        self.console.print(f"[green]✓ Assistant set to: {label}[/green]\n")
        return True

    async def _cmd_toggle_preview(self, cmd: str) -> bool:
        self.state.preview = not self.state.preview
        mode = "preview (detect only)" if self.state.preview else "execute"
        self.console.print(f"[green]✓ Mode: {mode}[/green]\n")
        return True

    async def _cmd_list_plugins(self, cmd: str) -> bool:
        plugins = await self.services.registry.find_all()
        if not plugins:
            self.console.print("[yellow]No plugins registered[/yellow]\n")
            return True

        table = Table(title="Plugins")
        table.add_column("Name", style="cyan")
        table.add_column("Type")
        table.add_column("Runtime")
        table.add_column("Active")
        table.add_column("Public")
        table.add_column("Functions")
        for plugin in plugins:
            table.add_row(
                plugin.name,
                plugin.plugin_type.value,
                plugin.runtime_type.value,
                "yes" if plugin.is_active else "no",
                "yes" if plugin.is_public else "no",
                ", ".join(f.name for f in plugin.manifest.functions),
            )
        self.console.print(table)
        self.console.print()
        return True

    async def _cmd_show_config(self, cmd: str) -> bool:
        """Show session settings, or a plugin's resolved config with ``/config <plugin>``."""
        parts = cmd.split(maxsplit=1)
        if len(parts) == 2:
            registry = self.services.registry
            plugin = await registry.find_by_name(parts[1].strip())
            if not plugin:
                self.console.print(f"[red]Plugin '{parts[1].strip()}' not found[/red]\n")
                return True
            config = await registry.resolve_config(plugin.id, self.state.user_id)
            self.console.print(Panel(
                json.dumps(config, indent=2, ensure_ascii=False),
                title=f"{plugin.name} config (user {self.state.user_id})",
                border_style="blue",
            ))
            self.console.print()
            return True

        from skillbox.constants import BUNDLED_PLUGINS_DIR, PLUGIN_STATE_FILE

        self.console.print(Panel(
            f"[bold cyan]Session:[/bold cyan]\n"
            f"  [cyan]User:[/cyan] {self.state.user_id}\n"
            f"  [cyan]Assistant:[/cyan] {self.state.assistant_id or '(none)'}\n"
            f"  [cyan]Conversation:[/cyan] {self.state.conversation_id}\n"
            f"  [cyan]Mode:[/cyan] {'preview' if self.state.preview else 'execute'}\n\n"
            f"[dim]Plugins:[/dim] {BUNDLED_PLUGINS_DIR}\n"
            f"[dim]State file:[/dim] {PLUGIN_STATE_FILE}",
            title="Current configuration",
            border_style="blue",
        ))
        self.console.print()
        return True

    async def _cmd_help(self, cmd: str) -> bool:
        help_text = """[bold]Commands:[/bold]
  /q, /quit, /exit    Quit
  /user <id>          Set the user id (selects per-user plugin config)
  /assistant <id>     Use an assistant's plugin assignments ('-' clears)
  /preview            Toggle preview mode (detect without executing)
  /plugins            List registered plugins
  /config [plugin]    Show session settings or a plugin's resolved config
  /help               Show this help

[bold]Examples:[/bold]
  use text_tools.word_count(text="hello plugin world")
  Erstelle ein Bild von einem Sonnenuntergang am Meer"""
        self.console.print(Panel(help_text, title="Help", border_style="blue"))
        self.console.print()
        return True
