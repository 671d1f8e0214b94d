"""REPL core loop."""

import asyncio
import logging
from pathlib import Path

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.panel import Panel

from cli.command_handler import CommandHandler
from cli.state import REPLState
from cli.stream_renderer import StreamRenderer
from skillbox.dependencies import build_services

logger = logging.getLogger(__name__)

# Global console
console = Console(
    legacy_windows=False,
    force_terminal=True,
    force_interactive=False,
    no_color=False,
    tab_size=4
)

# Log directory
LOG_DIR = Path(__file__).parent.parent / "log"
LOG_DIR.mkdir(exist_ok=True)


class REPLRunner:
    """Interactive plugin playground.

    Feeds every typed message through the chat-plugin integration in-process
    and renders detected calls, lifecycle events and the processed message.
    """

    def __init__(self, user_id: str = "cli-debug", assistant_id: str = None):
        self.services = build_services()
        self.state = REPLState(user_id=user_id, assistant_id=assistant_id)
        self.renderer = StreamRenderer(console)
        self.command_handler = CommandHandler(self.state, self.services, console)

    async def _load_plugins(self):
        report = await self.services.discovery.import_all(self.services.registry)
        for error in report.errors:
            console.print(f"[yellow]! {error}[/yellow]")
        return report

    def _show_welcome(self):
        console.print(Panel.fit(
            "[bold cyan]Skillbox Plugin Playground[/bold cyan]\n"
            f"[green]Plugins:[/green] {self.services.registry.count()} registered\n"
            f"[green]User:[/green] {self.state.user_id}\n"
            "Type /help for help, /plugins to list plugins, /q to quit",
            border_style="blue"
        ))
        console.print()

    def _build_prompt(self) -> HTML:
        mode = "preview" if self.state.preview else "run"
        if self.state.assistant_id:
            return HTML(f'<ansicyan>[{self.state.assistant_id}|{mode}]</ansicyan> <b>You></b> ')
        return HTML(f'<ansicyan>[{mode}]</ansicyan> <b>You></b> ')

    async def _process_message(self, user_input: str):
        message = self.state.build_message(user_input)
        integration = self.services.integration

        if self.state.preview:
            calls = await integration.preview_function_calls(message)
            self.renderer.show_calls(calls)
            return

        response = await integration.process_message(message, self.renderer.on_event)
        self.renderer.show_calls(response.function_calls)
        self.renderer.on_result(response)

    async def run(self):
        """Main loop."""
        await self._load_plugins()

        # Setup command history (persistent across sessions)
        history_file = LOG_DIR / ".cli_history"
        session = PromptSession(history=FileHistory(str(history_file)))

        self._show_welcome()

        while True:
            try:
                user_input = await session.prompt_async(self._build_prompt())

                if not user_input.strip():
                    continue

                if user_input.startswith("/"):
                    should_continue = await self.command_handler.handle(user_input)
                    if not should_continue:
                        break
                    continue

                await self._process_message(user_input)

            except asyncio.CancelledError:
                print()
                continue

            except KeyboardInterrupt:
                print("\n\033[33m(use /q to quit)\033[0m\n")
                continue

            except EOFError:
                print("\n\033[33mbye bye!\033[0m")
                break

            except Exception as e:
                self.renderer.show_error(str(e))
                logger.exception("REPL error")
