"""Loop runner for the Calclane CLI."""

import asyncio
import os
import platform
import signal
import sys
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from calclane import __version__
from calclane.channel import Channel
from calclane.config import Settings
from calclane.loop import PollingLoop
from calclane.task import HandlerRegistry, Result


class LoopRunner:
    """Runs a worker or collector loop with startup banner and graceful shutdown."""

    def __init__(
        self,
        loop: PollingLoop,
        settings: Settings,
        role: str,
        handlers: Optional[HandlerRegistry] = None,
        console: Optional[Console] = None,
        extra_channels: Sequence[Channel] = (),
    ):
        self.loop = loop
        self.settings = settings
        self.role = role
        self.handlers = handlers
        self.console = console or Console()
        self.extra_channels = extra_channels
        self._shutdown_event = asyncio.Event()

    def _channel_rows(self) -> List[Tuple[str, str]]:
        rows = [
            ("Channel Backend", self.settings.channel),
            ("Task Queue", self.settings.task_queue),
            ("Result Queue", self.settings.result_queue),
            ("Region", self.settings.region),
        ]
        if self.settings.channel == "lmdb":
            rows.append(("Database Path", self.settings.db_path))
        return rows

    def _print_banner(self) -> None:
        """Print the startup banner with system and configuration info."""
        header = (
            "[bold blue]calclane[/bold blue] "
            f"[dim]{self.role}[/dim]\n\n"
            "[dim]Task and result exchange over at-least-once channels[/dim]"
        )
        self.console.print(Panel(header, border_style="blue"))

        sys_table = Table(title="System Information", border_style="dim", show_header=False)
        sys_table.add_column("Key", style="cyan")
        sys_table.add_column("Value", style="white")

        sys_table.add_row("Calclane Version", __version__)
        sys_table.add_row("Python Version", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
        sys_table.add_row("Platform", platform.platform())
        sys_table.add_row("Process ID", str(os.getpid()))
        sys_table.add_row("Started At", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

        self.console.print(sys_table)
        self.console.print()

        config_table = Table(title="Configuration", border_style="dim", show_header=False)
        config_table.add_column("Key", style="cyan")
        config_table.add_column("Value", style="white")

        for key, value in self._channel_rows():
            config_table.add_row(key, value)
        config_table.add_row("Long Poll", f"{self.settings.wait_seconds:g}s")
        config_table.add_row("Cycle Interval", f"{self.settings.cycle_interval:g}s")
        config_table.add_row("Visibility Timeout", f"{self.settings.visibility_timeout:g}s")

        self.console.print(config_table)
        self.console.print()

        if self.handlers is not None:
            handlers = self.handlers.all()
            handlers_table = Table(title=f"Registered Handlers ({len(handlers)})", border_style="dim")
            handlers_table.add_column("#", style="dim", width=4)
            handlers_table.add_column("Task Type", style="green")
            handlers_table.add_column("Notes", style="dim")

            for i, task_type in enumerate(handlers, 1):
                notes = f"rate {self.settings.conversion_rate:g}" if task_type == "convert_currency" else "-"
                handlers_table.add_row(str(i), str(task_type), notes)

            self.console.print(handlers_table)
            self.console.print()

        self.console.print(
            f"[bold green]{self.role.capitalize()} ready.[/bold green] "
            "Press [bold]Ctrl+C[/bold] to stop.\n"
        )

    def print_result(self, result: Result) -> None:
        """Print a collected result."""
        self.console.print(
            f"[green]{result.task_id}[/green] "
            f"[cyan]{result.type}[/cyan] "
            f"{result.outcome} "
            f"[dim]{result.processed_at:%H:%M:%S}[/dim]"
        )

    def _print_stopped(self) -> None:
        summary = ", ".join(f"{outcome}={count}" for outcome, count in sorted(self.loop.outcomes.items()))
        self.console.print(f"[bold green]{self.role.capitalize()} stopped.[/bold green] [dim]{summary}[/dim]")

    async def _run(self) -> None:
        """Run the loop until a shutdown signal arrives."""
        event_loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            event_loop.add_signal_handler(signum, self._shutdown_event.set)

        await self.loop.start()
        await self._shutdown_event.wait()

        self.console.print(f"\n[bold yellow]Shutting down {self.role}...[/bold yellow]")
        await self.loop.stop(wait=True)
        for channel in (self.loop.channel, *self.extra_channels):
            await channel.close()

    def run(self) -> None:
        """Start the loop (blocking)."""
        self._print_banner()

        try:
            asyncio.run(self._run())
        except KeyboardInterrupt:
            pass

        self._print_stopped()


__all__ = ["LoopRunner"]
